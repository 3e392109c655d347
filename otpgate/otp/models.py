"""
OTP Models
==========
Data models for OTP records and issuance results.
"""

from dataclasses import dataclass, asdict, replace
from typing import Any, Dict


@dataclass
class OTPRecord:
    """A single verification challenge, addressed by (namespace, id)."""
    namespace: str
    id: str
    otp: str
    to: str
    provider: str
    max_attempts: int
    description: str = ""
    attempts: int = 0
    ttl: float = 0.0  # Seconds remaining, recomputed on every read
    closed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def lock_info(self) -> Dict[str, Any]:
        """Payload for lockout and mismatch responses."""
        return {
            "ttl_seconds": round(self.ttl, 3),
            "attempts": self.attempts,
            "max_attempts": self.max_attempts,
        }

    def copy(self, **changes) -> "OTPRecord":
        return replace(self, **changes)


@dataclass
class IssueResult:
    """A freshly issued record plus its verification page URL."""
    record: OTPRecord
    url: str

    def to_dict(self) -> Dict[str, Any]:
        out = self.record.to_dict()
        out["url"] = self.url
        return out
