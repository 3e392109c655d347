"""
OTP Gateway Configuration
=========================
Settings loaded from environment variables.
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def parse_auth(raw: str) -> Dict[str, str]:
    """
    Parse namespace credentials.

    Format: ``ns1:secret1,ns2:secret2``. Secrets may contain ``:``.
    """
    creds: Dict[str, str] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        namespace, sep, secret = pair.partition(":")
        if not sep or not namespace or not secret:
            raise ValueError(f"invalid namespace credential: {namespace or pair!r}")
        creds[namespace] = secret
    return creds


@dataclass
class Settings:
    """Configuration for the OTP gateway."""
    root_url: str = "http://localhost:8000"
    redis_url: str = "redis://localhost:6379/0"
    key_prefix: str = "otpgate"
    otp_ttl: float = 300.0  # 5 minutes
    max_attempts: int = 5
    push_timeout: float = 10.0
    auth: Dict[str, str] = field(default_factory=dict)
    providers: List[str] = field(default_factory=lambda: ["log"])

    twilio_account_sid: Optional[str] = None
    twilio_auth_token: Optional[str] = None
    twilio_from_number: Optional[str] = None
    twilio_messaging_service_sid: Optional[str] = None

    log_level: str = "INFO"
    log_json: bool = True
    service_name: str = "otpgate"

    def __post_init__(self):
        if self.otp_ttl <= 0:
            raise ValueError("OTPGATE_OTP_TTL must be positive")
        if self.max_attempts <= 0:
            raise ValueError("OTPGATE_MAX_ATTEMPTS must be positive")
        if self.push_timeout <= 0:
            raise ValueError("OTPGATE_PUSH_TIMEOUT must be positive")

    @classmethod
    def from_env(cls) -> "Settings":
        providers = [
            p.strip() for p in os.getenv("OTPGATE_PROVIDERS", "log").split(",") if p.strip()
        ]
        return cls(
            root_url=os.getenv("OTPGATE_ROOT_URL", "http://localhost:8000"),
            redis_url=os.getenv("OTPGATE_REDIS_URL", "redis://localhost:6379/0"),
            key_prefix=os.getenv("OTPGATE_KEY_PREFIX", "otpgate"),
            otp_ttl=float(os.getenv("OTPGATE_OTP_TTL", "300")),
            max_attempts=int(os.getenv("OTPGATE_MAX_ATTEMPTS", "5")),
            push_timeout=float(os.getenv("OTPGATE_PUSH_TIMEOUT", "10")),
            auth=parse_auth(os.getenv("OTPGATE_AUTH", "")),
            providers=providers,
            twilio_account_sid=os.getenv("TWILIO_ACCOUNT_SID"),
            twilio_auth_token=os.getenv("TWILIO_AUTH_TOKEN"),
            twilio_from_number=os.getenv("TWILIO_FROM_NUMBER"),
            twilio_messaging_service_sid=os.getenv("TWILIO_MESSAGING_SERVICE_SID"),
            log_level=os.getenv("OTPGATE_LOG_LEVEL", "INFO"),
            log_json=_env_bool("OTPGATE_LOG_JSON", True),
            service_name=os.getenv("SERVICE_NAME", "otpgate"),
        )
