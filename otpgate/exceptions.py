"""
OTP Gateway Exceptions
======================
Error taxonomy shared by the store, the lifecycle controller and the API.
"""

from typing import Any, Dict, Optional


class OTPError(Exception):
    """Base exception for all lifecycle errors surfaced to callers."""

    status_code: int = 400

    def __init__(self, message: str, record: Any = None):
        self.message = message
        self.record = record
        super().__init__(message)

    @property
    def data(self) -> Optional[Dict[str, Any]]:
        """Diagnostic payload for the response envelope."""
        return None


class ValidationError(OTPError):
    """Bad or missing input. Never retried, nothing is mutated."""
    pass


class InvalidRecipient(ValidationError):
    """The channel rejected the destination address."""
    pass


class OTPNotFound(OTPError):
    """The key does not exist or its TTL has elapsed."""

    def __init__(self, message: str = "OTP not found or expired", record: Any = None):
        super().__init__(message, record)


class _RecordDiagnostics:
    """Mixin exposing the record's lock diagnostics as the error payload."""

    @property
    def data(self) -> Optional[Dict[str, Any]]:
        if self.record is None:
            return None
        return self.record.lock_info()


class OTPLocked(_RecordDiagnostics, OTPError):
    """The attempt budget is exhausted."""
    pass


class OTPMismatch(_RecordDiagnostics, OTPError):
    """The supplied passcode does not match."""

    def __init__(self, message: str = "OTP does not match", record: Any = None):
        super().__init__(message, record)


class OTPClosed(OTPError):
    """The OTP was already verified."""

    def __init__(self, message: str = "OTP is already verified", record: Any = None):
        super().__init__(message, record)


class DeliveryFailed(OTPError):
    """The channel could not transmit the message. The record is kept."""

    status_code = 500


class StoreUnavailable(OTPError):
    """The backing store failed at the network or operational level."""

    status_code = 500


class RandomSourceFailure(OTPError):
    """The CSPRNG could not produce bytes."""

    status_code = 500


class AlreadyLocked(Exception):
    """Raised by a store when create() would overwrite a locked record."""

    def __init__(self, record: Any):
        self.record = record
        super().__init__(f"OTP {record.namespace}:{record.id} is locked")


class ProviderError(Exception):
    """Raised by a delivery channel when transmission fails."""

    def __init__(self, message: str, provider: str = "unknown", details: Any = None):
        self.message = message
        self.provider = provider
        self.details = details
        super().__init__(f"[{provider}] {message}")
