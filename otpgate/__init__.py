"""
OTP Gateway
===========
Issues, verifies and rate-limits one-time passcodes for multiple namespaces.
"""

__version__ = "0.1.0"

# Errors
from otpgate.exceptions import (
    OTPError,
    ValidationError,
    InvalidRecipient,
    OTPNotFound,
    OTPLocked,
    OTPMismatch,
    OTPClosed,
    DeliveryFailed,
    StoreUnavailable,
    RandomSourceFailure,
    AlreadyLocked,
    ProviderError,
)

# OTP
from otpgate.otp import (
    OTPRecord,
    IssueResult,
    generate_random_string,
    is_locked,
)
from otpgate.otp.controller import OTPController

# Stores
from otpgate.store import OTPStore, InMemoryStore, RedisStore

# Providers
from otpgate.providers import (
    BaseProvider,
    ProviderRegistry,
    MessageTemplate,
    LogProvider,
    TwilioSMSProvider,
)

# Config
from otpgate.config import Settings

__all__ = [
    # Errors
    "OTPError",
    "ValidationError",
    "InvalidRecipient",
    "OTPNotFound",
    "OTPLocked",
    "OTPMismatch",
    "OTPClosed",
    "DeliveryFailed",
    "StoreUnavailable",
    "RandomSourceFailure",
    "AlreadyLocked",
    "ProviderError",
    # OTP
    "OTPRecord",
    "IssueResult",
    "generate_random_string",
    "is_locked",
    "OTPController",
    # Stores
    "OTPStore",
    "InMemoryStore",
    "RedisStore",
    # Providers
    "BaseProvider",
    "ProviderRegistry",
    "MessageTemplate",
    "LogProvider",
    "TwilioSMSProvider",
    # Config
    "Settings",
]
