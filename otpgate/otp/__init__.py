"""
OTP Lifecycle
=============
Records, code generation and the lockout policy.

The lifecycle controller lives in ``otpgate.otp.controller``.
"""

from .models import OTPRecord, IssueResult
from .generator import (
    generate_random_string,
    generate_otp,
    generate_id,
    ALPHA_CHARS,
    NUM_CHARS,
    ALPHA_NUM_CHARS,
)
from .lockout import is_locked

__all__ = [
    # Models
    "OTPRecord",
    "IssueResult",
    # Generator
    "generate_random_string",
    "generate_otp",
    "generate_id",
    "ALPHA_CHARS",
    "NUM_CHARS",
    "ALPHA_NUM_CHARS",
    # Lockout
    "is_locked",
]
