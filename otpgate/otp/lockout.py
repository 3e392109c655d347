"""
Lockout Policy
==============
Attempt-budget decision over an OTP record.
"""

from .models import OTPRecord


def is_locked(record: OTPRecord) -> bool:
    """True once the record has consumed more attempts than its budget."""
    return record.attempts > record.max_attempts
