"""
Code Generator
==============
Cryptographically random passcodes and identifiers.
"""

import secrets
import string

from otpgate.exceptions import RandomSourceFailure

ALPHA_CHARS = string.ascii_uppercase + string.ascii_lowercase
NUM_CHARS = string.digits
ALPHA_NUM_CHARS = ALPHA_CHARS + NUM_CHARS

ID_LENGTH = 32
MIN_ID_LENGTH = 6


def generate_random_string(length: int, alphabet: str) -> str:
    """
    Draw ``length`` symbols uniformly from ``alphabet``.

    Args:
        length: Number of symbols
        alphabet: Characters to draw from

    Returns:
        Random string

    Raises:
        RandomSourceFailure: If the OS random source is unavailable
    """
    if length <= 0:
        raise ValueError("length must be positive")
    if not alphabet:
        raise ValueError("alphabet must not be empty")

    try:
        return "".join(secrets.choice(alphabet) for _ in range(length))
    except (OSError, NotImplementedError) as e:
        raise RandomSourceFailure("error generating random value") from e


def generate_otp(length: int) -> str:
    """Generate a numeric passcode."""
    return generate_random_string(length, NUM_CHARS)


def generate_id() -> str:
    """Generate an alphanumeric OTP identifier."""
    return generate_random_string(ID_LENGTH, ALPHA_NUM_CHARS)
