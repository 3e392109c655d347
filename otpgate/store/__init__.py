"""
OTP Record Stores
=================
Atomic, TTL-bound persistence for OTP records.
"""

from .base import OTPStore
from .in_memory import InMemoryStore
from .redis_store import RedisStore

__all__ = [
    # Contract
    "OTPStore",
    # Stores
    "InMemoryStore",
    "RedisStore",
]
