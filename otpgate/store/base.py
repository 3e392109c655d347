"""
Record Store Contract
=====================
Keyed, TTL-bound storage for OTP records with atomic operations.
"""

from abc import ABC, abstractmethod

from otpgate.otp.models import OTPRecord


class OTPStore(ABC):
    """
    Abstract base class for OTP record stores.

    Every operation is a single atomic unit against the backing store.
    Callers must never compose them into read-modify-write sequences.
    """

    @abstractmethod
    async def create(
        self,
        namespace: str,
        id: str,
        record: OTPRecord,
        ttl: float,
    ) -> OTPRecord:
        """
        Write a new record with ``attempts = 1``, expiring ``ttl`` seconds from now.

        Replaces any existing unlocked record and its TTL.

        Raises:
            AlreadyLocked: If a locked record exists under the key
            StoreUnavailable: On backend failure
        """

    @abstractmethod
    async def read(self, namespace: str, id: str, increment: bool = False) -> OTPRecord:
        """
        Load a record, optionally incrementing ``attempts`` in the same step.

        The increment never extends or resets the expiry.

        Raises:
            OTPNotFound: If the key is absent or expired
            StoreUnavailable: On backend failure
        """

    @abstractmethod
    async def close(self, namespace: str, id: str) -> OTPRecord:
        """
        Mark a record as verified and return it.

        Raises:
            OTPNotFound: If the key is absent or expired
            StoreUnavailable: On backend failure
        """

    async def ping(self) -> bool:
        """Check backend connectivity."""
        return True

    async def aclose(self) -> None:
        """Release backend connections."""
        return None
