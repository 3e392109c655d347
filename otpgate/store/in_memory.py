"""
In-Memory Store
===============
Dict-backed OTP store for development and testing.
"""

import time
from typing import Callable, Dict, Optional, Tuple

import structlog

from otpgate.exceptions import AlreadyLocked, OTPNotFound
from otpgate.otp.lockout import is_locked
from otpgate.otp.models import OTPRecord
from .base import OTPStore

logger = structlog.get_logger(__name__)


class InMemoryStore(OTPStore):
    """
    In-process OTP store.

    For development and testing only. Use RedisStore when more than one
    process shares the records.

    No operation awaits between reading and writing an entry, so each call
    is atomic on the event loop.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """
        Args:
            clock: Monotonic time source in seconds (defaults to time.monotonic)
        """
        self._clock = clock or time.monotonic
        self._entries: Dict[Tuple[str, str], Tuple[OTPRecord, float]] = {}

    def _live(self, namespace: str, id: str) -> Optional[Tuple[OTPRecord, float]]:
        key = (namespace, id)
        entry = self._entries.get(key)
        if entry is None:
            return None

        _, deadline = entry
        if self._clock() >= deadline:
            del self._entries[key]
            return None
        return entry

    def _snapshot(self, record: OTPRecord, deadline: float) -> OTPRecord:
        return record.copy(ttl=max(deadline - self._clock(), 0.0))

    async def create(
        self,
        namespace: str,
        id: str,
        record: OTPRecord,
        ttl: float,
    ) -> OTPRecord:
        entry = self._live(namespace, id)
        if entry is not None and is_locked(entry[0]):
            raise AlreadyLocked(self._snapshot(*entry))

        stored = record.copy(namespace=namespace, id=id, attempts=1, closed=False)
        deadline = self._clock() + ttl
        self._entries[(namespace, id)] = (stored, deadline)
        return self._snapshot(stored, deadline)

    async def read(self, namespace: str, id: str, increment: bool = False) -> OTPRecord:
        entry = self._live(namespace, id)
        if entry is None:
            raise OTPNotFound()

        record, deadline = entry
        if increment:
            record = record.copy(attempts=record.attempts + 1)
            self._entries[(namespace, id)] = (record, deadline)
        return self._snapshot(record, deadline)

    async def close(self, namespace: str, id: str) -> OTPRecord:
        entry = self._live(namespace, id)
        if entry is None:
            raise OTPNotFound()

        record, deadline = entry
        record = record.copy(closed=True)
        self._entries[(namespace, id)] = (record, deadline)
        return self._snapshot(record, deadline)

    def clear(self) -> None:
        """Drop every record."""
        self._entries.clear()
        logger.debug("In-memory store cleared")
