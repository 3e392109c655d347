"""
OTP Lifecycle Controller
========================
Issues, verifies, resends and closes OTPs on top of an atomic record store.

The controller is stateless. All cross-request coordination is left to the
store's atomic operations, so any number of controllers may share one store.
"""

import asyncio
import hmac
from typing import Awaitable, List, Mapping, Optional, TypeVar
from urllib.parse import quote, urlencode

import structlog

from otpgate.exceptions import (
    AlreadyLocked,
    DeliveryFailed,
    InvalidRecipient,
    OTPClosed,
    OTPLocked,
    OTPMismatch,
    ValidationError,
)
from otpgate.providers.base import BaseProvider
from otpgate.providers.templates import MessageTemplate
from otpgate.store.base import OTPStore
from .generator import MIN_ID_LENGTH, generate_id, generate_otp
from .lockout import is_locked
from .models import IssueResult, OTPRecord

logger = structlog.get_logger(__name__)

T = TypeVar("T")

URI_VIEW = "/otp/{namespace}/{id}"

ACTION_CHECK = "check"
ACTION_RESEND = "resend"


class OTPController:
    """Orchestrates the OTP lifecycle for every namespace and channel."""

    def __init__(
        self,
        store: OTPStore,
        providers: Mapping[str, BaseProvider],
        templates: Optional[Mapping[str, MessageTemplate]] = None,
        root_url: str = "",
        ttl: float = 300.0,
        max_attempts: int = 5,
        push_timeout: float = 10.0,
    ):
        """
        Args:
            store: Atomic record store shared by all workers
            providers: Channel id to provider, fixed for the process lifetime
            templates: Channel id to message template (defaults apply otherwise)
            root_url: Public URL prefix for verification links
            ttl: Lifetime of a new OTP in seconds
            max_attempts: Attempt budget for a new OTP
            push_timeout: Seconds to wait for a channel push
        """
        if ttl <= 0:
            raise ValueError("ttl must be positive")
        if max_attempts <= 0:
            raise ValueError("max_attempts must be positive")

        self.store = store
        self.providers = providers
        self.templates = dict(templates or {})
        self.default_template = MessageTemplate()
        self.root_url = root_url.rstrip("/")
        self.ttl = ttl
        self.max_attempts = max_attempts
        self.push_timeout = push_timeout

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def list_providers(self) -> List[str]:
        """List the ids of all available channels."""
        return list(self.providers)

    def get_provider(self, provider_id: str) -> BaseProvider:
        provider = self.providers.get(provider_id)
        if provider is None:
            raise ValidationError("unknown provider")
        return provider

    def get_url(self, record: OTPRecord, check: bool = False) -> str:
        """
        Build the verification page URL for a record.

        With ``check``, the URL carries the passcode so that opening it
        verifies the OTP in one step.
        """
        url = self.root_url + URI_VIEW.format(
            namespace=quote(record.namespace, safe=""),
            id=quote(record.id, safe=""),
        )
        if check:
            url += "?" + urlencode({"otp": record.otp, "action": ACTION_CHECK})
        return url

    @staticmethod
    async def _atomic(op: Awaitable[T]) -> T:
        # A cancelled request must not abandon a store call half-way; the call
        # runs to completion and its result is dropped.
        return await asyncio.shield(op)

    def _locked_error(self, record: OTPRecord) -> OTPLocked:
        return OTPLocked(
            f"Too many attempts. Please retry after {record.ttl:.0f} seconds.",
            record=record,
        )

    async def _push(self, record: OTPRecord, provider: BaseProvider) -> None:
        """Render the channel's template and push it."""
        template = self.templates.get(provider.id, self.default_template)
        try:
            subject, body = template.render(
                to=record.to,
                namespace=record.namespace,
                channel=provider.channel_name,
                otp=record.otp,
                otp_url=self.get_url(record, check=True),
            )
        except (KeyError, IndexError, ValueError) as e:
            logger.error("Message template failed", provider=provider.id, error=str(e))
            raise DeliveryFailed("error rendering the message", record=record) from e

        if len(body) > provider.max_body_len:
            raise DeliveryFailed(
                f"message exceeds {provider.max_body_len} characters", record=record
            )

        try:
            await asyncio.wait_for(
                provider.push(record.to, subject, body),
                timeout=self.push_timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("OTP push timed out", provider=provider.id, id=record.id)
            raise DeliveryFailed("error sending OTP", record=record) from e
        except Exception as e:
            logger.error(
                "OTP push failed",
                provider=provider.id,
                id=record.id,
                error=str(e),
            )
            raise DeliveryFailed("error sending OTP", record=record) from e

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def issue(
        self,
        namespace: str,
        provider: str,
        to: str,
        id: Optional[str] = None,
        description: str = "",
        otp: Optional[str] = None,
    ) -> IssueResult:
        """
        Create (or replace) an OTP and push it to the recipient.

        Raises:
            ValidationError: Unknown provider, short id or oversized otp
            InvalidRecipient: The channel rejected ``to``
            OTPLocked: An existing record under the id is locked
            DeliveryFailed: The push failed (the record is kept)
            StoreUnavailable: The store failed
        """
        pro = self.get_provider(provider)

        try:
            pro.validate_address(to)
        except ValueError as e:
            raise InvalidRecipient(f"invalid `to` address: {e}") from e

        if id:
            if len(id) < MIN_ID_LENGTH:
                raise ValidationError(f"ID should be min {MIN_ID_LENGTH} chars")
        else:
            id = generate_id()

        if otp:
            if len(otp) > pro.max_otp_len:
                raise ValidationError(f"OTP should be max {pro.max_otp_len} chars")
        else:
            otp = generate_otp(pro.max_otp_len)

        template = OTPRecord(
            namespace=namespace,
            id=id,
            otp=otp,
            to=to,
            description=description or "",
            provider=pro.id,
            max_attempts=self.max_attempts,
        )

        try:
            record = await self._atomic(self.store.create(namespace, id, template, self.ttl))
        except AlreadyLocked as e:
            logger.warning(
                "OTP issue refused, record locked",
                namespace=namespace,
                id=id,
                attempts=e.record.attempts,
            )
            raise OTPLocked(
                f"OTP attempts exceeded. Retry after {e.record.ttl:.0f} seconds.",
                record=e.record,
            ) from e

        logger.info(
            "OTP issued",
            namespace=namespace,
            id=id,
            provider=pro.id,
            ttl=record.ttl,
        )

        await self._push(record, pro)
        return IssueResult(record=record, url=self.get_url(record))

    async def verify(self, namespace: str, id: str, otp: str) -> OTPRecord:
        """
        Check a passcode, consuming one attempt, and close the OTP on a match.

        Raises:
            ValidationError: Short id or empty otp
            OTPNotFound: Absent or expired
            OTPLocked: Attempt budget exhausted
            OTPMismatch: Wrong passcode
            StoreUnavailable: The store failed
        """
        if len(id) < MIN_ID_LENGTH:
            raise ValidationError(f"ID should be min {MIN_ID_LENGTH} chars")
        if not otp:
            raise ValidationError("`otp` is empty")

        record = await self._atomic(self.store.read(namespace, id, increment=True))

        if is_locked(record):
            logger.warning("OTP check on locked record", namespace=namespace, id=id)
            raise self._locked_error(record)

        if not hmac.compare_digest(record.otp.encode(), otp.encode()):
            logger.info(
                "OTP mismatch",
                namespace=namespace,
                id=id,
                attempts=record.attempts,
                max_attempts=record.max_attempts,
            )
            raise OTPMismatch(record=record)

        closed = await self._atomic(self.store.close(namespace, id))
        logger.info("OTP verified", namespace=namespace, id=id, attempts=closed.attempts)
        return closed

    async def resend(self, namespace: str, id: str) -> OTPRecord:
        """
        Push the existing passcode again, consuming one attempt.

        Raises:
            OTPNotFound: Absent or expired
            OTPLocked: Attempt budget exhausted
            OTPClosed: Already verified
            DeliveryFailed: The push failed or the record's provider is no longer
                configured (the attempt is still consumed)
            StoreUnavailable: The store failed
        """
        record = await self._atomic(self.store.read(namespace, id, increment=True))

        if is_locked(record):
            raise self._locked_error(record)
        if record.closed:
            raise OTPClosed(record=record)

        provider = self.providers.get(record.provider)
        if provider is None:
            logger.error(
                "OTP provider not configured",
                namespace=namespace,
                id=id,
                provider=record.provider,
            )
            raise DeliveryFailed("provider for this OTP is not configured", record=record)

        await self._push(record, provider)
        logger.info("OTP resent", namespace=namespace, id=id, attempts=record.attempts)
        return record

    async def view(self, namespace: str, id: str) -> OTPRecord:
        """
        Read an OTP for display without consuming an attempt.

        A closed record is returned as-is; the caller renders it as verified.

        Raises:
            OTPNotFound: Absent or expired
            OTPLocked: Attempt budget exhausted
            StoreUnavailable: The store failed
        """
        record = await self._atomic(self.store.read(namespace, id, increment=False))
        if is_locked(record):
            raise self._locked_error(record)
        return record
