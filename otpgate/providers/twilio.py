"""
Twilio SMS Channel
==================
Delivers OTPs as SMS through the Twilio Messages API.
"""

import logging
import re
from typing import Optional

import httpx
import structlog
from tenacity import before_sleep_log, retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from otpgate.exceptions import ProviderError
from .base import BaseProvider

logger = structlog.get_logger(__name__)
stdlib_logger = logging.getLogger(__name__)

E164_PATTERN = re.compile(r"^\+[1-9]\d{1,14}$")


def validate_e164(phone: str) -> bool:
    """True if ``phone`` is in E.164 format."""
    return bool(E164_PATTERN.match(phone))


class TwilioSMSProvider(BaseProvider):
    """
    Twilio SMS channel.

    Sends either from a fixed number or through a messaging service.
    """

    id = "sms"
    channel_name = "Phone"
    description = "A verification code has been sent to your phone number by SMS."
    max_otp_len = 6
    max_body_len = 1600

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: Optional[str] = None,
        messaging_service_sid: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not from_number and not messaging_service_sid:
            raise ValueError("Twilio needs a from number or a messaging service SID")

        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.messaging_service_sid = messaging_service_sid
        self.timeout = timeout
        self.base_url = f"https://api.twilio.com/2010-04-01/Accounts/{account_sid}"
        self._client = client

    async def initialize(self) -> None:
        """Create HTTP client with auth."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                auth=(self.account_sid, self.auth_token),
                timeout=self.timeout,
            )
        await super().initialize()

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        await super().close()

    def validate_address(self, to: str) -> None:
        if not validate_e164(to):
            raise ValueError("phone number must be in E.164 format, e.g. +14155551234")

    @retry(
        retry=retry_if_exception_type(httpx.ConnectError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=4),
        before_sleep=before_sleep_log(stdlib_logger, logging.WARNING),
        reraise=True,
    )
    async def _post(self, payload: dict) -> httpx.Response:
        """POST a message. Only connection failures are retried, so a message is never sent twice."""
        return await self._client.post(f"{self.base_url}/Messages.json", data=payload)

    async def push(self, to: str, subject: str, body: str) -> None:
        """Send SMS via Twilio. The subject is not used."""
        if not self._client:
            raise ProviderError("provider not initialized", provider=self.id)

        payload = {
            "To": to,
            "Body": body,
        }
        if self.messaging_service_sid:
            payload["MessagingServiceSid"] = self.messaging_service_sid
        else:
            payload["From"] = self.from_number

        try:
            response = await self._post(payload)
        except httpx.HTTPError as e:
            logger.error("Twilio send failed", error=str(e))
            raise ProviderError(f"request failed: {e}", provider=self.id) from e

        if response.status_code != 201:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            raise ProviderError(
                error_data.get("message", f"HTTP {response.status_code}"),
                provider=self.id,
                details=error_data.get("code", response.status_code),
            )

        logger.info("Twilio message queued", sid=response.json().get("sid"))
