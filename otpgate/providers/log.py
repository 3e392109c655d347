"""
Log Channel
===========
Writes OTP messages to the log instead of sending them. Development only.
"""

import structlog

from .base import BaseProvider

logger = structlog.get_logger(__name__)


class LogProvider(BaseProvider):
    """Development channel that logs every message it is asked to push."""

    id = "log"
    channel_name = "Log"
    description = "The verification code has been written to the server log."
    max_otp_len = 6
    max_body_len = 10 * 1024

    def validate_address(self, to: str) -> None:
        if not to or not to.strip():
            raise ValueError("address is empty")

    async def push(self, to: str, subject: str, body: str) -> None:
        logger.info("OTP message", to=to, subject=subject, body=body)
