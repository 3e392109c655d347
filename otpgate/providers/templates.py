"""
Message Templates
=================
Subject and body templates rendered before a channel push.
"""

from dataclasses import dataclass
from typing import Tuple

DEFAULT_SUBJECT = "Your {channel} verification code"
DEFAULT_BODY = "Your verification code is {otp}. Or verify here: {otp_url}"


@dataclass(frozen=True)
class MessageTemplate:
    """
    A pair of ``str.format`` templates.

    Available fields: to, namespace, channel, otp, otp_url.
    """
    subject: str = DEFAULT_SUBJECT
    body: str = DEFAULT_BODY

    def render(
        self,
        to: str,
        namespace: str,
        channel: str,
        otp: str,
        otp_url: str,
    ) -> Tuple[str, str]:
        """
        Render the subject and body.

        Raises:
            KeyError: If a template references an unknown field
        """
        fields = {
            "to": to,
            "namespace": namespace,
            "channel": channel,
            "otp": otp,
            "otp_url": otp_url,
        }
        return self.subject.format(**fields), self.body.format(**fields)
