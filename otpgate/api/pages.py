"""
Verification Page
=================
Human-facing HTML view for entering, resending and confirming an OTP.
"""

from html import escape
from typing import Optional, Tuple

import structlog
from fastapi.responses import HTMLResponse

from otpgate.exceptions import (
    DeliveryFailed,
    OTPClosed,
    OTPError,
    OTPLocked,
    OTPMismatch,
    OTPNotFound,
    ValidationError,
)
from otpgate.otp.controller import ACTION_RESEND, OTPController
from otpgate.otp.models import OTPRecord

logger = structlog.get_logger(__name__)

LAYOUT = """<!doctype html>
<html>
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{title}</title>
</head>
<body>
<main class="container">
<h1>{title}</h1>
<p class="description">{description}</p>
{content}
</main>
</body>
</html>
"""

OTP_FORM = """<p class="message">{message}</p>
<form method="post" action="?action=check">
<input type="text" name="otp" maxlength="{max_otp_len}" autocomplete="one-time-code" autofocus required>
<button type="submit">Verify</button>
</form>
<p><a href="?action=resend">Resend code</a></p>
"""


def render_page(title: str, description: str, content: str = "") -> HTMLResponse:
    return HTMLResponse(
        LAYOUT.format(
            title=escape(title),
            description=escape(description),
            content=content,
        )
    )


def render_message(title: str, description: str) -> HTMLResponse:
    """Render a page with only a title and a description."""
    return render_page(title, description)


async def _run_action(
    controller: OTPController,
    namespace: str,
    id: str,
    action: str,
    otp: str,
) -> Tuple[OTPRecord, str]:
    """Run the page action and return the record to display plus a message."""
    if not action:
        return await controller.view(namespace, id), ""

    if action == ACTION_RESEND:
        try:
            return await controller.resend(namespace, id), "OTP resent"
        except OTPClosed as e:
            return e.record, ""
        except DeliveryFailed as e:
            return e.record, "error resending the OTP"

    try:
        return await controller.verify(namespace, id, otp), ""
    except OTPMismatch as e:
        return e.record, e.message
    except ValidationError as e:
        # Nothing was consumed; show the form again.
        return await controller.view(namespace, id), e.message


async def render_index(
    controller: OTPController,
    namespace: str,
    id: str,
    action: str = "",
    otp: Optional[str] = None,
) -> HTMLResponse:
    """Render the verification page for an OTP."""
    try:
        record, message = await _run_action(controller, namespace, id, action, otp or "")
    except OTPNotFound:
        return render_message(
            "Session expired",
            "Your session has expired. Please re-initiate the verification.",
        )
    except OTPLocked as e:
        return render_message(
            "Too many attempts",
            f"Please retry after {int(e.record.ttl)} seconds.",
        )
    except OTPError as e:
        logger.error("Verification page failed", namespace=namespace, id=id, error=e.message)
        return render_message("Internal error", "Please try again later.")

    provider = controller.providers.get(record.provider)
    if provider is None:
        return render_message("Internal error", "The provider for this OTP was not found.")

    if record.closed:
        return render_message(
            f"{provider.channel_name} verified",
            f"Your {provider.channel_name} is now verified. You can close this page now.",
        )

    form = OTP_FORM.format(
        message=escape(message),
        max_otp_len=provider.max_otp_len,
    )
    return render_page(f"Verify {provider.channel_name}", provider.description, form)
