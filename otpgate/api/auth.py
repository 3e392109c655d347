"""
Namespace Authentication
========================
HTTP Basic auth where the username is the namespace and the password its secret.
"""

import base64
import binascii
import hmac

import structlog
from fastapi import Request

logger = structlog.get_logger(__name__)


class AuthenticationError(Exception):
    """Missing or invalid namespace credentials."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


def check_basic_auth(header: str, credentials: dict) -> str:
    """
    Validate a Basic Authorization header.

    Args:
        header: Raw Authorization header value
        credentials: Namespace to secret mapping

    Returns:
        The authenticated namespace

    Raises:
        AuthenticationError: If the header is missing, malformed or wrong
    """
    scheme, _, payload = header.partition(" ")
    if scheme.lower() != "basic":
        raise AuthenticationError("missing Basic Authorization header")

    try:
        decoded = base64.b64decode(payload.strip(), validate=True).decode("utf-8")
    except (binascii.Error, UnicodeDecodeError):
        raise AuthenticationError("invalid Base64 value in Basic Authorization header")

    namespace, sep, secret = decoded.partition(":")
    if not sep:
        raise AuthenticationError("invalid value in Basic Authorization header")

    expected = credentials.get(namespace)
    if expected is None or not hmac.compare_digest(expected.encode(), secret.encode()):
        logger.warning("Invalid API credentials", namespace=namespace[:32])
        raise AuthenticationError("invalid API credentials")

    return namespace


async def require_namespace(request: Request) -> str:
    """FastAPI dependency resolving the caller's namespace."""
    return check_basic_auth(
        request.headers.get("Authorization", ""),
        request.app.state.auth,
    )
