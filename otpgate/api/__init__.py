"""
OTP Gateway HTTP API
====================
FastAPI transport for the OTP lifecycle.

Run with an ASGI server, e.g. ``uvicorn otpgate.api.asgi:app``.
"""

from .app import create_app, build_providers
from .auth import AuthenticationError, check_basic_auth, require_namespace
from .responses import send_response, send_error_response

__all__ = [
    "create_app",
    "build_providers",
    "AuthenticationError",
    "check_basic_auth",
    "require_namespace",
    "send_response",
    "send_error_response",
]
