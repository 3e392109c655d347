"""
OTP Gateway Logging Module

Structured logging for the gateway.
"""

from .setup import setup_logging, RequestLoggingMiddleware

__all__ = [
    "setup_logging",
    "RequestLoggingMiddleware",
]
