"""
OTP Gateway Logging
===================
Structured logging setup and request logging middleware.

Usage:
    from otpgate.logging import setup_logging, RequestLoggingMiddleware

    setup_logging(service_name="otpgate")
    app.add_middleware(RequestLoggingMiddleware)
"""

import logging
import sys
import time
import uuid
from typing import Any, Dict

import structlog

_service_name = "unknown"


def _add_service(logger: Any, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event_dict.setdefault("service", _service_name)
    return event_dict


def setup_logging(
    service_name: str,
    level: str = "INFO",
    json_output: bool = True,
) -> logging.Logger:
    """
    Configure stdlib logging and route structlog through it.

    Args:
        service_name: Name of the service
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Whether to output JSON (for production)

    Returns:
        Configured root logger
    """
    global _service_name
    _service_name = service_name
    log_level = getattr(logging, level.upper(), logging.INFO)

    shared_processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _add_service,
    ]

    structlog.configure(
        processors=shared_processors + [
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=shared_processors,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    structlog.get_logger(__name__).info("Logging configured", json=json_output)
    return root_logger


class RequestLoggingMiddleware:
    """
    ASGI middleware that tags each request with an id and logs its outcome.

    The id comes from ``X-Request-ID`` when the caller sends one, is bound to
    the structlog context for the duration of the request and is echoed back
    in the response headers.
    """

    def __init__(self, app):
        self.app = app
        self.logger = structlog.get_logger("otpgate.http")

    @staticmethod
    def _peer(scope, headers: Dict[bytes, bytes]) -> str:
        forwarded_for = headers.get(b"x-forwarded-for")
        if forwarded_for:
            return forwarded_for.decode().split(",")[0].strip()
        peer = scope.get("client")
        return peer[0] if peer else ""

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        headers = dict(scope.get("headers") or [])
        request_id = headers.get(b"x-request-id", b"").decode()[:64] or uuid.uuid4().hex[:8]
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        response_status = 500
        started = time.perf_counter()

        async def tagged_send(event):
            nonlocal response_status
            if event["type"] == "http.response.start":
                response_status = event["status"]
                event["headers"] = [
                    *event.get("headers", []),
                    (b"x-request-id", request_id.encode()),
                ]
            await send(event)

        try:
            await self.app(scope, receive, tagged_send)
        except Exception:
            self.logger.exception("Unhandled request error", path=scope.get("path", ""))
            raise
        finally:
            if response_status >= 500:
                emit = self.logger.error
            elif response_status >= 400:
                emit = self.logger.warning
            else:
                emit = self.logger.info
            emit(
                "Request handled",
                method=scope.get("method", ""),
                path=scope.get("path", ""),
                status_code=response_status,
                duration_ms=round((time.perf_counter() - started) * 1000, 1),
                client_ip=self._peer(scope, headers),
            )
            structlog.contextvars.clear_contextvars()
