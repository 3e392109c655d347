"""
Application Factory
===================
Builds the FastAPI app around a single OTPController.
"""

from contextlib import asynccontextmanager
from typing import Dict, Mapping, Optional

import structlog
from fastapi import FastAPI, Request
from starlette.exceptions import HTTPException as StarletteHTTPException

from otpgate import __version__
from otpgate.config import Settings
from otpgate.exceptions import OTPError
from otpgate.logging import RequestLoggingMiddleware, setup_logging
from otpgate.otp.controller import OTPController
from otpgate.providers import (
    BaseProvider,
    LogProvider,
    MessageTemplate,
    ProviderRegistry,
    TwilioSMSProvider,
)
from otpgate.store import OTPStore, RedisStore
from .auth import AuthenticationError
from .health import create_health_router
from .responses import send_error_response
from .routes import api_router, page_router

logger = structlog.get_logger(__name__)


def build_providers(settings: Settings) -> ProviderRegistry:
    """
    Construct the enabled channels from settings.

    Raises:
        ValueError: On an unknown channel id or missing channel credentials
    """
    providers = []
    for provider_id in settings.providers:
        if provider_id == LogProvider.id:
            providers.append(LogProvider())
        elif provider_id == TwilioSMSProvider.id:
            if not settings.twilio_account_sid or not settings.twilio_auth_token:
                raise ValueError("sms provider needs TWILIO_ACCOUNT_SID and TWILIO_AUTH_TOKEN")
            providers.append(
                TwilioSMSProvider(
                    account_sid=settings.twilio_account_sid,
                    auth_token=settings.twilio_auth_token,
                    from_number=settings.twilio_from_number,
                    messaging_service_sid=settings.twilio_messaging_service_sid,
                )
            )
        else:
            raise ValueError(f"unknown provider in OTPGATE_PROVIDERS: {provider_id}")
    return ProviderRegistry(providers)


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error in the JSON envelope."""

    @app.exception_handler(AuthenticationError)
    async def auth_error_handler(request: Request, exc: AuthenticationError):
        return send_error_response(exc.message, 401)

    @app.exception_handler(OTPError)
    async def otp_error_handler(request: Request, exc: OTPError):
        if exc.status_code >= 500:
            logger.error(
                "OTP request failed",
                path=request.url.path,
                error_type=type(exc).__name__,
                error=exc.message,
            )
        return send_error_response(exc.message, exc.status_code, exc.data)

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return send_error_response(str(exc.detail), exc.status_code)

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled error", path=request.url.path)
        return send_error_response("Internal Server Error", 500)


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[OTPStore] = None,
    providers: Optional[Mapping[str, BaseProvider]] = None,
    templates: Optional[Dict[str, MessageTemplate]] = None,
    configure_logging: bool = False,
) -> FastAPI:
    """
    Create the OTP gateway application.

    Args:
        settings: Configuration (read from the environment when omitted)
        store: Record store (a RedisStore on settings.redis_url when omitted)
        providers: Channel registry (built from settings when omitted)
        templates: Per-channel message templates
        configure_logging: Install the structured logging handlers
    """
    settings = settings or Settings.from_env()
    if configure_logging:
        setup_logging(settings.service_name, settings.log_level, settings.log_json)

    store = store or RedisStore.from_url(settings.redis_url, prefix=settings.key_prefix)
    if providers is None:
        providers = build_providers(settings)
    elif not isinstance(providers, ProviderRegistry):
        providers = ProviderRegistry(providers.values())

    controller = OTPController(
        store=store,
        providers=providers,
        templates=templates,
        root_url=settings.root_url,
        ttl=settings.otp_ttl,
        max_attempts=settings.max_attempts,
        push_timeout=settings.push_timeout,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup / shutdown lifecycle hook."""
        logger.info("Starting OTP gateway", providers=providers.ids())
        await providers.initialize_all()
        yield
        await providers.close_all()
        await store.aclose()
        logger.info("OTP gateway stopped")

    app = FastAPI(
        title="OTP Gateway",
        description="One-time passcode issuance and verification",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.auth = dict(settings.auth)
    app.state.controller = controller

    app.add_middleware(RequestLoggingMiddleware)
    register_exception_handlers(app)

    app.include_router(create_health_router(settings.service_name, __version__))
    app.include_router(api_router)
    app.include_router(page_router)
    return app
