"""
API Routes
==========
Namespace-authenticated OTP API and the public verification page.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, JSONResponse

from otpgate.otp.controller import OTPController
from .auth import require_namespace
from .pages import render_index
from .responses import send_response

api_router = APIRouter(prefix="/api", tags=["OTP"])
page_router = APIRouter(tags=["Pages"])


def get_controller(request: Request) -> OTPController:
    return request.app.state.controller


@api_router.get("/providers")
async def get_providers(
    namespace: str = Depends(require_namespace),
    controller: OTPController = Depends(get_controller),
) -> JSONResponse:
    """List the available delivery channels."""
    return send_response(controller.list_providers())


async def _issue(
    controller: OTPController,
    namespace: str,
    id: Optional[str],
    provider: str,
    to: str,
    description: str,
    otp: str,
) -> JSONResponse:
    result = await controller.issue(
        namespace,
        provider,
        to,
        id=id,
        description=description,
        otp=otp or None,
    )
    return send_response(result.to_dict())


@api_router.put("/otp")
async def set_otp_generated_id(
    provider: str = Form(""),
    to: str = Form(""),
    description: str = Form(""),
    otp: str = Form(""),
    namespace: str = Depends(require_namespace),
    controller: OTPController = Depends(get_controller),
) -> JSONResponse:
    """Issue an OTP under a generated id."""
    return await _issue(controller, namespace, None, provider, to, description, otp)


@api_router.put("/otp/{id}")
async def set_otp(
    id: str,
    provider: str = Form(""),
    to: str = Form(""),
    description: str = Form(""),
    otp: str = Form(""),
    namespace: str = Depends(require_namespace),
    controller: OTPController = Depends(get_controller),
) -> JSONResponse:
    """Issue (or re-issue) an OTP, respecting the attempt budget and TTL."""
    return await _issue(controller, namespace, id, provider, to, description, otp)


@api_router.post("/otp/{id}")
async def check_otp(
    id: str,
    otp: str = Form(""),
    namespace: str = Depends(require_namespace),
    controller: OTPController = Depends(get_controller),
) -> JSONResponse:
    """Check user input against a stored OTP."""
    await controller.verify(namespace, id, otp)
    return send_response(True)


@page_router.get("/otp/{namespace}/{id}", response_class=HTMLResponse)
async def index(
    namespace: str,
    id: str,
    action: str = "",
    otp: str = "",
    controller: OTPController = Depends(get_controller),
) -> HTMLResponse:
    """Render the verification page (view, resend or one-click check)."""
    return await render_index(controller, namespace, id, action, otp)


@page_router.post("/otp/{namespace}/{id}", response_class=HTMLResponse)
async def submit(
    namespace: str,
    id: str,
    otp: str = Form(""),
    controller: OTPController = Depends(get_controller),
) -> HTMLResponse:
    """Verify a passcode submitted from the page."""
    return await render_index(controller, namespace, id, "check", otp)
