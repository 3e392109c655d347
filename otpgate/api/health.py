"""
Health Check
============
Liveness and store connectivity checks.
"""

import time
from enum import Enum
from typing import List, Optional

import structlog
from fastapi import APIRouter, Request, Response
from pydantic import BaseModel

logger = structlog.get_logger(__name__)


class GatewayState(str, Enum):
    OK = "ok"
    DEGRADED = "degraded"


class StoreHealth(BaseModel):
    backend: str
    reachable: bool
    ping_ms: Optional[float] = None


class GatewayHealth(BaseModel):
    state: GatewayState
    service: str
    version: str
    store: StoreHealth
    providers: List[str]
    checked_at: float


def create_health_router(service_name: str, version: str) -> APIRouter:
    """
    Build the health router.

    ``/health`` pings the OTP store and answers 503 when it is unreachable,
    since no OTP can be issued or checked without it.
    """
    router = APIRouter(tags=["Health"])

    @router.get("/health", response_model=GatewayHealth)
    async def gateway_health(request: Request, response: Response) -> GatewayHealth:
        controller = request.app.state.controller
        store = controller.store

        started = time.perf_counter()
        reachable = await store.ping()
        elapsed_ms = round((time.perf_counter() - started) * 1000, 2)

        if not reachable:
            response.status_code = 503
            logger.error("OTP store unreachable", backend=type(store).__name__)

        return GatewayHealth(
            state=GatewayState.OK if reachable else GatewayState.DEGRADED,
            service=service_name,
            version=version,
            store=StoreHealth(
                backend=type(store).__name__,
                reachable=reachable,
                ping_ms=elapsed_ms if reachable else None,
            ),
            providers=controller.list_providers(),
            checked_at=time.time(),
        )

    @router.get("/health/live")
    async def liveness():
        """Process is up; does not touch the store."""
        return {"state": "alive"}

    return router
