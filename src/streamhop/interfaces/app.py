"""FastAPI application factory."""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable

import structlog
from fastapi import FastAPI, Request
from starlette.responses import Response

from streamhop import __version__
from streamhop.infrastructure.config import AppConfig
from streamhop.interfaces.api.providers.router import router as providers_router
from streamhop.interfaces.api.resolve.router import router as resolve_router
from streamhop.interfaces.app_state import AppState
from streamhop.interfaces.composition import lifespan

log = structlog.get_logger(__name__)

API_PREFIX = "/api/v1"


async def healthz(request: Request) -> dict[str, str | int]:
    """Process liveness plus the number of loaded provider descriptors."""
    registry = getattr(request.app.state, "providers", None)
    loaded = len(registry.keys()) if registry is not None else 0
    return {"status": "ok", "providers": loaded}


async def access_log(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        return response
    finally:
        log.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=status_code,
            elapsed_ms=round((time.perf_counter() - started) * 1000.0, 2),
            client=request.client.host if request.client else None,
        )


def create_app(config: AppConfig) -> FastAPI:
    """Wire routes and middleware; network resources are opened in ``lifespan``."""
    app = FastAPI(
        title=config.app_name,
        description="Resolves media ids to playable stream manifests",
        version=__version__,
        lifespan=lifespan,
    )
    app.state = AppState()
    app.state.config = config

    app.include_router(resolve_router, prefix=API_PREFIX)
    app.include_router(providers_router, prefix=API_PREFIX)
    app.add_api_route(f"{API_PREFIX}/healthz", healthz, methods=["GET"])
    app.middleware("http")(access_log)
    return app
