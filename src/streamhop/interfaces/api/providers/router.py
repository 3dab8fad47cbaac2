"""Provider diagnostics endpoints."""

from __future__ import annotations

from typing import cast

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from streamhop.interfaces.app_state import AppState
from streamhop.interfaces.presenter import format_health

router = APIRouter(prefix="/providers", tags=["providers"])


@router.get("/health")
async def provider_health(request: Request) -> JSONResponse:
    """Return per-provider health in priority order."""
    state = cast(AppState, request.app.state)
    providers = [format_health(h) for h in state.orchestrator.list_provider_health()]
    return JSONResponse(content={"providers": providers, "count": len(providers)})
