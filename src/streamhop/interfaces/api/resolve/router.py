"""Resolution endpoint."""

from __future__ import annotations

from typing import cast

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from streamhop.domain.entities.resolution import MediaType, ResolutionRequest
from streamhop.domain.providers import AggregateResolutionError
from streamhop.interfaces.app_state import AppState
from streamhop.interfaces.presenter import format_result

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/resolve", tags=["resolve"])


@router.get("/{media_type}/{content_id}")
async def resolve(
    request: Request,
    media_type: MediaType,
    content_id: str,
    season: int | None = Query(default=None, ge=0, description="Season number."),
    episode: int | None = Query(default=None, ge=0, description="Episode number."),
) -> JSONResponse:
    """Resolve a content id to a playable manifest.

    Returns 404 with the attempted provider keys when every provider
    failed; per-step failure detail is only exposed via provider health.
    """
    state = cast(AppState, request.app.state)

    try:
        resolution_request = ResolutionRequest(
            content_id=content_id,
            media_type=media_type,
            season=season,
            episode=episode,
        )
    except ValueError as e:
        return JSONResponse(
            status_code=422,
            content={"error": "invalid_request", "detail": str(e)},
        )

    try:
        result = await state.orchestrator.resolve(resolution_request)
    except AggregateResolutionError as e:
        log.info(
            "resolve_no_stream_found",
            content_id=content_id,
            providers=e.provider_keys,
        )
        return JSONResponse(
            status_code=404,
            content={"error": "no_stream_found", "providers": e.provider_keys},
        )

    return JSONResponse(content=format_result(result))
