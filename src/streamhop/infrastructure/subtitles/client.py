"""Subtitle service client - async httpx implementation."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from streamhop.domain.entities.resolution import ResolutionRequest, SubtitleTrack

log = structlog.get_logger(__name__)

_MAX_TRACKS = 20


class HttpxSubtitleClient:
    """Queries a subtitle search endpoint by content id.

    Implements ``SubtitleSourcePort``.  The endpoint is expected to return
    a JSON list of ``{"url", "language", "display"|"label"}`` objects.
    Failures are logged and yield an empty list; subtitles never decide
    whether a resolution succeeds.
    """

    def __init__(
        self,
        *,
        url_template: str,
        http_client: httpx.AsyncClient,
        timeout_seconds: float = 5.0,
        user_agent: str | None = None,
        max_tracks: int = _MAX_TRACKS,
    ) -> None:
        self._template = url_template
        self._http = http_client
        self._timeout = timeout_seconds
        self._headers = {"User-Agent": user_agent} if user_agent else {}
        self._max_tracks = max_tracks

    def _url(self, request: ResolutionRequest) -> str:
        return self._template.format(
            content_id=request.content_id,
            media_type=request.media_type,
            season="" if request.season is None else request.season,
            episode="" if request.episode is None else request.episode,
        )

    @staticmethod
    def _to_track(item: Any) -> SubtitleTrack | None:
        if not isinstance(item, dict):
            return None
        url = item.get("url") or item.get("file")
        if not isinstance(url, str) or not url:
            return None
        language = str(item.get("language") or item.get("lang") or "")
        label = str(item.get("display") or item.get("label") or language)
        return SubtitleTrack(url=url, language=language, label=label)

    async def fetch(self, request: ResolutionRequest) -> list[SubtitleTrack]:
        url = self._url(request)
        try:
            resp = await self._http.get(
                url, headers=self._headers, timeout=self._timeout
            )
            resp.raise_for_status()
            payload = resp.json()
        except httpx.HTTPStatusError as e:
            log.info("subtitles_http_error", status=e.response.status_code, url=url)
            return []
        except httpx.HTTPError:
            log.warning("subtitles_network_error", url=url, exc_info=True)
            return []
        except ValueError:
            log.warning("subtitles_invalid_json", url=url)
            return []

        if not isinstance(payload, list):
            log.warning("subtitles_unexpected_shape", url=url)
            return []

        tracks = [t for t in (self._to_track(i) for i in payload) if t is not None]
        log.debug("subtitles_fetched", content_id=request.content_id, count=len(tracks))
        return tracks[: self._max_tracks]
