"""Port for the optional subtitle lookup service."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from streamhop.domain.entities.resolution import ResolutionRequest, SubtitleTrack


@runtime_checkable
class SubtitleSourcePort(Protocol):
    """Looks up subtitles by content id."""

    async def fetch(self, request: ResolutionRequest) -> list[SubtitleTrack]:
        """Return subtitle tracks for *request* (empty list if none)."""
        ...
