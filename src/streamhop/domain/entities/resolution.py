"""Domain entities for stream resolution.

Pure value objects - no framework dependencies, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

MediaType = Literal["movie", "episode"]

CacheKey = tuple[str, str, int | None, int | None, str]


@dataclass(frozen=True)
class ResolutionRequest:
    """A caller's request to resolve one piece of content.

    ``season``/``episode`` are only meaningful for ``media_type="episode"``.
    """

    content_id: str
    media_type: MediaType = "movie"
    season: int | None = None
    episode: int | None = None

    def __post_init__(self) -> None:
        if not self.content_id:
            raise ValueError("content_id must not be empty")
        if self.media_type not in ("movie", "episode"):
            raise ValueError(f"unsupported media_type: {self.media_type!r}")
        if self.media_type == "episode" and (
            self.season is None or self.episode is None
        ):
            raise ValueError("episode requests need season and episode")

    def cache_key(self, provider_key: str) -> CacheKey:
        """Return the result-cache key for this request and *provider_key*."""
        return (
            self.content_id,
            self.media_type,
            self.season,
            self.episode,
            provider_key,
        )


@dataclass(frozen=True)
class SubtitleTrack:
    """A subtitle file attached to a resolved stream."""

    url: str
    language: str = ""
    label: str = ""


@dataclass(frozen=True)
class ResolutionResult:
    """A validated manifest URL plus everything needed to play it.

    ``manifest_url`` is always the output of a complete, validated decode
    pipeline run for ``provider_key``.  ``playable_url`` is the optional
    playback-proxy rewrite of it.
    """

    manifest_url: str
    provider_key: str
    expires_at: datetime
    required_headers: dict[str, str] = field(default_factory=dict)
    subtitles: tuple[SubtitleTrack, ...] = ()
    playable_url: str | None = None

    @property
    def is_hls(self) -> bool:
        return ".m3u8" in self.manifest_url.lower()


@dataclass(frozen=True)
class ProviderHealth:
    """Operator-facing health snapshot of one provider."""

    provider_key: str
    enabled: bool
    state: str  # "closed", "open", "half_open", "disabled"
    priority: int = 0
    last_error: str | None = None
    last_success_at: datetime | None = None
    successes: int = 0
    failures: int = 0
