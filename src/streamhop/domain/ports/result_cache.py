"""Result Cache Port - memoizes successful resolutions for a short TTL."""

from __future__ import annotations

from typing import Protocol

from streamhop.domain.entities.resolution import ResolutionRequest, ResolutionResult


class ResultCachePort(Protocol):
    """Short-lived cache of ``ResolutionResult`` per (request, provider).

    Implementations must tolerate concurrent access from simultaneous
    ``resolve()`` calls.
    """

    def get(
        self, request: ResolutionRequest, provider_key: str
    ) -> ResolutionResult | None:
        """Return a live entry, or None (expired entries are evicted)."""
        ...

    def put(self, request: ResolutionRequest, result: ResolutionResult) -> None:
        """Store *result* under ``(request, result.provider_key)``."""
        ...

    def invalidate(self, provider_key: str | None = None) -> int:
        """Drop entries (all, or only one provider's). Returns count removed."""
        ...
