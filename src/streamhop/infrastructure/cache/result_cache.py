"""In-process TTL cache of successful resolutions."""

from __future__ import annotations

import threading
import time
from datetime import datetime, timezone

import structlog

from streamhop.domain.entities.resolution import (
    CacheKey,
    ResolutionRequest,
    ResolutionResult,
)

log = structlog.get_logger(__name__)


class _CacheEntry:
    """Time-bounded cache entry for a resolution result."""

    __slots__ = ("value", "expires_at")

    def __init__(self, value: ResolutionResult, ttl: float) -> None:
        self.value = value
        self.expires_at = time.monotonic() + ttl

    @property
    def is_expired(self) -> bool:
        return time.monotonic() >= self.expires_at


class TTLResultCache:
    """TTL map keyed by ``(content_id, media_type, season, episode, provider)``.

    An entry lives for ``min(ttl_seconds, seconds until result.expires_at)``.
    Expired entries are evicted lazily on lookup; when ``max_entries`` is
    exceeded the oldest insertions are dropped.
    """

    def __init__(self, *, ttl_seconds: float = 180.0, max_entries: int = 5000) -> None:
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._entries: dict[CacheKey, _CacheEntry] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def get(
        self, request: ResolutionRequest, provider_key: str
    ) -> ResolutionResult | None:
        key = request.cache_key(provider_key)
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.is_expired:
                del self._entries[key]
                log.debug("result_cache_expired", provider=provider_key)
                return None
            return entry.value

    def put(self, request: ResolutionRequest, result: ResolutionResult) -> None:
        remaining = (result.expires_at - datetime.now(timezone.utc)).total_seconds()
        lifetime = min(self._ttl, remaining)
        if lifetime <= 0:
            log.debug(
                "result_cache_skip_expired",
                provider=result.provider_key,
                remaining=remaining,
            )
            return

        key = request.cache_key(result.provider_key)
        with self._lock:
            # re-insert so insertion order tracks age
            self._entries.pop(key, None)
            self._entries[key] = _CacheEntry(result, lifetime)
            self._enforce_max_size()

    def invalidate(self, provider_key: str | None = None) -> int:
        with self._lock:
            if provider_key is None:
                count = len(self._entries)
                self._entries.clear()
            else:
                keys = [k for k in self._entries if k[4] == provider_key]
                for k in keys:
                    del self._entries[k]
                count = len(keys)
        if count:
            log.info("result_cache_invalidated", provider=provider_key, count=count)
        return count

    def _enforce_max_size(self) -> None:
        """Evict oldest entries when the map exceeds ``max_entries``."""
        if len(self._entries) <= self._max_entries:
            return
        excess = len(self._entries) - self._max_entries
        for k in list(self._entries)[:excess]:
            del self._entries[k]
