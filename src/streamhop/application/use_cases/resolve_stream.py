"""Stream resolution use case.

ResolutionRequest -> cache lookup -> bounded race over enabled providers
(hop chain -> decode pipeline -> validation) -> ResolutionResult.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime
from typing import Protocol
from urllib.parse import urlsplit

import structlog

from streamhop.domain.entities.resolution import (
    MediaType,
    ProviderHealth,
    ResolutionRequest,
    ResolutionResult,
    SubtitleTrack,
)
from streamhop.domain.ports import (
    PlaybackProxyPort,
    ProviderRegistryPort,
    ResultCachePort,
    SubtitleSourcePort,
)
from streamhop.domain.providers import (
    AggregateResolutionError,
    ProviderDescriptor,
    ProviderTimeout,
    ResolutionError,
    UpstreamUnavailable,
    ValidationFailed,
)

# ---------------------------------------------------------------------------
# Protocols - what this use case needs from infrastructure.
# ---------------------------------------------------------------------------


class _RawPayload(Protocol):
    payload: str
    final_url: str


class _HopWalker(Protocol):
    async def walk(
        self, descriptor: ProviderDescriptor, request: ResolutionRequest
    ) -> _RawPayload: ...


class _Decoded(Protocol):
    manifest_url: str
    subtitles: tuple[SubtitleTrack, ...]


class _Decoder(Protocol):
    def decode(self, descriptor: ProviderDescriptor, raw_payload: str) -> _Decoded: ...

    def reset_keystreams(self, provider_key: str) -> int: ...


# derive_expires_at(manifest_url, default_seconds=...) -> datetime
_ExpiryFn = Callable[..., datetime]

log = structlog.get_logger(__name__)


def _default_playback_headers(final_url: str) -> dict[str, str]:
    parts = urlsplit(final_url)
    if not parts.scheme or not parts.netloc:
        return {}
    origin = f"{parts.scheme}://{parts.netloc}"
    return {"Referer": f"{origin}/", "Origin": origin}


class ResolutionOrchestrator:
    """Resolves a request against the provider registry.

    A provider never aborts the whole resolution: its failure is recorded
    and the next provider runs.  Only an exhausted provider list (or the
    overall deadline) surfaces, as one ``AggregateResolutionError``.
    """

    def __init__(
        self,
        *,
        registry: ProviderRegistryPort,
        walker: _HopWalker,
        decoder: _Decoder,
        cache: ResultCachePort,
        expiry_fn: _ExpiryFn,
        playback_proxy: PlaybackProxyPort | None = None,
        subtitles: SubtitleSourcePort | None = None,
        race_width: int = 2,
        attempt_timeout_seconds: float = 20.0,
        deadline_seconds: float = 45.0,
        retries_on_unavailable: int = 1,
        default_expiry_seconds: float = 300.0,
        keystream_reset_after: int = 2,
        subtitle_timeout_seconds: float = 5.0,
    ) -> None:
        self._registry = registry
        self._walker = walker
        self._decoder = decoder
        self._cache = cache
        self._expiry_fn = expiry_fn
        self._proxy = playback_proxy
        self._subtitles = subtitles
        self._race_width = max(1, race_width)
        self._attempt_timeout = attempt_timeout_seconds
        self._deadline = deadline_seconds
        self._retries = max(0, retries_on_unavailable)
        self._default_expiry = default_expiry_seconds
        self._keystream_reset_after = keystream_reset_after
        self._subtitle_timeout = subtitle_timeout_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def resolve_content(
        self,
        content_id: str,
        media_type: MediaType = "movie",
        season: int | None = None,
        episode: int | None = None,
    ) -> ResolutionResult:
        """Convenience wrapper; raises ``ValueError`` for malformed input."""
        request = ResolutionRequest(
            content_id=content_id,
            media_type=media_type,
            season=season,
            episode=episode,
        )
        return await self.resolve(request)

    def list_provider_health(self) -> list[ProviderHealth]:
        return self._registry.health()

    async def resolve(self, request: ResolutionRequest) -> ResolutionResult:
        """Return the first validated result, or raise ``AggregateResolutionError``."""
        providers = self._registry.list_enabled(sorted_by_priority=True)

        for descriptor in providers:
            cached = self._cache.get(request, descriptor.key)
            if cached is not None:
                log.info(
                    "resolution_cache_hit",
                    content_id=request.content_id,
                    provider=descriptor.key,
                )
                return cached

        if not providers:
            log.warning(
                "resolution_no_enabled_providers", content_id=request.content_id
            )
            raise AggregateResolutionError([])

        log.info(
            "resolution_started",
            content_id=request.content_id,
            media_type=request.media_type,
            providers=[d.key for d in providers],
        )

        result, errors = await self._race(request, providers)
        if result is None:
            attempts = [errors[d.key] for d in providers if d.key in errors]
            log.warning(
                "resolution_exhausted",
                content_id=request.content_id,
                attempts=[f"{a.provider_key}={a.kind}" for a in attempts],
            )
            raise AggregateResolutionError(attempts)

        result = await self._enrich(request, result)
        self._cache.put(request, result)
        log.info(
            "resolution_succeeded",
            content_id=request.content_id,
            provider=result.provider_key,
            failed=sorted(errors),
        )
        return result

    # ------------------------------------------------------------------
    # Race
    # ------------------------------------------------------------------

    async def _race(
        self, request: ResolutionRequest, providers: list[ProviderDescriptor]
    ) -> tuple[ResolutionResult | None, dict[str, ResolutionError]]:
        """Run at most ``race_width`` attempts at a time, in priority order.

        The first success wins and cancels the rest.  Attempts still running
        at the deadline are cancelled and recorded as ``ProviderTimeout``;
        providers that never started are not reported.
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._deadline
        order = {d.key: i for i, d in enumerate(providers)}
        queue = list(providers)
        pending: dict[asyncio.Task[ResolutionResult], ProviderDescriptor] = {}
        errors: dict[str, ResolutionError] = {}

        try:
            while queue or pending:
                while queue and len(pending) < self._race_width:
                    descriptor = queue.pop(0)
                    task = asyncio.create_task(
                        self._attempt(descriptor, request),
                        name=f"resolve:{descriptor.key}",
                    )
                    pending[task] = descriptor

                remaining = deadline - loop.time()
                if remaining <= 0:
                    break
                done, _ = await asyncio.wait(
                    pending, timeout=remaining, return_when=asyncio.FIRST_COMPLETED
                )
                if not done:
                    break

                winners: list[tuple[int, ResolutionResult]] = []
                for task in done:
                    descriptor = pending.pop(task)
                    exc = task.exception()
                    if exc is None:
                        winners.append((order[descriptor.key], task.result()))
                    elif isinstance(exc, ResolutionError):
                        errors[descriptor.key] = exc
                    else:
                        # _attempt converts everything; keep the task contract
                        raise exc
                if winners:
                    winners.sort(key=lambda w: w[0])
                    return winners[0][1], errors

            for descriptor in pending.values():
                error = ProviderTimeout(
                    f"resolution deadline of {self._deadline}s exceeded",
                    provider_key=descriptor.key,
                )
                errors[descriptor.key] = error
                self._registry.record_failure(descriptor.key, error)
                log.warning(
                    "provider_attempt_deadline",
                    provider=descriptor.key,
                    deadline=self._deadline,
                )
            return None, errors
        finally:
            # Losers and deadline stragglers are cancelled, not awaited.
            for task in pending:
                task.cancel()

    # ------------------------------------------------------------------
    # Single provider
    # ------------------------------------------------------------------

    async def _attempt(
        self, descriptor: ProviderDescriptor, request: ResolutionRequest
    ) -> ResolutionResult:
        """One provider with its retry budget; raises its final error."""
        tries = 1 + self._retries
        for attempt in range(1, tries + 1):
            try:
                result = await asyncio.wait_for(
                    self._run_once(descriptor, request),
                    timeout=self._attempt_timeout,
                )
            except TimeoutError:
                error: ResolutionError = ProviderTimeout(
                    f"attempt exceeded {self._attempt_timeout}s",
                    provider_key=descriptor.key,
                )
            except ResolutionError as e:
                error = e
            except Exception as e:
                log.exception("provider_attempt_crashed", provider=descriptor.key)
                error = UpstreamUnavailable(
                    f"unexpected {type(e).__name__}: {e}",
                    provider_key=descriptor.key,
                )
            else:
                self._registry.record_success(descriptor.key)
                log.info(
                    "provider_attempt_succeeded",
                    provider=descriptor.key,
                    attempt=attempt,
                )
                return result

            if not error.provider_key:
                error.provider_key = descriptor.key

            if error.retryable and attempt < tries:
                log.info(
                    "provider_attempt_retry",
                    provider=descriptor.key,
                    attempt=attempt,
                    error=error.kind,
                )
                continue

            self._on_failure(descriptor, error)
            raise error

        raise AssertionError("unreachable")  # pragma: no cover

    async def _run_once(
        self, descriptor: ProviderDescriptor, request: ResolutionRequest
    ) -> ResolutionResult:
        raw = await self._walker.walk(descriptor, request)
        decoded = self._decoder.decode(descriptor, raw.payload)
        headers = dict(descriptor.playback_headers) or _default_playback_headers(
            raw.final_url
        )
        return ResolutionResult(
            manifest_url=decoded.manifest_url,
            provider_key=descriptor.key,
            expires_at=self._expiry_fn(
                decoded.manifest_url, default_seconds=self._default_expiry
            ),
            required_headers=headers,
            subtitles=tuple(decoded.subtitles),
        )

    def _on_failure(
        self, descriptor: ProviderDescriptor, error: ResolutionError
    ) -> None:
        consecutive = self._registry.record_failure(descriptor.key, error)
        log.warning(
            "provider_attempt_failed",
            provider=descriptor.key,
            error=error.kind,
            detail=error.message,
        )
        if isinstance(error, ValidationFailed) and (
            consecutive >= self._keystream_reset_after
        ):
            dropped = self._decoder.reset_keystreams(descriptor.key)
            if dropped:
                log.warning(
                    "provider_keystream_reset",
                    provider=descriptor.key,
                    consecutive_validation_failures=consecutive,
                )

    # ------------------------------------------------------------------
    # Enrichment
    # ------------------------------------------------------------------

    async def _enrich(
        self, request: ResolutionRequest, result: ResolutionResult
    ) -> ResolutionResult:
        subtitles = result.subtitles
        if self._subtitles is not None:
            fetched = await self._fetch_subtitles(self._subtitles, request)
            subtitles = _merge_subtitles(subtitles, fetched)

        playable_url = None
        if self._proxy is not None:
            playable_url = self._proxy.rewrite(
                result.manifest_url, result.required_headers
            )

        return replace(result, subtitles=subtitles, playable_url=playable_url)

    async def _fetch_subtitles(
        self, source: SubtitleSourcePort, request: ResolutionRequest
    ) -> list[SubtitleTrack]:
        try:
            return await asyncio.wait_for(
                source.fetch(request), timeout=self._subtitle_timeout
            )
        except TimeoutError:
            log.info("subtitles_timeout", content_id=request.content_id)
        except Exception:
            log.warning(
                "subtitles_fetch_failed", content_id=request.content_id, exc_info=True
            )
        return []


def _merge_subtitles(
    primary: tuple[SubtitleTrack, ...], extra: list[SubtitleTrack]
) -> tuple[SubtitleTrack, ...]:
    seen = {t.url for t in primary}
    merged = list(primary)
    for track in extra:
        if track.url not in seen:
            seen.add(track.url)
            merged.append(track)
    return tuple(merged)
