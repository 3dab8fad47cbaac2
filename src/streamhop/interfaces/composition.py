"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from streamhop.application.use_cases.resolve_stream import ResolutionOrchestrator
from streamhop.infrastructure.cache import TTLResultCache, derive_expires_at
from streamhop.infrastructure.config.schema import AppConfig
from streamhop.infrastructure.decoding import PipelineDecoder
from streamhop.infrastructure.hop_chain import HopChainWalker
from streamhop.infrastructure.playback import TemplatePlaybackProxy
from streamhop.infrastructure.providers import ProviderCircuitBreaker, ProviderRegistry
from streamhop.infrastructure.subtitles import HttpxSubtitleClient
from streamhop.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def build_http_client(config: AppConfig) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
        follow_redirects=config.http_follow_redirects,
    )


def build_registry(config: AppConfig) -> ProviderRegistry:
    breaker = ProviderCircuitBreaker(
        failure_threshold=config.circuit_breaker.failure_threshold,
        window_seconds=config.circuit_breaker.window_seconds,
        cooldown_seconds=config.circuit_breaker.cooldown_seconds,
    )
    return ProviderRegistry.from_directory(
        config.provider_dir,
        breaker=breaker,
        disabled=config.disabled_providers,
    )


def build_orchestrator(
    config: AppConfig,
    *,
    http_client: httpx.AsyncClient,
    registry: ProviderRegistry,
) -> ResolutionOrchestrator:
    """Wire the resolution use case from configuration."""
    walker = HopChainWalker(
        http_client,
        timeout_seconds=config.http_timeout_seconds,
        user_agent=config.http_user_agent,
        follow_redirects=config.http_follow_redirects,
    )
    cache = TTLResultCache(
        ttl_seconds=config.cache_ttl_seconds,
        max_entries=config.cache_max_entries,
    )

    proxy = None
    if config.playback.proxy_url_template:
        proxy = TemplatePlaybackProxy(config.playback.proxy_url_template)
        log.info("playback_proxy_configured")

    subtitles = None
    if config.subtitles.url_template:
        subtitles = HttpxSubtitleClient(
            url_template=config.subtitles.url_template,
            http_client=http_client,
            timeout_seconds=config.subtitles.timeout_seconds,
            user_agent=config.http_user_agent,
        )
        log.info("subtitle_source_configured")

    return ResolutionOrchestrator(
        registry=registry,
        walker=walker,
        decoder=PipelineDecoder(),
        cache=cache,
        expiry_fn=derive_expires_at,
        playback_proxy=proxy,
        subtitles=subtitles,
        race_width=config.resolution.race_width,
        attempt_timeout_seconds=config.resolution.attempt_timeout_seconds,
        deadline_seconds=config.resolution.deadline_seconds,
        retries_on_unavailable=config.resolution.retries_on_unavailable,
        default_expiry_seconds=config.resolution.default_expiry_seconds,
        keystream_reset_after=config.circuit_breaker.keystream_reset_after,
        subtitle_timeout_seconds=config.subtitles.timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: Initialize and cleanup all resources (DI Composition Root).

    Order matters:
        1. HTTP Client (shared by walker and subtitle client)
        2. Provider Registry (descriptors + circuit breaker)
        3. Resolution Orchestrator (walker, decoder, cache, proxy, subtitles)
    """
    state = cast(AppState, app.state)
    config = state.config

    state.http_client = build_http_client(config)
    log.info("http_client_initialized", timeout=config.http_timeout_seconds)

    state.providers = build_registry(config)
    log.info("provider_registry_initialized", providers=state.providers.keys())

    state.orchestrator = build_orchestrator(
        config, http_client=state.http_client, registry=state.providers
    )
    log.info("app_startup_complete")

    try:
        yield
    finally:
        await state.http_client.aclose()
        log.info("http_client_closed")
        log.info("app_shutdown_complete")
