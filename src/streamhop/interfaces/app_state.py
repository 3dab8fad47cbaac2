"""Typed view of ``app.state`` shared by the routers."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from streamhop.infrastructure.config import AppConfig

if TYPE_CHECKING:
    from streamhop.application.use_cases.resolve_stream import ResolutionOrchestrator
    from streamhop.infrastructure.providers import ProviderRegistry


class AppState(State):
    """Set by ``create_app`` (config) and ``composition.lifespan`` (the rest)."""

    config: AppConfig
    http_client: httpx.AsyncClient
    providers: ProviderRegistry
    orchestrator: ResolutionOrchestrator
