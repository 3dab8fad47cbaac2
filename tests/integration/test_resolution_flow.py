"""Integration tests: YAML descriptors -> walker -> decoder -> orchestrator.

Real components end to end, upstream sites mocked with respx.
"""

from __future__ import annotations

import base64
import time
from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
import respx

from streamhop.application.use_cases import ResolutionOrchestrator
from streamhop.domain.entities.resolution import ResolutionRequest
from streamhop.domain.providers import AggregateResolutionError
from streamhop.infrastructure.cache import result_cache
from streamhop.infrastructure.config import load_config
from streamhop.interfaces.composition import build_orchestrator, build_registry

pytestmark = pytest.mark.integration

MANIFEST_URL = "https://cdn.example/master.m3u8"


def encoded_manifest(url: str = MANIFEST_URL) -> str:
    return base64.b64encode(url.encode()).decode()


def rcp_page(token: str, payload: str) -> str:
    return f'<html><body><div id="{token}">{payload}</div></body></html>'


def _orchestrator(
    provider_dir: Path, http_client: httpx.AsyncClient, **overrides: object
) -> ResolutionOrchestrator:
    config = load_config(
        cli_overrides={
            "provider_dir": str(provider_dir),
            "race_width": 1,
            "retries_on_unavailable": 0,
            **overrides,
        }
    )
    return build_orchestrator(
        config, http_client=http_client, registry=build_registry(config)
    )


def _mock_provider(
    host: str, token: str, payload: str
) -> tuple[respx.Route, respx.Route]:
    return (
        respx.get(url__regex=rf"https://{host}/(movie|tv)/.*").respond(
            200, text=f'{{"next":"{token}"}}'
        ),
        respx.get(f"https://{host}/rcp/{token}").respond(
            200, text=rcp_page(token, payload)
        ),
    )


class TestResolutionFlow:
    @respx.mock
    @pytest.mark.asyncio()
    async def test_primary_provider_resolves(
        self, provider_dir: Path, http_client: httpx.AsyncClient
    ) -> None:
        _mock_provider("primary.example", "TOK1", encoded_manifest())

        orchestrator = _orchestrator(provider_dir, http_client)
        result = await orchestrator.resolve(ResolutionRequest("42"))

        assert result.manifest_url == MANIFEST_URL
        assert result.provider_key == "primary"
        assert result.required_headers == {
            "Referer": "https://primary.example/",
            "Origin": "https://primary.example",
        }

    @respx.mock
    @pytest.mark.asyncio()
    async def test_wrong_shape_falls_back_to_next_provider(
        self, provider_dir: Path, http_client: httpx.AsyncClient
    ) -> None:
        # "ZW5jb2RlZA==" decodes to "encoded", not a manifest URL
        _mock_provider("primary.example", "TOK1", "ZW5jb2RlZA==")
        _mock_provider("backup.example", "TOK2", encoded_manifest())

        orchestrator = _orchestrator(provider_dir, http_client)
        result = await orchestrator.resolve(ResolutionRequest("42"))

        assert result.provider_key == "backup"
        assert result.manifest_url == MANIFEST_URL
        primary = orchestrator.list_provider_health()[0]
        assert primary.last_error.startswith("validation_failed")

    @respx.mock
    @pytest.mark.asyncio()
    async def test_episode_urls(
        self, provider_dir: Path, http_client: httpx.AsyncClient
    ) -> None:
        embed, _ = _mock_provider("primary.example", "TOK1", encoded_manifest())

        orchestrator = _orchestrator(provider_dir, http_client)
        await orchestrator.resolve_content("1396", "episode", season=1, episode=2)

        assert str(embed.calls.last.request.url) == (
            "https://primary.example/tv/1396/1/2"
        )

    @respx.mock
    @pytest.mark.asyncio()
    async def test_cache_avoids_refetching_until_ttl_expires(
        self, provider_dir: Path, http_client: httpx.AsyncClient
    ) -> None:
        embed, rcp = _mock_provider("primary.example", "TOK1", encoded_manifest())

        orchestrator = _orchestrator(provider_dir, http_client)
        first = await orchestrator.resolve(ResolutionRequest("42"))
        second = await orchestrator.resolve(ResolutionRequest("42"))

        assert second == first
        assert embed.call_count == 1
        assert rcp.call_count == 1

        expired = time.monotonic() + 181
        with patch.object(result_cache, "time") as fake_time:
            fake_time.monotonic.return_value = expired
            third = await orchestrator.resolve(ResolutionRequest("42"))

        assert third.manifest_url == first.manifest_url
        assert embed.call_count == 2
        assert rcp.call_count == 2

    @respx.mock
    @pytest.mark.asyncio()
    async def test_every_provider_failing(
        self, provider_dir: Path, http_client: httpx.AsyncClient
    ) -> None:
        respx.get(url__regex=r"https://primary\.example/.*").respond(
            503, text="<title>Just a moment...</title>"
        )
        respx.get(url__regex=r"https://backup\.example/.*").respond(
            200, text="<html>redesigned</html>"
        )

        orchestrator = _orchestrator(provider_dir, http_client)
        with pytest.raises(AggregateResolutionError) as exc_info:
            await orchestrator.resolve(ResolutionRequest("42"))

        assert exc_info.value.provider_keys == ["primary", "backup"]
        assert [a.kind for a in exc_info.value.attempts] == [
            "challenge_detected",
            "token_not_found",
        ]

    @respx.mock
    @pytest.mark.asyncio()
    async def test_disabled_provider_is_skipped(
        self, provider_dir: Path, http_client: httpx.AsyncClient
    ) -> None:
        primary, _ = _mock_provider("primary.example", "TOK1", encoded_manifest())
        _mock_provider("backup.example", "TOK2", encoded_manifest())

        orchestrator = _orchestrator(
            provider_dir, http_client, disabled_providers=["primary"]
        )
        result = await orchestrator.resolve(ResolutionRequest("42"))

        assert result.provider_key == "backup"
        assert not primary.called

    @respx.mock
    @pytest.mark.asyncio()
    async def test_playback_proxy_rewrite(
        self, provider_dir: Path, http_client: httpx.AsyncClient
    ) -> None:
        _mock_provider("primary.example", "TOK1", encoded_manifest())

        orchestrator = _orchestrator(
            provider_dir,
            http_client,
            playback_proxy_url_template="https://proxy.example/p?u={url}&r={referer}",
        )
        result = await orchestrator.resolve(ResolutionRequest("42"))

        assert result.playable_url == (
            "https://proxy.example/p"
            "?u=https%3A%2F%2Fcdn.example%2Fmaster.m3u8"
            "&r=https%3A%2F%2Fprimary.example%2F"
        )
