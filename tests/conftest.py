"""Shared test fixtures for streamhop test suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from streamhop.domain.entities.resolution import ResolutionRequest, ResolutionResult
from streamhop.domain.providers import (
    Base64Decode,
    HopStep,
    ProviderDescriptor,
    TokenExtractor,
)

MANIFEST_URL = "https://cdn.example/master.m3u8"

# ---------------------------------------------------------------------------
# Domain entity fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def movie_request() -> ResolutionRequest:
    """Minimal valid movie request."""
    return ResolutionRequest(content_id="42", media_type="movie")


@pytest.fixture()
def episode_request() -> ResolutionRequest:
    """Episode request with season/episode set."""
    return ResolutionRequest(
        content_id="1396", media_type="episode", season=1, episode=2
    )


@pytest.fixture()
def resolution_result() -> ResolutionResult:
    """Result expiring one hour from now."""
    return ResolutionResult(
        manifest_url=MANIFEST_URL,
        provider_key="alpha",
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        required_headers={"Referer": "https://rcp.example/"},
    )


# ---------------------------------------------------------------------------
# Provider descriptor fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def two_hop_descriptor() -> ProviderDescriptor:
    """Embed page with a JSON token -> RCP page with the payload in a div."""
    return ProviderDescriptor(
        key="embedrcp",
        priority=10,
        hops=(
            HopStep(
                url_template="https://embed.example/movie/{content_id}",
                episode_url_template=(
                    "https://embed.example/tv/{content_id}/{season}/{episode}"
                ),
                extractor=TokenExtractor(pattern=r'"next":"([^"]+)"'),
                referer="none",
            ),
            HopStep(
                url_template="https://rcp.example/rcp/{token}",
                extractor=TokenExtractor(pattern=r'<div id="{token}">([^<]+)</div>'),
                is_terminal=True,
            ),
        ),
        decode=(Base64Decode(),),
    )
