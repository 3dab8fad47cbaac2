"""Shared fixtures for integration tests.

These tests use real infrastructure components (HopChainWalker,
PipelineDecoder, ProviderRegistry, TTLResultCache) with mocked HTTP via respx.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

import httpx
import pytest
import yaml


def write_descriptor(directory: Path, data: dict[str, Any]) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{data['key']}.yaml"
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


def embed_descriptor(key: str, priority: int, host: str) -> dict[str, Any]:
    """Two-hop embed -> rcp descriptor with a base64 payload."""
    return {
        "key": key,
        "priority": priority,
        "hops": [
            {
                "url": f"https://{host}/movie/{{content_id}}",
                "episode_url": (
                    f"https://{host}/tv/{{content_id}}/{{season}}/{{episode}}"
                ),
                "referer": "none",
                "extract": {"pattern": '"next":"([^"]+)"'},
            },
            {
                "url": f"https://{host}/rcp/{{token}}",
                "extract": {"pattern": '<div id="{token}">([^<]+)</div>'},
            },
        ],
        "decode": [{"type": "base64"}],
        "result": {"must_contain": ".m3u8"},
    }


@pytest.fixture()
async def http_client() -> AsyncIterator[httpx.AsyncClient]:
    """Real httpx.AsyncClient for use with respx mocking."""
    async with httpx.AsyncClient() as client:
        yield client


@pytest.fixture()
def provider_dir(tmp_path: Path) -> Path:
    """Two providers: 'primary' (priority 10) and 'backup' (priority 20)."""
    directory = tmp_path / "providers"
    write_descriptor(directory, embed_descriptor("primary", 10, "primary.example"))
    write_descriptor(directory, embed_descriptor("backup", 20, "backup.example"))
    return directory
