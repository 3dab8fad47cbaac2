"""End-to-end tests for the HTTP API.

Runs the real application (create_app + lifespan wiring) against provider
descriptors on disk, with upstream embed sites mocked via respx.
"""

from __future__ import annotations

import base64
from collections.abc import Iterator
from pathlib import Path

import pytest
import respx
import yaml
from fastapi.testclient import TestClient

from streamhop.infrastructure.config import load_config
from streamhop.interfaces.app import create_app

MANIFEST_URL = "https://cdn.example/hls/master.m3u8?expires=4102444800"


def _descriptor(key: str, priority: int, host: str) -> dict:
    return {
        "key": key,
        "priority": priority,
        "hops": [
            {
                "url": f"https://{host}/embed/{{content_id}}",
                "episode_url": (
                    f"https://{host}/embed/{{content_id}}/{{season}}x{{episode}}"
                ),
                "referer": "none",
                "extract": {"pattern": r'data-hash="([^"]+)"'},
            },
            {
                "url": f"https://{host}/source/{{token}}",
                "extract": {"pattern": r'file:\s*"([^"]+)"'},
            },
        ],
        "decode": [{"type": "reverse"}, {"type": "base64"}],
        "result": {"must_contain": ".m3u8"},
        "playback_headers": {"Referer": f"https://{host}/"},
    }


def _encode(url: str) -> str:
    return base64.b64encode(url.encode()).decode()[::-1]


@pytest.fixture()
def provider_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "providers"
    directory.mkdir()
    for key, priority, host in (
        ("alpha", 10, "alpha.example"),
        ("bravo", 20, "bravo.example"),
    ):
        (directory / f"{key}.yaml").write_text(
            yaml.safe_dump(_descriptor(key, priority, host)), encoding="utf-8"
        )
    return directory


@pytest.fixture()
def client(provider_dir: Path) -> Iterator[TestClient]:
    config = load_config(
        cli_overrides={
            "environment": "test",
            "provider_dir": str(provider_dir),
            "race_width": 1,
            "retries_on_unavailable": 0,
            "playback_proxy_url_template": "https://edge.example/m3u8?url={url}",
        }
    )
    with TestClient(create_app(config)) as test_client:
        yield test_client


def _mock_site(router: respx.MockRouter, host: str, body: str) -> None:
    router.get(url__regex=rf"https://{host}/embed/.*").respond(
        200, text='<div id="player" data-hash="h4sh"></div>'
    )
    router.get(f"https://{host}/source/h4sh").respond(200, text=body)


class TestResolveEndpoint:
    def test_movie_resolution(self, client: TestClient) -> None:
        with respx.mock(assert_all_called=False) as router:
            _mock_site(router, "alpha.example", f'file: "{_encode(MANIFEST_URL)}"')
            resp = client.get("/api/v1/resolve/movie/550")

        assert resp.status_code == 200
        body = resp.json()
        assert body["manifest_url"] == MANIFEST_URL
        assert body["provider"] == "alpha"
        assert body["is_hls"] is True
        assert body["expires_at"].startswith("2100-01-01")
        assert body["required_headers"] == {"Referer": "https://alpha.example/"}
        assert body["playable_url"].startswith("https://edge.example/m3u8?url=https%3A")

    def test_episode_falls_back_to_second_provider(self, client: TestClient) -> None:
        with respx.mock(assert_all_called=False) as router:
            _mock_site(router, "alpha.example", "<html>player moved</html>")
            _mock_site(router, "bravo.example", f'file: "{_encode(MANIFEST_URL)}"')
            resp = client.get("/api/v1/resolve/episode/1396?season=1&episode=2")

        assert resp.status_code == 200
        assert resp.json()["provider"] == "bravo"

    def test_no_stream_found(self, client: TestClient) -> None:
        with respx.mock(assert_all_called=False) as router:
            router.get(url__regex=r"https://(alpha|bravo)\.example/.*").respond(502)
            resp = client.get("/api/v1/resolve/movie/550")

        assert resp.status_code == 404
        assert resp.json() == {
            "error": "no_stream_found",
            "providers": ["alpha", "bravo"],
        }

    def test_invalid_episode_request(self, client: TestClient) -> None:
        resp = client.get("/api/v1/resolve/episode/1396")
        assert resp.status_code == 422


class TestDiagnostics:
    def test_healthz(self, client: TestClient) -> None:
        resp = client.get("/api/v1/healthz")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "providers": 2}

    def test_provider_health_after_failure(self, client: TestClient) -> None:
        with respx.mock(assert_all_called=False) as router:
            _mock_site(router, "alpha.example", "<html>player moved</html>")
            _mock_site(router, "bravo.example", f'file: "{_encode(MANIFEST_URL)}"')
            client.get("/api/v1/resolve/movie/550")

        resp = client.get("/api/v1/providers/health")
        assert resp.status_code == 200
        alpha, bravo = resp.json()["providers"]
        assert alpha["provider_key"] == "alpha"
        assert alpha["last_error"].startswith("token_not_found")
        assert alpha["failures"] == 1
        assert bravo["successes"] == 1
        assert bravo["last_success_at"] is not None
