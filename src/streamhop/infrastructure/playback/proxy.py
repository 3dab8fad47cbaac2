"""Template-based playback proxy adapter.

The proxy itself (an edge worker that re-fetches manifests and segments
with the right headers) is external; this adapter only builds the URL
the client should play through it.

Template placeholders (all URL-encoded):
    {url}      the manifest URL
    {referer}  the ``Referer`` the upstream requires ("" if none)
    {origin}   the ``Origin`` the upstream requires ("" if none)
    {headers}  every required header as base64url JSON

Example:
    https://proxy.example/stream/?url={url}&referer={referer}
"""

from __future__ import annotations

import base64
import json
from urllib.parse import quote

import structlog

log = structlog.get_logger(__name__)


def encode_headers(headers: dict[str, str]) -> str:
    """Encode *headers* as unpadded base64url JSON (sorted keys)."""
    raw = json.dumps(headers, sort_keys=True, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


class TemplatePlaybackProxy:
    """Implements ``PlaybackProxyPort`` by filling a URL template."""

    def __init__(self, url_template: str) -> None:
        if "{url}" not in url_template:
            raise ValueError("playback proxy template must contain '{url}'")
        self._template = url_template

    def rewrite(self, manifest_url: str, headers: dict[str, str]) -> str:
        lowered = {k.lower(): v for k, v in headers.items()}
        values = {
            "url": quote(manifest_url, safe=""),
            "referer": quote(lowered.get("referer", ""), safe=""),
            "origin": quote(lowered.get("origin", ""), safe=""),
            "headers": encode_headers(headers),
        }
        playable = self._template
        for name, value in values.items():
            playable = playable.replace("{" + name + "}", value)
        log.debug("playback_url_rewritten", manifest_url=manifest_url[:80])
        return playable
