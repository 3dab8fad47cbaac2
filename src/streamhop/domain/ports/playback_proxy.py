"""Port for rewriting manifest URLs into client-playable URLs."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class PlaybackProxyPort(Protocol):
    """Rewrites a resolved manifest URL through an edge/CDN proxy.

    The proxy applies ``headers`` upstream so the client does not have to
    (residential IP, TLS fingerprint, Referer enforcement).
    """

    def rewrite(self, manifest_url: str, headers: dict[str, str]) -> str:
        """Return the URL the client should play."""
        ...
