"""JSON presentation of resolution results and provider health."""

from __future__ import annotations

from typing import Any

from streamhop.domain.entities.resolution import ProviderHealth, ResolutionResult


def format_result(result: ResolutionResult) -> dict[str, Any]:
    """Convert a ResolutionResult dataclass to its JSON shape."""
    return {
        "manifest_url": result.manifest_url,
        "playable_url": result.playable_url,
        "provider": result.provider_key,
        "expires_at": result.expires_at.isoformat(),
        "is_hls": result.is_hls,
        "required_headers": result.required_headers,
        "subtitles": [
            {"url": s.url, "language": s.language, "label": s.label}
            for s in result.subtitles
        ],
    }


def format_health(health: ProviderHealth) -> dict[str, Any]:
    return {
        "provider_key": health.provider_key,
        "enabled": health.enabled,
        "state": health.state,
        "priority": health.priority,
        "last_error": health.last_error,
        "last_success_at": (
            health.last_success_at.isoformat() if health.last_success_at else None
        ),
        "successes": health.successes,
        "failures": health.failures,
    }
