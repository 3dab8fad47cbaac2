"""Hardcoded default configuration values."""

from __future__ import annotations

from typing import Any

DEFAULT_CONFIG: dict[str, Any] = {
    "app_name": "streamhop",
    "environment": "dev",
    "providers": {
        "provider_dir": "./providers",
        "disabled": [],
    },
    "http": {
        "timeout_seconds": 8.0,
        "follow_redirects": True,
        "user_agent": (
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
        ),
    },
    "resolution": {
        "race_width": 2,
        "attempt_timeout_seconds": 20.0,
        "deadline_seconds": 45.0,
        "retries_on_unavailable": 1,
        "default_expiry_seconds": 300,
    },
    "circuit_breaker": {
        "failure_threshold": 3,
        "window_seconds": 300.0,
        "cooldown_seconds": 600.0,
        "keystream_reset_after": 2,
    },
    "cache": {
        "ttl_seconds": 180,
        "max_entries": 5000,
    },
    "playback": {
        "proxy_url_template": None,
    },
    "subtitles": {
        "url_template": None,
        "timeout_seconds": 5.0,
    },
    "logging": {
        "level": "INFO",
        "format": None,  # Derived from environment in schema.py
    },
}
