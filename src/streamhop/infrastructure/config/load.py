"""Layered configuration: defaults < YAML < environment < CLI overrides.

Every layer is first brought into the sectioned shape used by
``config.yaml`` (``http.timeout_seconds``); flat ENV/CLI keys such as
``http_timeout_seconds`` are moved into their section.  The merged
result is validated once by ``AppConfig``.
"""

from __future__ import annotations

import copy
from collections.abc import Iterable, Mapping
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from .defaults import DEFAULT_CONFIG
from .schema import AppConfig, EnvOverrides

_TOP_LEVEL_KEYS = ("app_name", "environment")

# section -> {flat ENV/CLI key: key inside the section}
_SECTION_FIELDS: dict[str, dict[str, str]] = {
    "providers": {
        "provider_dir": "provider_dir",
        "disabled_providers": "disabled",
    },
    "http": {
        "http_timeout_seconds": "timeout_seconds",
        "http_follow_redirects": "follow_redirects",
        "http_user_agent": "user_agent",
    },
    "resolution": {
        "race_width": "race_width",
        "attempt_timeout_seconds": "attempt_timeout_seconds",
        "deadline_seconds": "deadline_seconds",
        "retries_on_unavailable": "retries_on_unavailable",
        "default_expiry_seconds": "default_expiry_seconds",
    },
    "circuit_breaker": {
        "breaker_failure_threshold": "failure_threshold",
        "breaker_window_seconds": "window_seconds",
        "breaker_cooldown_seconds": "cooldown_seconds",
        "keystream_reset_after": "keystream_reset_after",
    },
    "cache": {
        "cache_ttl_seconds": "ttl_seconds",
        "cache_max_entries": "max_entries",
    },
    "playback": {"playback_proxy_url_template": "proxy_url_template"},
    "subtitles": {
        "subtitles_url_template": "url_template",
        "subtitles_timeout_seconds": "timeout_seconds",
    },
    "logging": {"log_level": "level", "log_format": "format"},
}

FLAT_KEYS: dict[str, tuple[str, str]] = {
    flat: (section, key)
    for section, fields in _SECTION_FIELDS.items()
    for flat, key in fields.items()
}


def to_sections(layer: Mapping[str, Any]) -> dict[str, Any]:
    """Return *layer* in sectioned form; unknown keys are dropped."""
    sectioned: dict[str, Any] = {k: layer[k] for k in _TOP_LEVEL_KEYS if k in layer}
    for section in _SECTION_FIELDS:
        block = layer.get(section)
        if isinstance(block, Mapping):
            sectioned[section] = dict(block)
    for flat, (section, key) in FLAT_KEYS.items():
        if flat in layer:
            sectioned.setdefault(section, {})[key] = layer[flat]
    return sectioned


def _merge_into(target: dict[str, Any], layer: Mapping[str, Any]) -> None:
    for key, value in layer.items():
        current = target.get(key)
        if isinstance(current, dict) and isinstance(value, Mapping):
            _merge_into(current, value)
        else:
            target[key] = copy.deepcopy(value)


def merge_layers(layers: Iterable[Mapping[str, Any]]) -> dict[str, Any]:
    """Merge sectioned layers left to right; later layers win per key."""
    merged: dict[str, Any] = {}
    for layer in layers:
        _merge_into(merged, layer)
    return merged


def read_yaml_layer(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise FileNotFoundError(path)
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config YAML must be a mapping, got: {type(data)!r}")
    return data


def load_config(
    *,
    config_path: Path | None = None,
    dotenv_path: Path | None = None,
    cli_overrides: Mapping[str, Any] | None = None,
) -> AppConfig:
    """Build the validated ``AppConfig``.

    A ``.env`` file only seeds variables that are not already set in the
    process environment.  Files are read, never created.
    """
    if dotenv_path is not None:
        if not dotenv_path.exists():
            raise FileNotFoundError(dotenv_path)
        load_dotenv(dotenv_path, override=False)

    layers: list[Mapping[str, Any]] = [DEFAULT_CONFIG]
    if config_path is not None:
        layers.append(read_yaml_layer(config_path))
    layers.append(EnvOverrides().to_update_dict())
    layers.append(cli_overrides or {})

    return AppConfig.model_validate(merge_layers(to_sections(l) for l in layers))
