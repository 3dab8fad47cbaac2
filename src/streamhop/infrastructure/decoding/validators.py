"""Shape validation and normalization of fully decoded payloads.

``is_valid_payload`` is a pure predicate (same input, same answer);
``extract_manifest`` turns a valid payload into the manifest URL plus any
subtitle tracks it carries.
"""

from __future__ import annotations

import json
import re
from functools import lru_cache
from typing import Any

from streamhop.domain.entities.resolution import SubtitleTrack
from streamhop.domain.providers.descriptor import ResultSpec
from streamhop.domain.providers.exceptions import ValidationFailed


@lru_cache(maxsize=64)
def _compile(pattern: str) -> re.Pattern[str]:
    return re.compile(pattern)


def _url_ok(spec: ResultSpec, url: Any) -> bool:
    if not isinstance(url, str):
        return False
    url = url.strip()
    if not _compile(spec.url_pattern).match(url):
        return False
    return spec.must_contain is None or spec.must_contain in url


def _source_url(entry: Any) -> Any:
    if isinstance(entry, str):
        return entry
    if isinstance(entry, dict):
        return entry.get("file") or entry.get("url")
    return None


def _parse_json(payload: str) -> Any:
    try:
        return json.loads(payload)
    except ValueError:
        return None


def is_valid_payload(spec: ResultSpec, payload: str) -> bool:
    """Return True if *payload* has the shape *spec* expects."""
    if spec.kind == "url":
        return _url_ok(spec, payload)

    data = _parse_json(payload)
    if not isinstance(data, dict):
        return False
    sources = data.get(spec.sources_key)
    if not isinstance(sources, list) or not sources:
        return False
    return any(_url_ok(spec, _source_url(s)) for s in sources)


def _subtitles(spec: ResultSpec, data: dict[str, Any]) -> tuple[SubtitleTrack, ...]:
    tracks: list[SubtitleTrack] = []
    seen: set[str] = set()
    for key in spec.subtitles_keys:
        entries = data.get(key)
        if not isinstance(entries, list):
            continue
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            # PlayerJS "tracks" mix captions with thumbnails
            kind = entry.get("kind")
            if kind and kind not in ("captions", "subtitles"):
                continue
            url = entry.get("file") or entry.get("url")
            if not isinstance(url, str) or not url or url in seen:
                continue
            seen.add(url)
            tracks.append(
                SubtitleTrack(
                    url=url,
                    language=str(entry.get("lang") or entry.get("language") or ""),
                    label=str(entry.get("label") or ""),
                )
            )
    return tuple(tracks)


def extract_manifest(
    spec: ResultSpec, payload: str
) -> tuple[str, tuple[SubtitleTrack, ...]]:
    """Return ``(manifest_url, subtitles)`` or raise ``ValidationFailed``."""
    if not is_valid_payload(spec, payload):
        preview = payload[:60].replace("\n", " ")
        raise ValidationFailed(f"decoded payload has unexpected shape: {preview!r}")

    if spec.kind == "url":
        return payload.strip(), ()

    data = json.loads(payload)
    for entry in data[spec.sources_key]:
        url = _source_url(entry)
        if _url_ok(spec, url):
            return url.strip(), _subtitles(spec, data)
    # is_valid_payload guarantees a matching source
    raise ValidationFailed("no usable source entry")  # pragma: no cover
