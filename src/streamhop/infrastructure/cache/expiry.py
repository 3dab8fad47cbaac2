"""Derive a manifest's expiry from tokens embedded in its URL."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qsl, urlsplit

EXPIRY_PARAMS: tuple[str, ...] = (
    "expires",
    "expire",
    "exp",
    "e",
    "expiry",
    "valid_until",
)

# Millisecond timestamps are ~1e12; anything below is seconds.
_MS_THRESHOLD = 10**11


def _embedded_expiry(url: str) -> datetime | None:
    params = {k.lower(): v for k, v in parse_qsl(urlsplit(url).query)}
    for name in EXPIRY_PARAMS:
        value = params.get(name)
        if value is None or not value.isdigit():
            continue
        stamp = int(value)
        if stamp >= _MS_THRESHOLD:
            stamp //= 1000
        try:
            return datetime.fromtimestamp(stamp, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            continue
    return None


def derive_expires_at(
    manifest_url: str,
    *,
    default_seconds: float = 300.0,
    now: datetime | None = None,
) -> datetime:
    """Return when *manifest_url* stops being playable.

    Uses the first recognised unix-time query parameter; otherwise
    ``now + default_seconds``.
    """
    embedded = _embedded_expiry(manifest_url)
    if embedded is not None:
        return embedded
    return (now or datetime.now(timezone.utc)) + timedelta(seconds=default_seconds)
