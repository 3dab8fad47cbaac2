"""Provider-agnostic bot-challenge detection.

Challenge pages come back either with a block status (403/429/503) and
a vendor marker, or occasionally with 200 and a Cloudflare challenge
script that only a challenge page embeds.
"""

from __future__ import annotations

# Markers that only count together with a blocking status code.
_BLOCK_MARKERS: tuple[str, ...] = (
    "Just a moment",
    "challenge-platform",
    "cf-error-details",
    "Attention Required",
    "cf-turnstile",
    "DDoS-Guard",
    "ddos-guard",
    "Checking your browser",
    "g-recaptcha",
    "h-captcha",
)

# Markers that identify a challenge regardless of status.
_STRONG_MARKERS: tuple[str, ...] = (
    "challenges.cloudflare.com/turnstile",
    "cf-chl-bypass",
    "cf_chl_opt",
)

_BLOCK_STATUSES = frozenset({403, 429, 503})


def detect_challenge(status_code: int, body: str) -> str | None:
    """Return the matched marker if *status_code* + *body* look like a challenge.

    Block pages:
    - JS challenge: 503 + "Just a moment" / "challenge-platform"
    - WAF block:    403 + "Attention Required" / "cf-error-details"
    - Turnstile:    403/503 + "cf-turnstile"
    - DDoS-Guard:   403 + "DDoS-Guard"
    - CAPTCHA:      403/429 + "g-recaptcha" / "h-captcha"
    Cloudflare challenge scripts match on any status.
    """
    for marker in _STRONG_MARKERS:
        if marker in body:
            return marker
    if status_code in _BLOCK_STATUSES:
        for marker in _BLOCK_MARKERS:
            if marker in body:
                return marker
    return None


def is_challenge(status_code: int, body: str) -> bool:
    return detect_challenge(status_code, body) is not None
