"""Hop-chain walker: follows a provider's redirect chain over httpx.

The walker is stateless across calls.  It never retries; transient
failures surface as ``UpstreamUnavailable``/``ProviderTimeout`` and the
orchestrator decides whether to try again.
"""

from __future__ import annotations

import html
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import urlsplit

import httpx
import structlog

from streamhop.domain.entities.resolution import ResolutionRequest
from streamhop.domain.providers import (
    ChallengeDetected,
    HopStep,
    ProviderDescriptor,
    ProviderTimeout,
    TokenNotFound,
    UpstreamUnavailable,
)
from streamhop.infrastructure.hop_chain.challenge import detect_challenge

log = structlog.get_logger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)

_BASE_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/json;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}


@dataclass(frozen=True)
class RawPayload:
    """Terminal token of a hop chain plus the URLs that produced it."""

    payload: str
    final_url: str
    tokens: tuple[str, ...] = ()
    hop_urls: tuple[str, ...] = ()


def origin_of(url: str) -> str:
    """Return ``scheme://host[:port]`` of *url* (empty for relative URLs)."""
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}"


def _template_context(
    request: ResolutionRequest, tokens: list[str]
) -> dict[str, Any]:
    return {
        "content_id": request.content_id,
        "media_type": request.media_type,
        "season": "" if request.season is None else request.season,
        "episode": "" if request.episode is None else request.episode,
        "token": tokens[-1] if tokens else request.content_id,
        "tokens": tokens,
    }


class HopChainWalker:
    """Runs the hop chain of one provider for one request."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        timeout_seconds: float = 8.0,
        user_agent: str = DEFAULT_USER_AGENT,
        follow_redirects: bool = True,
    ) -> None:
        self._http = http_client
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._follow_redirects = follow_redirects

    async def walk(
        self, descriptor: ProviderDescriptor, request: ResolutionRequest
    ) -> RawPayload:
        """Fetch every hop in order and return the terminal payload.

        Raises ``UpstreamUnavailable``, ``ProviderTimeout``,
        ``ChallengeDetected`` or ``TokenNotFound``.
        """
        tokens: list[str] = []
        hop_urls: list[str] = []
        previous_url: str | None = None

        for index, hop in enumerate(descriptor.hops):
            url = self._build_url(descriptor.key, index, hop, request, tokens)
            headers = self._build_headers(hop, previous_url)
            response = await self._fetch(descriptor.key, index, url, headers)
            token = self._extract(descriptor.key, index, hop, response, tokens)

            hop_urls.append(url)
            previous_url = str(response.url)
            tokens.append(token)

            if hop.is_terminal:
                log.debug(
                    "hop_chain_completed",
                    provider=descriptor.key,
                    hops=index + 1,
                    payload_length=len(token),
                )
                return RawPayload(
                    payload=token,
                    final_url=previous_url,
                    tokens=tuple(tokens),
                    hop_urls=tuple(hop_urls),
                )

        # adapters mark the last hop terminal; a hand-built descriptor may not
        return RawPayload(
            payload=tokens[-1] if tokens else "",
            final_url=previous_url or "",
            tokens=tuple(tokens),
            hop_urls=tuple(hop_urls),
        )

    # ------------------------------------------------------------------

    def _build_url(
        self,
        provider_key: str,
        index: int,
        hop: HopStep,
        request: ResolutionRequest,
        tokens: list[str],
    ) -> str:
        template = hop.url_template
        if request.media_type == "episode" and hop.episode_url_template:
            template = hop.episode_url_template
        try:
            return template.format(**_template_context(request, tokens))
        except (KeyError, IndexError) as e:
            raise TokenNotFound(
                f"hop {index} template references missing value {e}",
                provider_key=provider_key,
                hop_index=index,
            ) from e

    def _build_headers(self, hop: HopStep, previous_url: str | None) -> dict[str, str]:
        headers = {"User-Agent": self._user_agent, **_BASE_HEADERS}

        referer: str | None = None
        if hop.referer == "previous":
            referer = previous_url
        elif hop.referer == "fixed":
            referer = hop.referer_value
        if referer:
            headers["Referer"] = referer
            if hop.send_origin:
                origin = origin_of(referer)
                if origin:
                    headers["Origin"] = origin

        headers.update(hop.headers)
        return headers

    async def _fetch(
        self, provider_key: str, index: int, url: str, headers: dict[str, str]
    ) -> httpx.Response:
        try:
            response = await self._http.get(
                url,
                headers=headers,
                timeout=self._timeout,
                follow_redirects=self._follow_redirects,
            )
        except httpx.TimeoutException as e:
            log.info("hop_fetch_timeout", provider=provider_key, hop=index, url=url)
            raise ProviderTimeout(
                f"hop {index} timed out", provider_key=provider_key, url=url
            ) from e
        except httpx.HTTPError as e:
            log.info(
                "hop_fetch_failed",
                provider=provider_key,
                hop=index,
                url=url,
                error=type(e).__name__,
            )
            raise UpstreamUnavailable(
                f"hop {index} request failed: {type(e).__name__}",
                provider_key=provider_key,
                url=url,
            ) from e

        log.debug(
            "hop_fetched",
            provider=provider_key,
            hop=index,
            status=response.status_code,
            url=url,
        )

        marker = detect_challenge(response.status_code, response.text)
        if marker is not None:
            log.warning(
                "hop_challenge_detected",
                provider=provider_key,
                hop=index,
                status=response.status_code,
                marker=marker,
            )
            raise ChallengeDetected(
                f"hop {index} returned a challenge page ({marker})",
                provider_key=provider_key,
                url=url,
            )

        if not response.is_success:
            log.info(
                "hop_http_error",
                provider=provider_key,
                hop=index,
                status=response.status_code,
                url=url,
            )
            raise UpstreamUnavailable(
                f"hop {index} returned HTTP {response.status_code}",
                provider_key=provider_key,
                status_code=response.status_code,
                url=url,
            )
        return response

    def _extract(
        self,
        provider_key: str,
        index: int,
        hop: HopStep,
        response: httpx.Response,
        tokens: list[str],
    ) -> str:
        extractor = hop.extractor
        pattern = extractor.pattern
        if "{token}" in pattern and tokens:
            pattern = pattern.replace("{token}", re.escape(tokens[-1]))

        haystack = str(response.url) if extractor.source == "url" else response.text
        match = re.search(pattern, haystack, re.DOTALL)
        token = ""
        if match is not None:
            try:
                token = (match.group(extractor.group) or "").strip()
            except IndexError:
                token = ""
        if extractor.html_unescape:
            token = html.unescape(token)

        if not token:
            log.warning(
                "hop_token_not_found",
                provider=provider_key,
                hop=index,
                body_length=len(response.text),
            )
            raise TokenNotFound(
                f"hop {index} extractor matched nothing",
                provider_key=provider_key,
                hop_index=index,
            )
        return token
