"""Run a provider's declared decode steps over a raw payload."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

import structlog

from streamhop.domain.entities.resolution import SubtitleTrack
from streamhop.domain.providers.descriptor import (
    AesCbcDecrypt,
    Base64Decode,
    CaesarShift,
    CharCodeShift,
    CharSubstitution,
    DecodeStep,
    HexDecode,
    JsonBoundaryScan,
    NestedBase64,
    ProviderDescriptor,
    Reverse,
    SplitJoinLookup,
    StripPrefix,
    XorKeystream,
)
from streamhop.domain.providers.exceptions import (
    DecodePipelineFailed,
    DecodeStepFailed,
    ValidationFailed,
)
from streamhop.infrastructure.decoding import primitives as p
from streamhop.infrastructure.decoding.keystream import KeystreamStore
from streamhop.infrastructure.decoding.validators import extract_manifest

log = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DecodedPayload:
    """Validated outcome of a decode pipeline."""

    text: str
    manifest_url: str
    subtitles: tuple[SubtitleTrack, ...] = ()


@dataclass(frozen=True)
class _StepContext:
    provider_key: str
    index: int
    keystreams: KeystreamStore | None


def _xor(step: XorKeystream, data: p.Payload, ctx: _StepContext) -> p.Payload:
    if step.key_source == "fixed":
        return p.xor_keystream(data, step.key)
    if ctx.keystreams is None:
        key = p.derive_keystream(data, step.known_prefix, step.key_length)
    else:
        key = ctx.keystreams.get_or_derive(ctx.provider_key, ctx.index, step, data)
    return p.xor_keystream(data, key)


_Handler = Callable[[Any, p.Payload, _StepContext], p.Payload]

_HANDLERS: dict[type, _Handler] = {
    Base64Decode: lambda s, d, _: p.base64_decode(
        d, url_safe=s.url_safe, alphabet=s.alphabet
    ),
    NestedBase64: lambda s, d, _: p.nested_base64(
        d, max_depth=s.max_depth, url_safe=s.url_safe
    ),
    XorKeystream: _xor,
    AesCbcDecrypt: lambda s, d, _: p.aes_cbc_decrypt(
        d, key=s.key, iv=s.iv, iv_from_prefix=s.iv_from_prefix
    ),
    CharSubstitution: lambda s, d, _: p.char_substitution(d, s.mapping),
    CaesarShift: lambda s, d, _: p.caesar_shift(d, s.amount, s.alphabet_classes),
    SplitJoinLookup: lambda s, d, _: p.split_join_lookup(
        d,
        delimiter=s.delimiter,
        alphabet=s.alphabet,
        char_offset=s.char_offset,
        xor_key=s.xor_key,
        joiner=s.joiner,
    ),
    JsonBoundaryScan: lambda s, d, _: p.json_boundary_scan(d),
    Reverse: lambda s, d, _: p.reverse(d),
    StripPrefix: lambda s, d, _: p.strip_prefix(d, s.prefix, required=s.required),
    CharCodeShift: lambda s, d, _: p.char_code_shift(d, s.amount),
    HexDecode: lambda s, d, _: p.hex_decode(d, ignore_non_hex=s.ignore_non_hex),
}


def apply_step(
    step: DecodeStep,
    data: p.Payload,
    *,
    provider_key: str = "",
    index: int = 0,
    keystreams: KeystreamStore | None = None,
) -> p.Payload:
    """Apply a single decode step (no error wrapping)."""
    handler = _HANDLERS.get(type(step))
    if handler is None:
        raise DecodeStepFailed(type(step).__name__, "unsupported decode step")
    return handler(step, data, _StepContext(provider_key, index, keystreams))


def run_steps(
    steps: tuple[DecodeStep, ...],
    data: p.Payload,
    *,
    provider_key: str = "",
    keystreams: KeystreamStore | None = None,
) -> p.Payload:
    """Fold *steps* over *data*.

    A failing step aborts the pipeline with ``DecodePipelineFailed``
    carrying the zero-based index of the step.  ``ValidationFailed``
    raised by a step (``JsonBoundaryScan``) propagates unchanged.
    """
    for index, step in enumerate(steps):
        try:
            data = apply_step(
                step,
                data,
                provider_key=provider_key,
                index=index,
                keystreams=keystreams,
            )
        except DecodeStepFailed as e:
            log.debug(
                "decode_step_failed",
                provider=provider_key,
                step_index=index,
                step=type(step).__name__,
                kind=e.kind,
                reason=e.reason,
            )
            raise DecodePipelineFailed(
                provider_key=provider_key, step_index=index, cause=e
            ) from e
        except ValidationFailed as e:
            e.provider_key = provider_key
            raise
    return data


def run_pipeline(
    descriptor: ProviderDescriptor,
    raw_payload: p.Payload,
    *,
    keystreams: KeystreamStore | None = None,
) -> DecodedPayload:
    """Decode *raw_payload* with *descriptor*'s steps and validate the result.

    Raises ``DecodePipelineFailed`` or ``ValidationFailed``.
    """
    decoded = run_steps(
        descriptor.decode,
        raw_payload,
        provider_key=descriptor.key,
        keystreams=keystreams,
    )
    text = p.as_text(decoded)
    try:
        manifest_url, subtitles = extract_manifest(descriptor.result, text)
    except ValidationFailed as e:
        e.provider_key = descriptor.key
        raise
    return DecodedPayload(text=text, manifest_url=manifest_url, subtitles=subtitles)


class PipelineDecoder:
    """Decoder used by the orchestrator; owns the derived-keystream cache."""

    def __init__(self, keystreams: KeystreamStore | None = None) -> None:
        self._keystreams = keystreams if keystreams is not None else KeystreamStore()

    @property
    def keystreams(self) -> KeystreamStore:
        return self._keystreams

    def decode(
        self, descriptor: ProviderDescriptor, raw_payload: p.Payload
    ) -> DecodedPayload:
        return run_pipeline(descriptor, raw_payload, keystreams=self._keystreams)

    def reset_keystreams(self, provider_key: str) -> int:
        """Discard derived keystreams so the next payload re-derives them."""
        return self._keystreams.invalidate(provider_key)
