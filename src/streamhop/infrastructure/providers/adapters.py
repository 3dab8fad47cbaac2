"""Adapters to convert Pydantic validation models to domain models."""

from __future__ import annotations

from streamhop.domain.providers import descriptor as domain
from streamhop.infrastructure.decoding.primitives import build_mapping
from streamhop.infrastructure.providers import validation_schema as infra


def _material(text: str | None, hex_text: str | None) -> bytes:
    if hex_text is not None:
        return bytes.fromhex(hex_text)
    return (text or "").encode("utf-8")


def to_domain_hop(pydantic: infra.HopSpec, *, is_last: bool) -> domain.HopStep:
    """Convert a Pydantic HopSpec to a domain HopStep."""
    return domain.HopStep(
        url_template=pydantic.url,
        extractor=domain.TokenExtractor(
            pattern=pydantic.extract.pattern,
            group=pydantic.extract.group,
            source=pydantic.extract.source,
            html_unescape=pydantic.extract.html_unescape,
        ),
        episode_url_template=pydantic.episode_url,
        referer=pydantic.referer,
        referer_value=pydantic.referer_value,
        send_origin=pydantic.send_origin,
        headers=dict(pydantic.headers),
        is_terminal=pydantic.terminal or is_last,
    )


def to_domain_step(pydantic: infra.DecodeStepSpec) -> domain.DecodeStep:
    """Convert one tagged decode step to its domain dataclass."""
    if isinstance(pydantic, infra.Base64StepSpec):
        return domain.Base64Decode(
            url_safe=pydantic.url_safe, alphabet=pydantic.alphabet
        )
    if isinstance(pydantic, infra.NestedBase64StepSpec):
        return domain.NestedBase64(
            max_depth=pydantic.max_depth, url_safe=pydantic.url_safe
        )
    if isinstance(pydantic, infra.XorStepSpec):
        return domain.XorKeystream(
            key_source=pydantic.key_source,
            key=_material(pydantic.key, pydantic.key_hex),
            known_prefix=pydantic.known_prefix or "",
            key_length=pydantic.key_length,
        )
    if isinstance(pydantic, infra.AesCbcStepSpec):
        return domain.AesCbcDecrypt(
            key=_material(pydantic.key, pydantic.key_hex),
            iv=_material(pydantic.iv, pydantic.iv_hex),
            iv_from_prefix=pydantic.iv_from_prefix,
        )
    if isinstance(pydantic, infra.SubstitutionStepSpec):
        if pydantic.mapping is not None:
            mapping = dict(pydantic.mapping)
        else:
            mapping = build_mapping(pydantic.source or "", pydantic.target or "")
        return domain.CharSubstitution(mapping=mapping)
    if isinstance(pydantic, infra.CaesarStepSpec):
        return domain.CaesarShift(
            amount=pydantic.amount, alphabet_classes=tuple(pydantic.alphabets)
        )
    if isinstance(pydantic, infra.SplitJoinStepSpec):
        return domain.SplitJoinLookup(
            delimiter=pydantic.delimiter,
            alphabet=pydantic.alphabet,
            char_offset=pydantic.char_offset,
            xor_key=pydantic.xor_key,
            joiner=pydantic.joiner,
        )
    if isinstance(pydantic, infra.JsonBoundaryStepSpec):
        return domain.JsonBoundaryScan()
    if isinstance(pydantic, infra.ReverseStepSpec):
        return domain.Reverse()
    if isinstance(pydantic, infra.StripPrefixStepSpec):
        return domain.StripPrefix(prefix=pydantic.prefix, required=pydantic.required)
    if isinstance(pydantic, infra.CharCodeShiftStepSpec):
        return domain.CharCodeShift(amount=pydantic.amount)
    if isinstance(pydantic, infra.HexStepSpec):
        return domain.HexDecode(ignore_non_hex=pydantic.ignore_non_hex)
    raise TypeError(f"unsupported decode step model: {type(pydantic).__name__}")


def to_domain_result(pydantic: infra.ResultSpecModel) -> domain.ResultSpec:
    """Convert Pydantic ResultSpecModel to domain model."""
    return domain.ResultSpec(
        kind=pydantic.kind,
        url_pattern=pydantic.url_pattern,
        must_contain=pydantic.must_contain,
        sources_key=pydantic.sources_key,
        subtitles_keys=tuple(pydantic.subtitles_keys),
    )


def to_domain_provider_descriptor(
    pydantic: infra.ProviderDescriptorPydantic,
) -> domain.ProviderDescriptor:
    """Convert a validated provider file to the frozen domain descriptor."""
    last = len(pydantic.hops) - 1
    return domain.ProviderDescriptor(
        key=pydantic.key,
        name=pydantic.name or pydantic.key,
        priority=pydantic.priority,
        enabled=pydantic.enabled,
        hops=tuple(
            to_domain_hop(h, is_last=i == last) for i, h in enumerate(pydantic.hops)
        ),
        decode=tuple(to_domain_step(s) for s in pydantic.decode),
        result=to_domain_result(pydantic.result),
        playback_headers=dict(pydantic.playback_headers),
    )
