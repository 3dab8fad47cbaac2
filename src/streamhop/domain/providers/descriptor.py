# src/streamhop/domain/providers/descriptor.py
"""Pure domain models for provider descriptors (framework-free)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Union

RefererSource = Literal["previous", "fixed", "none"]
TokenSource = Literal["body", "url"]
ResultKind = Literal["url", "json"]
KeySource = Literal["fixed", "derived"]
AlphabetClass = Literal["lower", "upper", "digit"]


@dataclass(frozen=True)
class TokenExtractor:
    """Where in a hop response the next token lives.

    ``pattern`` may contain ``{token}``, which is replaced with the
    regex-escaped token of the previous hop before compiling.
    """

    pattern: str
    group: int = 1
    source: TokenSource = "body"
    html_unescape: bool = False


@dataclass(frozen=True)
class HopStep:
    """Single fetch in a provider's hop chain.

    Example:
      - url: "https://embed.example/movie/{content_id}"
        extract:
          pattern: 'src="//rcp\\.example/rcp/([^"]+)"'
      - url: "https://rcp.example/rcp/{token}"
        referer: previous
        terminal: true
    """

    url_template: str
    extractor: TokenExtractor
    episode_url_template: str | None = None
    referer: RefererSource = "previous"
    referer_value: str | None = None
    send_origin: bool = False
    headers: dict[str, str] = field(default_factory=dict)
    is_terminal: bool = False


# --- Decode steps (closed tagged set) ---


@dataclass(frozen=True)
class Base64Decode:
    url_safe: bool = False
    alphabet: str | None = None


@dataclass(frozen=True)
class NestedBase64:
    max_depth: int = 3
    url_safe: bool = False


@dataclass(frozen=True)
class XorKeystream:
    """XOR with a fixed key, or with one derived from a known plaintext prefix.

    For ``key_source="derived"``, ``known_prefix`` is XOR-ed against the
    first ciphertext seen; ``key_length`` truncates the result to the
    keystream period when the provider's key repeats.
    """

    key_source: KeySource = "fixed"
    key: bytes = b""
    known_prefix: str = ""
    key_length: int | None = None


@dataclass(frozen=True)
class AesCbcDecrypt:
    key: bytes
    iv: bytes = b""
    iv_from_prefix: bool = False


@dataclass(frozen=True)
class CharSubstitution:
    mapping: dict[str, str]


@dataclass(frozen=True)
class CaesarShift:
    amount: int
    alphabet_classes: tuple[AlphabetClass, ...] = ("lower", "upper", "digit")


@dataclass(frozen=True)
class SplitJoinLookup:
    delimiter: str
    alphabet: str | None = None
    char_offset: int = 0
    xor_key: str | None = None
    joiner: str = ""


@dataclass(frozen=True)
class JsonBoundaryScan:
    pass


@dataclass(frozen=True)
class Reverse:
    pass


@dataclass(frozen=True)
class StripPrefix:
    prefix: str
    required: bool = False


@dataclass(frozen=True)
class CharCodeShift:
    amount: int


@dataclass(frozen=True)
class HexDecode:
    ignore_non_hex: bool = False


DecodeStep = Union[
    Base64Decode,
    NestedBase64,
    XorKeystream,
    AesCbcDecrypt,
    CharSubstitution,
    CaesarShift,
    SplitJoinLookup,
    JsonBoundaryScan,
    Reverse,
    StripPrefix,
    CharCodeShift,
    HexDecode,
]


@dataclass(frozen=True)
class ResultSpec:
    """Expected shape of a fully decoded payload.

    ``kind="url"``: the payload itself is the manifest URL.
    ``kind="json"``: the payload is JSON with a non-empty ``sources_key``
    list whose entries carry a ``file`` or ``url``.
    """

    kind: ResultKind = "url"
    url_pattern: str = r"^https?://\S+$"
    must_contain: str | None = None
    sources_key: str = "sources"
    subtitles_keys: tuple[str, ...] = ("subtitles", "tracks")


@dataclass(frozen=True)
class ProviderDescriptor:
    """Static configuration of one upstream provider.

    Immutable once loaded; only the registry's enable/disable state changes
    at runtime.
    """

    key: str
    hops: tuple[HopStep, ...]
    decode: tuple[DecodeStep, ...]
    priority: int = 100
    name: str = ""
    enabled: bool = True
    result: ResultSpec = field(default_factory=ResultSpec)
    playback_headers: dict[str, str] = field(default_factory=dict)
