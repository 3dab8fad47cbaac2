"""Pydantic validation models for provider YAML files."""

from __future__ import annotations

import re
from typing import Annotated, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

PROVIDER_KEY_RE = r"^[a-z0-9][a-z0-9_-]*$"

_PLACEHOLDER_RE = re.compile(r"\{([a-z_]+)(?:\[\d+\])?\}")
_KNOWN_PLACEHOLDERS = {
    "content_id",
    "media_type",
    "season",
    "episode",
    "token",
    "tokens",
}


def _check_placeholders(template: str) -> str:
    for name in _PLACEHOLDER_RE.findall(template):
        if name not in _KNOWN_PLACEHOLDERS:
            raise ValueError(f"unknown placeholder '{{{name}}}' in {template!r}")
    return template


class _Strict(BaseModel):
    model_config = ConfigDict(extra="forbid")


class ExtractSpec(_Strict):
    pattern: str
    group: int = 1
    source: Literal["body", "url"] = "body"
    html_unescape: bool = False

    @field_validator("pattern")
    @classmethod
    def _validate_pattern(cls, v: str) -> str:
        # {token} is substituted before compiling
        try:
            re.compile(v.replace("{token}", "TOKEN"))
        except re.error as e:
            raise ValueError(f"invalid extractor pattern: {e}") from e
        return v

    @field_validator("group")
    @classmethod
    def _validate_group(cls, v: int) -> int:
        if v < 0:
            raise ValueError("extract.group must be >= 0")
        return v


class HopSpec(_Strict):
    """
    Single hop of a provider chain.

    Example:
      - url: "https://embed.example/embed/movie/{content_id}"
        episode_url: "https://embed.example/embed/tv/{content_id}/{season}-{episode}"
        extract:
          pattern: 'src="//rcp\\.example/rcp/([^"]+)"'
    """

    url: str
    episode_url: Optional[str] = None
    referer: Literal["previous", "fixed", "none"] = "previous"
    referer_value: Optional[str] = None
    send_origin: bool = False
    headers: Dict[str, str] = Field(default_factory=dict)
    extract: ExtractSpec
    terminal: bool = False

    @field_validator("url", "episode_url")
    @classmethod
    def _validate_template(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"hop url must be absolute http(s): {v!r}")
        return _check_placeholders(v)

    @model_validator(mode="after")
    def _validate_referer(self) -> "HopSpec":
        if self.referer == "fixed" and not self.referer_value:
            raise ValueError("referer 'fixed' requires 'referer_value'")
        return self


# === Decode steps (discriminated by 'type') ===


class Base64StepSpec(_Strict):
    type: Literal["base64"]
    url_safe: bool = False
    alphabet: Optional[str] = None

    @field_validator("alphabet")
    @classmethod
    def _validate_alphabet(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return None
        if len(v) not in (64, 65) or len(set(v)) != len(v):
            raise ValueError("base64 alphabet must be 64/65 unique characters")
        return v


class NestedBase64StepSpec(_Strict):
    type: Literal["nested_base64"]
    max_depth: int = Field(default=3, ge=1, le=10)
    url_safe: bool = False


class XorStepSpec(_Strict):
    type: Literal["xor"]
    key_source: Literal["fixed", "derived"] = "fixed"
    key: Optional[str] = None
    key_hex: Optional[str] = None
    known_prefix: Optional[str] = None
    key_length: Optional[int] = Field(default=None, ge=1)

    @model_validator(mode="after")
    def _validate_key(self) -> "XorStepSpec":
        if self.key_source == "fixed":
            if not (self.key or self.key_hex):
                raise ValueError("fixed xor step requires 'key' or 'key_hex'")
            if self.key and self.key_hex:
                raise ValueError("set only one of 'key' and 'key_hex'")
        elif not self.known_prefix:
            raise ValueError("derived xor step requires 'known_prefix'")
        if self.key_hex is not None:
            try:
                bytes.fromhex(self.key_hex)
            except ValueError as e:
                raise ValueError(f"key_hex is not valid hex: {e}") from e
        return self


class AesCbcStepSpec(_Strict):
    type: Literal["aes_cbc"]
    key: Optional[str] = None
    key_hex: Optional[str] = None
    iv: Optional[str] = None
    iv_hex: Optional[str] = None
    iv_from_prefix: bool = False

    @model_validator(mode="after")
    def _validate_material(self) -> "AesCbcStepSpec":
        if bool(self.key) == bool(self.key_hex):
            raise ValueError("aes_cbc step requires exactly one of 'key'/'key_hex'")
        has_iv = bool(self.iv) or bool(self.iv_hex)
        if self.iv_from_prefix and has_iv:
            raise ValueError("'iv_from_prefix' excludes an explicit iv")
        if not self.iv_from_prefix and not has_iv:
            raise ValueError("aes_cbc step requires an iv or 'iv_from_prefix'")
        for name in ("key_hex", "iv_hex"):
            value = getattr(self, name)
            if value is not None:
                try:
                    bytes.fromhex(value)
                except ValueError as e:
                    raise ValueError(f"{name} is not valid hex: {e}") from e
        return self


class SubstitutionStepSpec(_Strict):
    type: Literal["substitution"]
    mapping: Optional[Dict[str, str]] = None
    source: Optional[str] = None
    target: Optional[str] = None

    @model_validator(mode="after")
    def _validate_mapping(self) -> "SubstitutionStepSpec":
        if self.mapping is not None:
            if self.source or self.target:
                raise ValueError("use either 'mapping' or 'source'/'target'")
            if any(len(k) != 1 or len(v) != 1 for k, v in self.mapping.items()):
                raise ValueError("mapping keys and values must be single chars")
            return self
        if not self.source or self.target is None:
            raise ValueError("substitution requires 'mapping' or 'source'+'target'")
        if len(self.source) != len(self.target):
            raise ValueError("'source' and 'target' must have equal length")
        return self


class CaesarStepSpec(_Strict):
    type: Literal["caesar"]
    amount: int
    alphabets: List[Literal["lower", "upper", "digit"]] = Field(
        default_factory=lambda: ["lower", "upper", "digit"]
    )


class SplitJoinStepSpec(_Strict):
    type: Literal["split_join"]
    delimiter: str = Field(min_length=1)
    alphabet: Optional[str] = None
    char_offset: int = 0
    xor_key: Optional[str] = None
    joiner: str = ""


class JsonBoundaryStepSpec(_Strict):
    type: Literal["json_boundary"]


class ReverseStepSpec(_Strict):
    type: Literal["reverse"]


class StripPrefixStepSpec(_Strict):
    type: Literal["strip_prefix"]
    prefix: str = Field(min_length=1)
    required: bool = False


class CharCodeShiftStepSpec(_Strict):
    type: Literal["char_code_shift"]
    amount: int


class HexStepSpec(_Strict):
    type: Literal["hex"]
    ignore_non_hex: bool = False


DecodeStepSpec = Annotated[
    Union[
        Base64StepSpec,
        NestedBase64StepSpec,
        XorStepSpec,
        AesCbcStepSpec,
        SubstitutionStepSpec,
        CaesarStepSpec,
        SplitJoinStepSpec,
        JsonBoundaryStepSpec,
        ReverseStepSpec,
        StripPrefixStepSpec,
        CharCodeShiftStepSpec,
        HexStepSpec,
    ],
    Field(discriminator="type"),
]


class ResultSpecModel(_Strict):
    kind: Literal["url", "json"] = "url"
    url_pattern: str = r"^https?://\S+$"
    must_contain: Optional[str] = None
    sources_key: str = "sources"
    subtitles_keys: List[str] = Field(default_factory=lambda: ["subtitles", "tracks"])

    @field_validator("url_pattern")
    @classmethod
    def _validate_url_pattern(cls, v: str) -> str:
        try:
            re.compile(v)
        except re.error as e:
            raise ValueError(f"invalid url_pattern: {e}") from e
        return v


class ProviderDescriptorPydantic(_Strict):
    """Root model of a ``providers/<key>.yaml`` file."""

    key: str = Field(pattern=PROVIDER_KEY_RE)
    name: str = ""
    priority: int = Field(default=100, ge=0)
    enabled: bool = True
    hops: List[HopSpec] = Field(min_length=1)
    decode: List[DecodeStepSpec] = Field(default_factory=list)
    result: ResultSpecModel = Field(default_factory=ResultSpecModel)
    playback_headers: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _validate_chain(self) -> "ProviderDescriptorPydantic":
        # Only the last hop may be terminal; an unmarked last hop is terminal.
        for hop in self.hops[:-1]:
            if hop.terminal:
                raise ValueError("only the last hop may set 'terminal: true'")
        first = self.hops[0]
        for template in (first.url, first.episode_url):
            if template and ("{token}" in template or "{tokens[" in template):
                raise ValueError("first hop cannot reference a previous token")
        return self
