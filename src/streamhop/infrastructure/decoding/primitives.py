"""Stateless decode primitives.

Every function takes ``bytes`` or ``str`` and returns a new value; none of
them keep state between calls.  Failures raise ``DecodeStepFailed`` (or one
of its subclasses) naming the primitive, never a bare ``ValueError``.

Text/bytes conversion rules:
- ``str`` -> ``bytes`` encodes UTF-8.
- ``bytes`` -> ``str`` decodes UTF-8, falling back to Latin-1 so that noisy
  tails (partial keystreams) survive until ``json_boundary_scan`` cuts them.
"""

from __future__ import annotations

import base64
import binascii
import json
import re
import string
from itertools import cycle

from Crypto.Cipher import AES
from Crypto.Util.Padding import unpad

from streamhop.domain.providers.exceptions import (
    DecodeStepFailed,
    KeyMismatch,
    PaddingInvalid,
    ValidationFailed,
)

Payload = bytes | str

STANDARD_B64_ALPHABET = (
    string.ascii_uppercase + string.ascii_lowercase + string.digits + "+/"
)

_B64_BODY_RE = re.compile(r"^[A-Za-z0-9+/]*$")
_B64_CANDIDATE_RE = re.compile(r"^[A-Za-z0-9+/_-]{8,}={0,2}$")
_NON_HEX_RE = re.compile(r"[^0-9a-fA-F]")
_WHITESPACE_RE = re.compile(r"\s+")

_CLASS_ALPHABETS: dict[str, str] = {
    "lower": string.ascii_lowercase,
    "upper": string.ascii_uppercase,
    "digit": string.digits,
}


def as_bytes(data: Payload) -> bytes:
    if isinstance(data, bytes):
        return data
    return data.encode("utf-8")


def as_text(data: Payload) -> str:
    if isinstance(data, str):
        return data
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError:
        return data.decode("latin-1")


# ---------------------------------------------------------------------------
# Base64
# ---------------------------------------------------------------------------


def _translate_alphabet(text: str, alphabet: str) -> str:
    """Map a shuffled 64(+pad) char alphabet onto the standard one."""
    if len(alphabet) not in (64, 65):
        raise DecodeStepFailed("base64", "custom alphabet must have 64 or 65 chars")
    table = str.maketrans(alphabet[:64], STANDARD_B64_ALPHABET)
    translated = text.translate(table)
    if len(alphabet) == 65:
        translated = translated.replace(alphabet[64], "=")
    return translated


def base64_decode(
    data: Payload, *, url_safe: bool = False, alphabet: str | None = None
) -> bytes:
    """Decode standard, URL-safe, or custom-alphabet base64.

    Both ``-``/``_`` variants are always folded into ``+``/``/``, so
    ``url_safe`` is informational for decoding.  Padding is restored to a
    4-char boundary before decoding.
    """
    text = _WHITESPACE_RE.sub("", as_text(data))
    if alphabet:
        text = _translate_alphabet(text, alphabet)
    text = text.replace("-", "+").replace("_", "/")
    body = text.rstrip("=")
    if not _B64_BODY_RE.match(body):
        raise DecodeStepFailed("base64", "invalid base64 alphabet character")
    if len(body) % 4 == 1:
        raise DecodeStepFailed("base64", "truncated base64 input")
    padded = body + "=" * (-len(body) % 4)
    try:
        return base64.b64decode(padded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise DecodeStepFailed("base64", str(e)) from e


def base64_encode(
    data: Payload, *, url_safe: bool = False, alphabet: str | None = None
) -> str:
    """Inverse of :func:`base64_decode` (padding stripped for URL-safe)."""
    encoded = base64.b64encode(as_bytes(data)).decode("ascii")
    if alphabet:
        if len(alphabet) not in (64, 65):
            raise DecodeStepFailed("base64", "custom alphabet must have 64 or 65 chars")
        table = str.maketrans(STANDARD_B64_ALPHABET, alphabet[:64])
        encoded = encoded.translate(table)
        if len(alphabet) == 65:
            encoded = encoded.replace("=", alphabet[64])
    if url_safe:
        encoded = encoded.replace("+", "-").replace("/", "_").rstrip("=")
    return encoded


def _looks_printable(raw: bytes) -> bool:
    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return all(ch.isprintable() or ch.isspace() for ch in text)


def nested_base64(
    data: Payload, *, max_depth: int = 3, url_safe: bool = False
) -> bytes:
    """Peel up to ``max_depth`` layers of base64.

    The first layer is mandatory.  Further layers are only peeled while the
    current output is base64-shaped text and the next layer decodes to
    printable UTF-8.
    """
    if max_depth < 1:
        raise DecodeStepFailed("nested_base64", "max_depth must be >= 1")
    current = base64_decode(data, url_safe=url_safe)
    for _ in range(max_depth - 1):
        if not _looks_printable(current):
            break
        candidate = current.decode("utf-8").strip()
        if not _B64_CANDIDATE_RE.match(candidate):
            break
        try:
            peeled = base64_decode(candidate, url_safe=url_safe)
        except DecodeStepFailed:
            break
        if not _looks_printable(peeled):
            break
        current = peeled
    return current


# ---------------------------------------------------------------------------
# XOR
# ---------------------------------------------------------------------------


def xor_keystream(data: Payload, key: bytes) -> bytes:
    """XOR *data* with *key*, cycling the key when it is shorter.

    XOR is its own inverse, so this is also the encoder.
    """
    if not key:
        raise DecodeStepFailed("xor", "empty keystream")
    raw = as_bytes(data)
    return bytes(b ^ k for b, k in zip(raw, cycle(key)))


def derive_keystream(
    ciphertext: Payload, known_prefix: str, key_length: int | None = None
) -> bytes:
    """Recover a keystream by XOR-ing ciphertext with known plaintext.

    Returns ``len(known_prefix)`` key bytes, or the first ``key_length``
    bytes when the provider's keystream is periodic.
    """
    raw = as_bytes(ciphertext)
    plain = known_prefix.encode("utf-8")
    if not plain:
        raise DecodeStepFailed("xor", "known prefix is empty")
    if len(raw) < len(plain):
        raise DecodeStepFailed("xor", "ciphertext shorter than known prefix")
    key = bytes(c ^ p for c, p in zip(raw, plain))
    if key_length is not None:
        if key_length < 1 or key_length > len(key):
            raise DecodeStepFailed("xor", "key_length exceeds known prefix")
        key = key[:key_length]
    return key


# ---------------------------------------------------------------------------
# AES-CBC
# ---------------------------------------------------------------------------


def aes_cbc_decrypt(
    data: Payload, *, key: bytes, iv: bytes = b"", iv_from_prefix: bool = False
) -> bytes:
    """AES-CBC decrypt with PKCS#7 unpadding.

    Raises ``KeyMismatch`` for unusable key/IV material and
    ``PaddingInvalid`` when the plaintext padding is malformed.
    """
    raw = as_bytes(data)
    if len(key) not in (16, 24, 32):
        raise KeyMismatch("aes_cbc", f"key length {len(key)} is not 16/24/32")
    if iv_from_prefix:
        iv, raw = raw[: AES.block_size], raw[AES.block_size :]
    if len(iv) != AES.block_size:
        raise KeyMismatch("aes_cbc", f"iv length {len(iv)} is not 16")
    if not raw or len(raw) % AES.block_size:
        raise DecodeStepFailed(
            "aes_cbc", f"ciphertext length {len(raw)} is not a block multiple"
        )
    cipher = AES.new(key, AES.MODE_CBC, iv=iv)
    try:
        return unpad(cipher.decrypt(raw), AES.block_size, style="pkcs7")
    except ValueError as e:
        raise PaddingInvalid("aes_cbc", str(e)) from e


# ---------------------------------------------------------------------------
# Character transforms
# ---------------------------------------------------------------------------


def build_mapping(source: str, target: str) -> dict[str, str]:
    """Build a 1:1 substitution map from two equal-length alphabets."""
    if len(source) != len(target):
        raise DecodeStepFailed("substitution", "alphabets differ in length")
    if len(set(source)) != len(source):
        raise DecodeStepFailed("substitution", "source alphabet has duplicates")
    return dict(zip(source, target))


def invert_mapping(mapping: dict[str, str]) -> dict[str, str]:
    inverted = {v: k for k, v in mapping.items()}
    if len(inverted) != len(mapping):
        raise DecodeStepFailed("substitution", "mapping is not 1:1")
    return inverted


def char_substitution(data: Payload, mapping: dict[str, str]) -> str:
    """Remap characters; unmapped characters pass through unchanged."""
    return as_text(data).translate(str.maketrans(mapping))


def caesar_shift(
    data: Payload,
    amount: int,
    alphabet_classes: tuple[str, ...] = ("lower", "upper", "digit"),
) -> str:
    """Rotate characters within independent alphabets (with wraparound)."""
    source = ""
    target = ""
    for cls in alphabet_classes:
        alphabet = _CLASS_ALPHABETS.get(cls)
        if alphabet is None:
            raise DecodeStepFailed("caesar", f"unknown alphabet class {cls!r}")
        k = amount % len(alphabet)
        source += alphabet
        target += alphabet[k:] + alphabet[:k]
    return as_text(data).translate(str.maketrans(source, target))


def char_code_shift(data: Payload, amount: int) -> bytes:
    """Add *amount* to every byte value modulo 256."""
    return bytes((b + amount) % 256 for b in as_bytes(data))


def reverse(data: Payload) -> Payload:
    return data[::-1]


def strip_prefix(data: Payload, prefix: str, *, required: bool = False) -> Payload:
    marker: Payload = prefix.encode("utf-8") if isinstance(data, bytes) else prefix
    if data.startswith(marker):  # type: ignore[arg-type]
        return data[len(marker) :]
    if required:
        raise DecodeStepFailed("strip_prefix", f"missing prefix {prefix!r}")
    return data


def hex_decode(data: Payload, *, ignore_non_hex: bool = False) -> bytes:
    text = as_text(data).strip()
    if ignore_non_hex:
        text = _NON_HEX_RE.sub("", text)
    if len(text) % 2:
        raise DecodeStepFailed("hex", "odd number of hex digits")
    try:
        return bytes.fromhex(text)
    except ValueError as e:
        raise DecodeStepFailed("hex", str(e)) from e


def split_join_lookup(
    data: Payload,
    *,
    delimiter: str,
    alphabet: str | None = None,
    char_offset: int = 0,
    xor_key: str | None = None,
    joiner: str = "",
) -> str:
    """Decode a delimited string pool.

    Each entry is either taken literally or, with *alphabet*, read as a
    base-N number and mapped to ``chr(value - char_offset)``.  With
    *xor_key*, the decoded characters are XOR-ed against the repeating key
    (running index across the whole table).
    """
    if not delimiter:
        raise DecodeStepFailed("split_join", "empty delimiter")
    entries = [e for e in as_text(data).split(delimiter) if e]
    if not entries:
        raise DecodeStepFailed("split_join", "no entries")

    decoded: list[str] = []
    if alphabet:
        base = len(alphabet)
        if base < 2:
            raise DecodeStepFailed("split_join", "alphabet needs at least 2 chars")
        digits = {ch: i for i, ch in enumerate(alphabet)}
        for entry in entries:
            value = 0
            for ch in entry:
                if ch not in digits:
                    raise DecodeStepFailed(
                        "split_join", f"character {ch!r} not in alphabet"
                    )
                value = value * base + digits[ch]
            code = value - char_offset
            if not 0 <= code <= 0x10FFFF:
                raise DecodeStepFailed("split_join", f"code point {code} out of range")
            decoded.append(chr(code))
    else:
        decoded = entries

    if xor_key:
        keys = cycle(xor_key)
        decoded = [
            "".join(chr(ord(ch) ^ ord(next(keys))) for ch in entry)
            for entry in decoded
        ]

    return joiner.join(decoded)


# ---------------------------------------------------------------------------
# JSON boundary scan
# ---------------------------------------------------------------------------


def json_boundary_scan(data: Payload) -> str:
    """Return the longest prefix ending in ``}`` that parses as JSON.

    Used when a keystream only covers part of the payload and the tail
    decodes to noise.  Raises ``ValidationFailed`` if no prefix parses.
    """
    raw = as_bytes(data)
    end = raw.rfind(b"}")
    while end != -1:
        # UnicodeDecodeError is a ValueError; a prefix cut mid-character is skipped
        try:
            candidate = raw[: end + 1].decode("utf-8")
            json.loads(candidate)
        except ValueError:
            end = raw.rfind(b"}", 0, end)
            continue
        return candidate
    raise ValidationFailed("no valid JSON prefix found")
