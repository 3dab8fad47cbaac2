"""Tests for stateless decode primitives."""

from __future__ import annotations

import random
import string

import pytest
from Crypto.Cipher import AES
from Crypto.Util.Padding import pad

from streamhop.domain.providers import (
    DecodeStepFailed,
    KeyMismatch,
    PaddingInvalid,
    ValidationFailed,
)
from streamhop.infrastructure.decoding import primitives as p

PLAYERJS_ALPHABET = "ABCDEFGHIJKLMabcdefghijklmNOPQRSTUVWXYZnopqrstuvwxyz0123456789+/="
MANIFEST = "https://cdn.example/master.m3u8"

ROUND_TRIP_LENGTHS = (0, 1, 2, 3, 15, 16, 17, 100)
_TEXT_CHARS = string.ascii_letters + string.digits + ":/.-_?=&% é"


def _random_bytes(length: int) -> bytes:
    return random.Random(length).randbytes(length)


def _random_text(length: int) -> str:
    rng = random.Random(length)
    return "".join(rng.choice(_TEXT_CHARS) for _ in range(length))


class TestTextBytes:
    def test_as_text_falls_back_to_latin1(self) -> None:
        assert p.as_text(b"ok\xff") == "ok\xff"

    def test_as_bytes_encodes_utf8(self) -> None:
        assert p.as_bytes("é") == b"\xc3\xa9"


class TestBase64:
    def test_restores_missing_padding(self) -> None:
        assert p.base64_decode("aGVsbG8") == b"hello"

    def test_url_safe_variant(self) -> None:
        assert p.base64_decode("-_8", url_safe=True) == b"\xfb\xff"

    def test_ignores_whitespace(self) -> None:
        assert p.base64_decode("aGVs\nbG8=") == b"hello"

    def test_invalid_character(self) -> None:
        with pytest.raises(DecodeStepFailed) as exc_info:
            p.base64_decode("ab$d")
        assert exc_info.value.step == "base64"

    def test_truncated_input(self) -> None:
        with pytest.raises(DecodeStepFailed, match="truncated"):
            p.base64_decode("abcde")

    def test_custom_alphabet_round_trip(self) -> None:
        encoded = p.base64_encode(MANIFEST, alphabet=PLAYERJS_ALPHABET)
        assert encoded != p.base64_encode(MANIFEST)
        assert p.base64_decode(encoded, alphabet=PLAYERJS_ALPHABET) == MANIFEST.encode()

    def test_custom_alphabet_wrong_length(self) -> None:
        with pytest.raises(DecodeStepFailed, match="64 or 65"):
            p.base64_decode("abcd", alphabet="abc")

    def test_url_safe_encode_strips_padding(self) -> None:
        assert p.base64_encode(b"\xfb\xff", url_safe=True) == "-_8"


class TestNestedBase64:
    def test_peels_two_layers(self) -> None:
        doubled = p.base64_encode(p.base64_encode(MANIFEST))
        assert p.nested_base64(doubled) == MANIFEST.encode()

    def test_max_depth_one_peels_single_layer(self) -> None:
        inner = p.base64_encode(MANIFEST)
        doubled = p.base64_encode(inner)
        assert p.nested_base64(doubled, max_depth=1) == inner.encode()

    def test_stops_at_plain_text(self) -> None:
        assert p.nested_base64(p.base64_encode("hello world")) == b"hello world"

    def test_first_layer_is_mandatory(self) -> None:
        with pytest.raises(DecodeStepFailed):
            p.nested_base64("not base64!")


class TestXor:
    def test_self_inverse(self) -> None:
        key = b"\x13\x37"
        assert p.xor_keystream(p.xor_keystream(b"payload", key), key) == b"payload"

    def test_empty_key(self) -> None:
        with pytest.raises(DecodeStepFailed, match="empty keystream"):
            p.xor_keystream(b"payload", b"")

    def test_derive_keystream_from_known_prefix(self) -> None:
        plain = '{"sources":[{"file":"https://cdn.example/a.m3u8"}]}'
        cipher = p.xor_keystream(plain, b"\x13\x37")
        key = p.derive_keystream(cipher, '{"sources":[')
        assert key == b"\x13\x37" * 6
        assert p.xor_keystream(cipher, key) == plain.encode()

    def test_derive_keystream_truncates_to_period(self) -> None:
        cipher = p.xor_keystream('{"sources":[]}', b"\x01\x02\x03")
        assert p.derive_keystream(cipher, '{"sources":[', 3) == b"\x01\x02\x03"

    def test_ciphertext_shorter_than_prefix(self) -> None:
        with pytest.raises(DecodeStepFailed, match="shorter"):
            p.derive_keystream(b"\x00\x01", '{"sources":[')

    def test_key_length_beyond_prefix(self) -> None:
        with pytest.raises(DecodeStepFailed, match="key_length"):
            p.derive_keystream(b"\x00" * 20, "{", 4)


class TestAesCbc:
    KEY = bytes(range(32))
    IV = bytes(range(16, 32))

    def _encrypt(self, plain: bytes) -> bytes:
        return AES.new(self.KEY, AES.MODE_CBC, iv=self.IV).encrypt(pad(plain, 16))

    def test_decrypts_and_unpads(self) -> None:
        cipher = self._encrypt(MANIFEST.encode())
        assert p.aes_cbc_decrypt(cipher, key=self.KEY, iv=self.IV) == MANIFEST.encode()

    def test_iv_from_prefix(self) -> None:
        cipher = self.IV + self._encrypt(b"secret")
        assert p.aes_cbc_decrypt(cipher, key=self.KEY, iv_from_prefix=True) == b"secret"

    def test_bad_key_length(self) -> None:
        with pytest.raises(KeyMismatch):
            p.aes_cbc_decrypt(b"\x00" * 16, key=b"short", iv=self.IV)

    def test_bad_iv_length(self) -> None:
        with pytest.raises(KeyMismatch, match="iv length"):
            p.aes_cbc_decrypt(b"\x00" * 16, key=self.KEY, iv=b"\x00" * 8)

    def test_ciphertext_not_block_aligned(self) -> None:
        with pytest.raises(DecodeStepFailed, match="block multiple") as exc_info:
            p.aes_cbc_decrypt(b"\x00" * 15, key=self.KEY, iv=self.IV)
        assert not isinstance(exc_info.value, KeyMismatch)

    def test_malformed_padding(self) -> None:
        # One block of "A" encrypted without padding ends in 0x41
        raw = AES.new(self.KEY, AES.MODE_CBC, iv=self.IV).encrypt(b"A" * 16)
        with pytest.raises(PaddingInvalid):
            p.aes_cbc_decrypt(raw, key=self.KEY, iv=self.IV)


class TestCharacterTransforms:
    def test_substitution_passes_unmapped_through(self) -> None:
        assert p.char_substitution("abc", {"a": "b"}) == "bbc"

    def test_build_mapping_and_invert(self) -> None:
        mapping = p.build_mapping("abc", "xyz")
        assert p.char_substitution("cab", mapping) == "zxy"
        assert p.char_substitution("zxy", p.invert_mapping(mapping)) == "cab"

    def test_build_mapping_length_mismatch(self) -> None:
        with pytest.raises(DecodeStepFailed, match="length"):
            p.build_mapping("abc", "xy")

    def test_build_mapping_duplicates(self) -> None:
        with pytest.raises(DecodeStepFailed, match="duplicates"):
            p.build_mapping("aab", "xyz")

    def test_invert_rejects_non_bijective_map(self) -> None:
        with pytest.raises(DecodeStepFailed):
            p.invert_mapping({"a": "x", "b": "x"})

    def test_rot3_letters_only(self) -> None:
        decoded = p.caesar_shift("eqqmp://zak.bu/0.j3r8", 3, ("lower", "upper"))
        assert decoded == "https://cdn.ex/0.m3u8"

    def test_caesar_digit_wraparound(self) -> None:
        assert p.caesar_shift("789", 3) == "012"

    def test_caesar_negative_amount_inverts(self) -> None:
        assert p.caesar_shift(p.caesar_shift("Hello42", 7), -7) == "Hello42"

    def test_caesar_unknown_class(self) -> None:
        with pytest.raises(DecodeStepFailed, match="alphabet class"):
            p.caesar_shift("abc", 1, ("greek",))

    def test_char_code_shift_wraps_mod_256(self) -> None:
        assert p.char_code_shift(b"ABC", -1) == b"@AB"
        assert p.char_code_shift(b"\x00", -1) == b"\xff"

    def test_reverse_keeps_type(self) -> None:
        assert p.reverse("abc") == "cba"
        assert p.reverse(b"abc") == b"cba"


class TestStripPrefix:
    def test_strips_marker(self) -> None:
        assert p.strip_prefix("#0abc", "#0") == "abc"

    def test_strips_marker_from_bytes(self) -> None:
        assert p.strip_prefix(b"#0abc", "#0") == b"abc"

    def test_missing_optional_prefix(self) -> None:
        assert p.strip_prefix("abc", "#0") == "abc"

    def test_missing_required_prefix(self) -> None:
        with pytest.raises(DecodeStepFailed, match="missing prefix"):
            p.strip_prefix("abc", "#0", required=True)


class TestHexDecode:
    def test_decodes_pairs(self) -> None:
        assert p.hex_decode("68656c6c6f") == b"hello"

    def test_ignores_non_hex_when_asked(self) -> None:
        assert p.hex_decode("68:65:6c:6c:6f", ignore_non_hex=True) == b"hello"

    def test_odd_length(self) -> None:
        with pytest.raises(DecodeStepFailed, match="odd"):
            p.hex_decode("686")

    def test_non_hex_rejected_by_default(self) -> None:
        with pytest.raises(DecodeStepFailed):
            p.hex_decode("zz")


class TestSplitJoinLookup:
    def test_literal_entries(self) -> None:
        assert p.split_join_lookup("a|b||c", delimiter="|") == "abc"

    def test_base_n_entries_with_offset(self) -> None:
        decoded = p.split_join_lookup(
            "69|6a", delimiter="|", alphabet="0123456789abcdef", char_offset=1
        )
        assert decoded == "hi"

    def test_xor_key(self) -> None:
        assert p.split_join_lookup("h|i", delimiter="|", xor_key=" ") == "HI"

    def test_joiner(self) -> None:
        assert p.split_join_lookup("a,b", delimiter=",", joiner="-") == "a-b"

    def test_character_outside_alphabet(self) -> None:
        with pytest.raises(DecodeStepFailed, match="not in alphabet"):
            p.split_join_lookup("6z", delimiter="|", alphabet="0123456789abcdef")

    def test_no_entries(self) -> None:
        with pytest.raises(DecodeStepFailed, match="no entries"):
            p.split_join_lookup("|||", delimiter="|")


class TestJsonBoundaryScan:
    def test_cuts_trailing_garbage(self) -> None:
        assert p.json_boundary_scan('{"a":1}garbage') == '{"a":1}'

    def test_skips_braces_inside_the_noise(self) -> None:
        assert p.json_boundary_scan('{"a":{"b":2}}\x8f}zz') == '{"a":{"b":2}}'

    def test_accepts_bytes(self) -> None:
        assert p.json_boundary_scan(b'{"a":1}\xff\xfe') == '{"a":1}'

    def test_non_ascii_prefix_survives_invalid_tail(self) -> None:
        prefix = '{"title":"Français","label":"Español 字幕"}'
        noisy = prefix.encode("utf-8") + b"\xff\xfe\x80}\xc3"
        assert p.json_boundary_scan(noisy) == prefix

    def test_brace_followed_by_truncated_character(self) -> None:
        noisy = '{"a":"ü"}'.encode("utf-8") + "}ü".encode("utf-8")[:-1]
        assert p.json_boundary_scan(noisy) == '{"a":"ü"}'

    def test_no_valid_prefix(self) -> None:
        with pytest.raises(ValidationFailed):
            p.json_boundary_scan("~%garbage}")


class TestRoundTrips:
    @pytest.mark.parametrize("length", ROUND_TRIP_LENGTHS)
    @pytest.mark.parametrize(
        "options",
        [{}, {"url_safe": True}, {"alphabet": PLAYERJS_ALPHABET}],
        ids=["standard", "url_safe", "custom_alphabet"],
    )
    def test_base64(self, options: dict, length: int) -> None:
        data = _random_bytes(length)
        encoded = p.base64_encode(data, **options)
        assert p.base64_decode(encoded, **options) == data

    @pytest.mark.parametrize("length", ROUND_TRIP_LENGTHS)
    def test_char_substitution(self, length: int) -> None:
        source = string.ascii_letters + string.digits
        mapping = p.build_mapping(source, source[13:] + source[:13])
        text = _random_text(length)
        encoded = p.char_substitution(text, mapping)
        assert p.char_substitution(encoded, p.invert_mapping(mapping)) == text

    @pytest.mark.parametrize("length", ROUND_TRIP_LENGTHS)
    @pytest.mark.parametrize("amount", [3, -7, 29])
    def test_caesar_shift(self, amount: int, length: int) -> None:
        text = _random_text(length)
        assert p.caesar_shift(p.caesar_shift(text, -amount), amount) == text

    @pytest.mark.parametrize("length", ROUND_TRIP_LENGTHS)
    @pytest.mark.parametrize("key", [b"\x5a", b"\x13\x37\x42", bytes(range(1, 17))])
    def test_fixed_key_xor(self, key: bytes, length: int) -> None:
        data = _random_bytes(length)
        assert p.xor_keystream(p.xor_keystream(data, key), key) == data
