"""Unit tests for CapabilityTokenCodec."""

import base64
import json

import pytest
from cryptography.fernet import Fernet

from services.capability_codec import CapabilityTokenCodec
from services.exceptions import CapabilityDecodeError


@pytest.fixture
def key():
    return Fernet.generate_key()


@pytest.fixture
def codec(key):
    return CapabilityTokenCodec(key)


def _flip_bit(opaque: str, byte_index: int, bit: int = 0) -> str:
    raw = bytearray(base64.urlsafe_b64decode(opaque))
    raw[byte_index] ^= 1 << bit
    return base64.urlsafe_b64encode(bytes(raw)).decode("ascii")


class TestRoundTrip:
    @pytest.mark.parametrize(
        "selector, token",
        [
            ("sel1", "tok1"),
            ("Yk3_-aZ0qL", "a" * 64),
            ("sélecteur", "jeton✓"),
        ],
        ids=["simple", "urlsafe", "unicode"],
    )
    def test_decode_returns_original_pair(self, codec, selector, token):
        assert codec.decode(codec.encode(selector, token)) == (selector, token)

    def test_str_key_accepted(self, key):
        codec = CapabilityTokenCodec(key.decode("ascii"))
        assert codec.decode(codec.encode("s", "t")) == ("s", "t")

    def test_token_is_opaque(self, codec):
        opaque = codec.encode("sel1", "tok1")
        assert "sel1" not in opaque
        assert "tok1" not in opaque

    def test_same_pair_encrypts_differently(self, codec):
        assert codec.encode("sel1", "tok1") != codec.encode("sel1", "tok1")


class TestRejection:
    def test_wrong_key(self, codec):
        other = CapabilityTokenCodec(Fernet.generate_key())
        with pytest.raises(CapabilityDecodeError):
            other.decode(codec.encode("sel1", "tok1"))

    def test_every_single_bit_flip_rejected(self, codec):
        opaque = codec.encode("sel1", "tok1")
        length = len(base64.urlsafe_b64decode(opaque))
        for index in range(length):
            for bit in (0, 7):
                with pytest.raises(CapabilityDecodeError):
                    codec.decode(_flip_bit(opaque, index, bit))

    @pytest.mark.parametrize(
        "opaque",
        ["", "not-a-token", "gAAAA", "§§§", None],
        ids=["empty", "garbage", "truncated", "non_ascii", "none"],
    )
    def test_malformed(self, codec, opaque):
        with pytest.raises(CapabilityDecodeError):
            codec.decode(opaque)

    @pytest.mark.parametrize(
        "plaintext",
        [
            b"not json",
            json.dumps(["sel", "tok"]).encode(),
            json.dumps({"selector": "sel"}).encode(),
            json.dumps({"selector": "sel", "token": "tok", "extra": 1}).encode(),
            json.dumps({"selector": 1, "token": "tok"}).encode(),
            json.dumps({"selector": "", "token": "tok"}).encode(),
        ],
        ids=["not_json", "list", "missing_token", "extra_key", "non_string", "empty"],
    )
    def test_authentic_but_wrong_payload(self, key, codec, plaintext):
        opaque = Fernet(key).encrypt(plaintext).decode("ascii")
        with pytest.raises(CapabilityDecodeError):
            codec.decode(opaque)


def test_invalid_key_rejected_at_construction():
    with pytest.raises(ValueError):
        CapabilityTokenCodec("too-short")
