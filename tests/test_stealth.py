"""Tests for username normalization, stealth derivation and SS58."""

import hashlib

import pytest

from stealth_tip.errors import ValidationError
from stealth_tip.stealth import (
    derive_stealth_address,
    normalize_username,
    parse_account,
    ss58_decode,
    ss58_encode,
)

ALICE = bytes.fromhex("d43593c715fdd31c61141abd04a99fd6822c8558854ccde39a5684e7a56da27d")
ALICE_SS58_GENERIC = "5GrwvaEF5zXb26Fz9rcQpDWS57CtERHpNehXCPcNoHGKutQY"


class TestNormalize:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("@bob", "bob"),
            ("bob", "bob"),
            ("@@bob", "@bob"),
            (" @bob", " @bob"),
            ("@", ""),
            ("", ""),
            ("Bob", "Bob"),
        ],
    )
    def test_strips_one_leading_marker(self, raw, expected):
        assert normalize_username(raw) == expected

    def test_stable_on_plain_handles(self):
        for raw in ("@alice", "alice", "ali@ce"):
            once = normalize_username(raw)
            assert normalize_username(once) == once


class TestDerive:
    @pytest.mark.parametrize("u", ["bob", "@bob", "@@bob", "", "ñinja", "a b"])
    def test_marker_prefix_does_not_change_address(self, u, salt):
        n = normalize_username(u)
        assert derive_stealth_address(n, salt) == derive_stealth_address(
            normalize_username("@" + n), salt
        )

    def test_matches_blake2b_256_of_username_then_salt(self):
        salt = b"\x01" * 32
        expected = hashlib.blake2b(b"alice" + salt, digest_size=32).digest()
        assert derive_stealth_address("alice", salt) == expected

    def test_is_32_bytes_and_deterministic(self, salt):
        first = derive_stealth_address("bob", salt)
        assert len(first) == 32
        assert derive_stealth_address("bob", salt) == first

    def test_one_byte_change_in_salt_changes_address(self, salt):
        tweaked = bytes([salt[0] ^ 1]) + salt[1:]
        assert derive_stealth_address("bob", salt) != derive_stealth_address("bob", tweaked)

    def test_one_char_change_in_username_changes_address(self, salt):
        assert derive_stealth_address("bob", salt) != derive_stealth_address("bop", salt)

    def test_different_salts_give_different_addresses(self):
        assert derive_stealth_address("alice", b"\x01" * 32) != derive_stealth_address(
            "alice", b"\x02" * 32
        )

    def test_username_is_utf8_encoded(self, salt):
        expected = hashlib.blake2b("ñinja".encode("utf-8") + salt, digest_size=32).digest()
        assert derive_stealth_address("ñinja", salt) == expected

    def test_rejects_wrong_salt_length(self):
        with pytest.raises(ValidationError):
            derive_stealth_address("bob", b"\x00" * 16)


class TestSS58:
    def test_known_vector(self):
        assert ss58_encode(ALICE, 42) == ALICE_SS58_GENERIC

    def test_decode_known_vector(self):
        assert ss58_decode(ALICE_SS58_GENERIC) == ALICE
        assert ss58_decode(ALICE_SS58_GENERIC, 42) == ALICE

    @pytest.mark.parametrize("fmt", [0, 5, 63, 64, 1284, 16383])
    def test_round_trip_for_one_and_two_byte_prefixes(self, fmt):
        assert ss58_decode(ss58_encode(ALICE, fmt), fmt) == ALICE

    def test_prefix_mismatch(self):
        with pytest.raises(ValidationError, match="prefix"):
            ss58_decode(ss58_encode(ALICE, 5), 42)

    def test_bad_checksum(self):
        text = ALICE_SS58_GENERIC
        corrupted = text[:-1] + ("Z" if text[-1] != "Z" else "Y")
        with pytest.raises(ValidationError):
            ss58_decode(corrupted)

    def test_rejects_reserved_format(self):
        with pytest.raises(ValidationError):
            ss58_encode(ALICE, 46)

    def test_parse_account_accepts_hex_and_ss58(self):
        assert parse_account("0x" + ALICE.hex()) == ALICE
        assert parse_account(ALICE_SS58_GENERIC) == ALICE

    def test_parse_account_rejects_short_hex(self):
        with pytest.raises(ValidationError):
            parse_account("0x1234")
