"""
Stealth address derivation.

    address = blake2b-256(utf8(username) || salt)

The contract recomputes exactly this on every tip, balance query and
withdrawal, and the (username, salt) pairing is never stored on-chain.
Any divergence here sends funds to an address nobody can withdraw from.
"""

from __future__ import annotations

import hashlib

import base58

from .errors import ValidationError
from .project_constants import ACCOUNT_ID_LENGTH, HANDLE_MARKER, SALT_LENGTH

_SS58_PREFIX = b"SS58PRE"
_SS58_CHECKSUM_LENGTH = 2


def normalize_username(raw: str) -> str:
    """
    Strips one leading handle marker ("@bob" -> "bob").
    No trimming, case folding or charset checks: the contract owns those.
    """
    if raw.startswith(HANDLE_MARKER):
        return raw[len(HANDLE_MARKER):]
    return raw


def derive_stealth_address(username: str, salt: bytes) -> bytes:
    if len(salt) != SALT_LENGTH:
        raise ValidationError(f"Salt must be {SALT_LENGTH} bytes, got {len(salt)}.")

    # Blake2x256 in ink! is unkeyed, unpersonalized blake2b with a 32-byte digest.
    return hashlib.blake2b(
        username.encode("utf-8") + salt, digest_size=ACCOUNT_ID_LENGTH
    ).digest()


def _ss58_checksum(payload: bytes) -> bytes:
    return hashlib.blake2b(_SS58_PREFIX + payload, digest_size=64).digest()[
        :_SS58_CHECKSUM_LENGTH
    ]


def ss58_encode(account_id: bytes, ss58_format: int) -> str:
    if len(account_id) != ACCOUNT_ID_LENGTH:
        raise ValidationError(
            f"Account id must be {ACCOUNT_ID_LENGTH} bytes, got {len(account_id)}."
        )
    if ss58_format < 0 or ss58_format > 16383 or ss58_format in (46, 47):
        raise ValidationError(f"Invalid SS58 format {ss58_format}.")

    if ss58_format < 64:
        prefix = bytes([ss58_format])
    else:
        prefix = bytes(
            [
                ((ss58_format & 0b1111_1100) >> 2) | 0b0100_0000,
                (ss58_format >> 8) | ((ss58_format & 0b11) << 6),
            ]
        )

    payload = prefix + account_id
    return base58.b58encode(payload + _ss58_checksum(payload)).decode("ascii")


def ss58_decode(address: str, ss58_format: int | None = None) -> bytes:
    """
    Returns the 32-byte account id. If ss58_format is given the address
    must carry that network prefix.
    """
    try:
        raw = base58.b58decode(address)
    except ValueError as e:
        raise ValidationError(f"Not a base58 address: {address!r}") from e

    if raw and raw[0] & 0b0100_0000:
        if len(raw) < 2:
            raise ValidationError(f"Truncated SS58 address: {address!r}")
        prefix_len = 2
        found = ((raw[0] & 0b0011_1111) << 2) | (raw[1] >> 6) | ((raw[1] & 0b0011_1111) << 8)
    else:
        prefix_len = 1
        found = raw[0] if raw else -1

    if len(raw) != prefix_len + ACCOUNT_ID_LENGTH + _SS58_CHECKSUM_LENGTH:
        raise ValidationError(f"Unexpected SS58 address length: {address!r}")

    payload = raw[:-_SS58_CHECKSUM_LENGTH]
    if _ss58_checksum(payload) != raw[-_SS58_CHECKSUM_LENGTH:]:
        raise ValidationError(f"Bad SS58 checksum: {address!r}")
    if ss58_format is not None and found != ss58_format:
        raise ValidationError(
            f"Address is for network prefix {found}, expected {ss58_format}."
        )
    return payload[prefix_len:]


def parse_account(text: str) -> bytes:
    """Accepts either 0x-prefixed hex or any SS58 address."""
    if text.startswith("0x"):
        try:
            raw = bytes.fromhex(text[2:])
        except ValueError as e:
            raise ValidationError(f"Not a hex account id: {text!r}") from e
        if len(raw) != ACCOUNT_ID_LENGTH:
            raise ValidationError(
                f"Account id must be {ACCOUNT_ID_LENGTH} bytes, got {len(raw)}."
            )
        return raw
    return ss58_decode(text)
