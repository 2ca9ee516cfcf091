"""
Salt generation and hex conversion.

A salt is the 32-byte secret that, together with a username, locates
stealth funds. The sender keeps it and hands it to the recipient out of
band; this module never persists it.
"""

from __future__ import annotations

import re
import secrets

from .errors import MalformedSaltError
from .project_constants import SALT_LENGTH

_HEX_RE = re.compile(r"[0-9a-fA-F]*")


def generate_salt() -> bytes:
    # secrets draws from the OS CSPRNG and raises if none is available.
    return secrets.token_bytes(SALT_LENGTH)


def salt_to_hex(salt: bytes) -> str:
    """Returns exactly 64 lowercase hex characters, no prefix."""
    if len(salt) != SALT_LENGTH:
        raise MalformedSaltError(
            f"Salt must be {SALT_LENGTH} bytes, got {len(salt)}."
        )
    return salt.hex()


def salt_from_hex(text: str) -> bytes:
    """
    Decodes a salt pasted by a user or carried in a share link.
    A leading 0x / 0X is accepted and stripped.
    """
    body = text[2:] if text[:2] in ("0x", "0X") else text

    if len(body) % 2:
        raise MalformedSaltError("Salt hex has an odd number of digits.")
    if not _HEX_RE.fullmatch(body):
        raise MalformedSaltError("Salt hex contains non-hex characters.")

    raw = bytes.fromhex(body)
    if len(raw) != SALT_LENGTH:
        raise MalformedSaltError(
            f"Salt must be {SALT_LENGTH} bytes ({2 * SALT_LENGTH} hex chars), "
            f"got {len(raw)}."
        )
    return raw


def salt_fingerprint(salt: bytes) -> str:
    """Short, non-reversible label for logs."""
    return f"{salt[:2].hex()}…({len(salt)}B)"
