from __future__ import annotations

import logging
from typing import Optional, Protocol

import nacl.exceptions
import nacl.signing

from .errors import WalletError

log = logging.getLogger(__name__)


class Signer(Protocol):
    address: bytes

    async def sign(self, payload: bytes) -> bytes: ...


class Ed25519Signer:
    """Local ed25519 key. The account id is the 32-byte public key."""

    def __init__(self, signing_key: nacl.signing.SigningKey) -> None:
        self.signing_key = signing_key
        self.address = bytes(signing_key.verify_key)

    @classmethod
    def from_seed_hex(cls, seed_hex: str) -> "Ed25519Signer":
        body = seed_hex[2:] if seed_hex.startswith("0x") else seed_hex
        try:
            seed = bytes.fromhex(body)
            return cls(nacl.signing.SigningKey(seed))
        except (ValueError, TypeError, nacl.exceptions.CryptoError) as e:
            raise WalletError(f"Signer seed must be 32 bytes of hex: {e}")

    async def sign(self, payload: bytes) -> bytes:
        return self.signing_key.sign(payload).signature


def load_signer(seed_hex: Optional[str]) -> Optional[Signer]:
    if not seed_hex:
        log.info("No signer configured; write operations are disabled.")
        return None
    return Ed25519Signer.from_seed_hex(seed_hex)


def require_signer(signer: Optional[Signer]) -> Signer:
    if signer is None:
        raise WalletError("No signer available. Set SIGNER_SEED to send transactions.")
    return signer
