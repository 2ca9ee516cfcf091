from __future__ import annotations

import logging
from typing import Optional

from .errors import ValidationError
from .salt import salt_fingerprint
from .stealth import derive_stealth_address, normalize_username

log = logging.getLogger(__name__)


class BalanceResolver:
    """
    Looks up funds held under a (username, salt) pair.

    The query is keyed by the pair itself; the contract recomputes the
    stealth address on its side. The locally derived address is kept
    for display only.
    """

    def __init__(self, contract, fallback_caller: str) -> None:
        self.contract = contract
        self.fallback_caller = fallback_caller
        self.last_stealth_address: Optional[bytes] = None

    async def resolve(self, username: str, salt: bytes, caller=None) -> int:
        username = normalize_username(username)
        if not username:
            raise ValidationError("Username must not be empty.")

        self.last_stealth_address = derive_stealth_address(username, salt)
        log.debug(
            "Resolving balance for %s (salt %s) at %s",
            username,
            salt_fingerprint(salt),
            self.last_stealth_address.hex(),
        )

        # ContractQueryError propagates: a failed read is never shown as zero.
        return await self.contract.get_stealth_balance(
            caller if caller is not None else self.fallback_caller, username, salt
        )
