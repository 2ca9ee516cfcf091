from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, List, Optional, Union

from .errors import ContractQueryError, ValidationError, WalletError
from .interface import (
    RETURNS_BALANCE,
    RETURNS_BOOL,
    RETURNS_NONE,
    RETURNS_OPTION_ACCOUNT,
    RETURNS_STREAK,
    RETURNS_U64,
    ContractSchema,
)
from .models import StreakState, TxStatus, TxUpdate
from .project_constants import STATUS_POLL_INTERVAL_S
from .rpc import LedgerRpcClient
from .stealth import parse_account, ss58_encode
from .wallet import Signer

log = logging.getLogger(__name__)

Caller = Union[bytes, str]


class ContractClient:
    """Typed access to the contract messages listed in interface.MESSAGES."""

    def __init__(
        self,
        rpc: LedgerRpcClient,
        schema: ContractSchema,
        contract_address: str,
        ss58_format: int,
        status_poll_interval_s: float = STATUS_POLL_INTERVAL_S,
    ) -> None:
        self.rpc = rpc
        self.schema = schema
        self.contract_address = contract_address
        self.ss58_format = ss58_format
        self.status_poll_interval_s = status_poll_interval_s

    # ------------------------
    # Encoding
    # ------------------------
    def _account_text(self, account: Caller) -> str:
        if isinstance(account, bytes):
            return ss58_encode(account, self.ss58_format)
        return account

    def _encode_args(self, label: str, args: tuple) -> List[Any]:
        spec = self.schema.spec(label)
        if len(args) != len(spec.args):
            raise ValidationError(
                f"'{label}' takes {len(spec.args)} arguments, got {len(args)}."
            )
        out: List[Any] = []
        for value in args:
            if isinstance(value, bytes):
                out.append("0x" + value.hex())
            elif isinstance(value, bool):
                out.append(value)
            elif isinstance(value, int):
                out.append(str(value))
            else:
                out.append(value)
        return out

    def _decode(self, label: str, returns: str, output: Any) -> Any:
        try:
            if returns == RETURNS_NONE:
                return None
            if returns in (RETURNS_BALANCE, RETURNS_U64):
                value = int(output)
                if value < 0:
                    raise ValueError("negative amount")
                return value
            if returns == RETURNS_BOOL:
                if not isinstance(output, bool):
                    raise ValueError(f"expected bool, got {output!r}")
                return output
            if returns == RETURNS_OPTION_ACCOUNT:
                return None if output is None else parse_account(str(output))
            if returns == RETURNS_STREAK:
                last_played, count = output
                return StreakState(last_played_ms=int(last_played), count=int(count))
        except (TypeError, ValueError, ValidationError) as e:
            raise ContractQueryError(f"Could not decode output of '{label}': {e}")
        raise ContractQueryError(f"Unknown return kind '{returns}' for '{label}'.")

    # ------------------------
    # Queries
    # ------------------------
    async def query(self, label: str, caller: Caller, *args: Any) -> Any:
        spec = self.schema.spec(label)
        if spec.mutates:
            raise ValidationError(f"'{label}' is a command, not a query.")
        output = await self.rpc.contract_call(
            self.contract_address,
            self._account_text(caller),
            self.schema.selector(label),
            self._encode_args(label, args),
        )
        return self._decode(label, spec.returns, output)

    async def get_stealth_balance(self, caller: Caller, username: str, salt: bytes) -> int:
        return await self.query("get_stealth_balance", caller, username, salt)

    async def get_username_owner(self, caller: Caller, username: str) -> Optional[bytes]:
        return await self.query("get_username_owner", caller, username)

    async def get_premium_owner(self, caller: Caller, username: str) -> Optional[bytes]:
        return await self.query("get_premium_owner", caller, username)

    async def get_jackpot_pool(self, caller: Caller) -> int:
        return await self.query("get_jackpot_pool", caller)

    async def get_last_jackpot_winner(self, caller: Caller) -> Optional[bytes]:
        return await self.query("get_last_jackpot_winner", caller)

    async def get_streak(self, caller: Caller, account: bytes) -> StreakState:
        return await self.query("get_streak", caller, account)

    async def get_fee_enabled(self, caller: Caller) -> bool:
        return await self.query("get_fee_enabled", caller)

    async def get_accumulated_fees(self, caller: Caller) -> int:
        return await self.query("get_accumulated_fees", caller)

    async def get_game_play_count(self, caller: Caller) -> int:
        return await self.query("get_game_play_count", caller)

    # ------------------------
    # Commands
    # ------------------------
    async def submit(
        self,
        label: str,
        args: tuple,
        value: int,
        signer: Signer,
    ) -> AsyncIterator[TxUpdate]:
        """
        Signs and submits one command, then yields its status changes.
        Errors raised before the first yield mean nothing reached the network.
        """
        spec = self.schema.spec(label)
        if not spec.mutates:
            raise ValidationError(f"'{label}' is a query, not a command.")
        if value and not spec.payable:
            raise ValidationError(f"'{label}' does not accept a transferred value.")

        payload = {
            "contract": self.contract_address,
            "message": label,
            "selector": self.schema.selector(label),
            "args": self._encode_args(label, args),
            "value": str(value),
            "signer": ss58_encode(signer.address, self.ss58_format),
        }
        blob = json.dumps(payload, sort_keys=True, separators=(",", ":")).encode()

        try:
            signature = await signer.sign(blob)
        except WalletError:
            raise
        except Exception as e:
            raise WalletError(f"Signature rejected: {e}") from e

        tx_hash = await self.rpc.submit_extrinsic(payload, "0x" + signature.hex())
        log.info("Submitted %s as %s", label, tx_hash)

        yield TxUpdate(status=TxStatus.BROADCAST)
        async for update in self.rpc.watch_extrinsic(tx_hash, self.status_poll_interval_s):
            yield update
