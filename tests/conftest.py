"""
Shared fixtures: an in-memory ledger that behaves like the contract for
tips, withdrawals and games, plus a scripted one whose status stream is
driven step by step from the test.
"""

from __future__ import annotations

import asyncio
from collections import defaultdict
from typing import Any, Dict, List, Optional

import pytest

from stealth_tip.models import LedgerEvent, StreakState, TxStatus, TxUpdate
from stealth_tip.stealth import derive_stealth_address
from stealth_tip.wallet import Ed25519Signer

FALLBACK_CALLER = "XT4aydpP7aPLBxpMvM1bHrTAk9Dp8Qphaqk9FR7ugvHybFR"


def finalized_stream(*events: LedgerEvent, block: str = "0xblock") -> List[TxUpdate]:
    return [
        TxUpdate(TxStatus.BROADCAST),
        TxUpdate(TxStatus.IN_BLOCK, block_hash=block),
        TxUpdate(TxStatus.FINALIZED, block_hash=block, events=tuple(events)),
    ]


class InMemoryLedger:
    """Credits and debits stealth balances the way the contract does."""

    def __init__(self) -> None:
        self.balances: Dict[bytes, int] = defaultdict(int)
        self.owners: Dict[str, bytes] = {}
        self.streaks: Dict[bytes, StreakState] = {}
        self.jackpot_pool = 0
        self.last_winner: Optional[bytes] = None
        self.submitted: List[tuple] = []
        self.queries: List[tuple] = []
        self.script: Optional[List[Any]] = None

    async def get_stealth_balance(self, caller, username: str, salt: bytes) -> int:
        self.queries.append(("get_stealth_balance", caller, username, salt))
        return self.balances.get(derive_stealth_address(username, salt), 0)

    async def get_username_owner(self, caller, username: str) -> Optional[bytes]:
        self.queries.append(("get_username_owner", caller, username))
        return self.owners.get(username)

    async def get_jackpot_pool(self, caller) -> int:
        return self.jackpot_pool

    async def get_last_jackpot_winner(self, caller) -> Optional[bytes]:
        return self.last_winner

    async def get_streak(self, caller, account: bytes) -> StreakState:
        return self.streaks.get(account, StreakState())

    def _apply(self, label: str, args: tuple, value: int) -> List[LedgerEvent]:
        if label == "tip":
            username, salt = args
            self.balances[derive_stealth_address(username, salt)] += value
            return []
        if label == "withdraw":
            username, salt = args
            self.balances[derive_stealth_address(username, salt)] = 0
            return []
        if label == "tip_and_play":
            return [LedgerEvent("GamePlayed", {"streak": 1})]
        if label in ("register_username", "register_premium_username"):
            return [LedgerEvent("UsernameRegistered", {"username": args[0]})]
        return []

    async def submit(self, label: str, args: tuple, value: int, signer):
        self.submitted.append((label, args, value))
        if self.script is not None:
            for step in self.script:
                if isinstance(step, BaseException):
                    raise step
                yield step
            return
        events = self._apply(label, args, value)
        for update in finalized_stream(*events):
            await asyncio.sleep(0)
            yield update


class ScriptedLedger(InMemoryLedger):
    """Status stream fed from the test through a queue; None ends it."""

    def __init__(self) -> None:
        super().__init__()
        self.queue: asyncio.Queue = asyncio.Queue()

    async def submit(self, label: str, args: tuple, value: int, signer):
        self.submitted.append((label, args, value))
        while True:
            step = await self.queue.get()
            if step is None:
                return
            if isinstance(step, BaseException):
                raise step
            yield step


@pytest.fixture
def salt() -> bytes:
    return bytes(range(32))


@pytest.fixture
def signer() -> Ed25519Signer:
    return Ed25519Signer.from_seed_hex("11" * 32)


@pytest.fixture
def ledger() -> InMemoryLedger:
    return InMemoryLedger()


@pytest.fixture
def scripted() -> ScriptedLedger:
    return ScriptedLedger()


async def wait_for(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.001)


def contract_metadata(include_optional: bool = True, drop: str = "") -> Dict[str, Any]:
    """ink!-style metadata carrying every message the client expects."""
    from stealth_tip.interface import MESSAGES, OPTIONAL_MESSAGES

    specs = list(MESSAGES.values())
    if include_optional:
        specs += list(OPTIONAL_MESSAGES.values())

    messages = [
        {
            "label": spec.label,
            "args": [{"label": a, "type": {"type": 0}} for a in spec.args],
            "mutates": spec.mutates,
            "payable": spec.payable,
            "selector": "0x%08x" % i,
        }
        for i, spec in enumerate(specs)
        if spec.label != drop
    ]
    return {"source": {"language": "ink! 4.3.0"}, "spec": {"messages": messages}}
