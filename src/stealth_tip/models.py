from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class TxStatus(str, Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    BROADCAST = "broadcast"
    IN_BLOCK = "in_block"
    FINALIZED = "finalized"
    INVALID = "invalid"
    DROPPED = "dropped"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL

    @property
    def rank(self) -> int:
        return _RANK[self]


_TERMINAL = frozenset(
    {TxStatus.FINALIZED, TxStatus.INVALID, TxStatus.DROPPED, TxStatus.FAILED}
)

# Position in the confirmation sequence; status never moves to a lower rank.
_RANK = {
    TxStatus.IDLE: 0,
    TxStatus.SUBMITTING: 1,
    TxStatus.BROADCAST: 2,
    TxStatus.IN_BLOCK: 3,
    TxStatus.FINALIZED: 4,
    TxStatus.INVALID: 4,
    TxStatus.DROPPED: 4,
    TxStatus.FAILED: 4,
}

# Pool/status names reported by the node for a watched extrinsic
GATEWAY_STATUS = {
    "future": TxStatus.BROADCAST,
    "ready": TxStatus.BROADCAST,
    "broadcast": TxStatus.BROADCAST,
    "inBlock": TxStatus.IN_BLOCK,
    "finalized": TxStatus.FINALIZED,
    "invalid": TxStatus.INVALID,
    "dropped": TxStatus.DROPPED,
    "usurped": TxStatus.DROPPED,
}


@dataclass(frozen=True)
class LedgerEvent:
    name: str
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TxUpdate:
    status: TxStatus
    block_hash: Optional[str] = None
    events: Tuple[LedgerEvent, ...] = ()

    @staticmethod
    def from_gateway(info: Dict[str, Any]) -> Optional["TxUpdate"]:
        status = GATEWAY_STATUS.get(str(info.get("status", "")))
        if status is None:
            return None
        events = []
        for e in info.get("events") or []:
            if not isinstance(e, dict):
                continue
            fields = e.get("fields") or {}
            if not isinstance(fields, dict):
                raise ValueError(f"Event fields must be an object, got {fields!r}")
            events.append(LedgerEvent(name=str(e.get("name", "")), fields=dict(fields)))
        return TxUpdate(status=status, block_hash=info.get("block_hash"), events=tuple(events))


@dataclass(frozen=True)
class StatusEvent:
    """One step of a submission as reported to the caller."""

    slot: str
    correlation_id: str
    status: TxStatus
    block_hash: Optional[str] = None
    stalled: bool = False
    detail: str = ""


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    JACKPOT_WON = "jackpot_won"
    NO_WIN = "no_win"
    REGISTERED = "registered"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    correlation_id: str
    block_hash: Optional[str] = None
    amount: Optional[int] = None
    streak: Optional[int] = None


@dataclass(frozen=True)
class GameIntent:
    username: str
    amount: int
    salt: bytes
    correlation_id: str


@dataclass(frozen=True)
class StreakState:
    last_played_ms: int = 0
    count: int = 0


@dataclass(frozen=True)
class JackpotSnapshot:
    pool: int = 0
    last_winner: Optional[bytes] = None
