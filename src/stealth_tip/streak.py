"""
Streak display.

The contract is authoritative on streak resets. This module only turns a
(last_played_ms, count) pair into what the UI shows.

Two writers share the tracker's cell: the optimistic update after a
locally finalized game, and the background refresh from the ledger.
Last write wins, and a refresh always overwrites an optimistic value,
even one newer than the block the refresh read from.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Optional

from .models import StreakState
from .project_constants import MAX_STREAK_MULTIPLIER, STREAK_WINDOW_MS

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class StreakView:
    active: bool
    multiplier: int


def interpret(
    last_played_ms: int,
    count: int,
    now_ms: int,
    window_ms: int = STREAK_WINDOW_MS,
) -> StreakView:
    return StreakView(
        active=(now_ms - last_played_ms) < window_ms,
        multiplier=min(count, MAX_STREAK_MULTIPLIER),
    )


def now_ms() -> int:
    return int(time.time() * 1000)


class StreakTracker:
    def __init__(self, contract, window_ms: int = STREAK_WINDOW_MS) -> None:
        self.contract = contract
        self.window_ms = window_ms
        self.state = StreakState()
        self.optimistic = False

    async def refresh(self, caller, account: bytes) -> StreakState:
        self.state = await self.contract.get_streak(caller, account)
        self.optimistic = False
        log.debug("Streak refreshed: %s", self.state)
        return self.state

    def apply_optimistic(self, count: int, played_at_ms: Optional[int] = None) -> None:
        self.state = StreakState(
            last_played_ms=played_at_ms if played_at_ms is not None else now_ms(),
            count=count,
        )
        self.optimistic = True

    def view(self, at_ms: Optional[int] = None) -> StreakView:
        return interpret(
            self.state.last_played_ms,
            self.state.count,
            at_ms if at_ms is not None else now_ms(),
            self.window_ms,
        )
