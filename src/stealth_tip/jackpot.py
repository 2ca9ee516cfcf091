"""
Jackpot pool polling.

Lightweight asyncio loop: query pool and last winner, publish a snapshot,
sleep, repeat. A failed tick is logged and reported and the loop carries
on. After stop(), no snapshot update happens, including from a query
that was already in flight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional

from .models import JackpotSnapshot
from .project_constants import JACKPOT_POLL_INTERVAL_S

log = logging.getLogger(__name__)


class JackpotPoller:
    def __init__(
        self,
        contract,
        caller,
        interval_s: float = JACKPOT_POLL_INTERVAL_S,
        on_update: Optional[Callable[[JackpotSnapshot], Any]] = None,
        on_error: Optional[Callable[[Exception], Any]] = None,
    ) -> None:
        self.contract = contract
        self.caller = caller
        self.interval_s = interval_s
        self.on_update = on_update
        self.on_error = on_error
        self.snapshot = JackpotSnapshot()
        self.last_error: Optional[Exception] = None
        self._task: Optional[asyncio.Task[None]] = None
        # Bumped on every start/stop; a tick only publishes if it still matches.
        self._generation = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            log.warning("Jackpot poller already running")
            return
        self._generation += 1
        self._task = asyncio.create_task(
            self._loop(self._generation), name="jackpot_poller"
        )
        log.info("Jackpot poller started (every %.1fs)", self.interval_s)

    def stop(self) -> None:
        self._generation += 1
        if self._task is not None:
            self._task.cancel()
            self._task = None
            log.info("Jackpot poller stopped")

    async def aclose(self) -> None:
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    def reset(self) -> None:
        """Back to the empty snapshot, e.g. after disconnecting."""
        self.snapshot = JackpotSnapshot()
        self.last_error = None

    async def poll_once(self, generation: Optional[int] = None) -> Optional[JackpotSnapshot]:
        generation = self._generation if generation is None else generation

        pool = await self.contract.get_jackpot_pool(self.caller)
        winner = await self.contract.get_last_jackpot_winner(self.caller)

        if generation != self._generation:
            log.debug("Discarding jackpot result from a stopped poller")
            return None

        self.snapshot = JackpotSnapshot(pool=pool, last_winner=winner)
        self.last_error = None
        if self.on_update is not None:
            self.on_update(self.snapshot)
        return self.snapshot

    async def _loop(self, generation: int) -> None:
        while generation == self._generation:
            try:
                await self.poll_once(generation)
            except Exception as e:
                self.last_error = e
                log.warning("Jackpot poll failed: %s", e)
                if self.on_error is not None and generation == self._generation:
                    self.on_error(e)
            await asyncio.sleep(self.interval_s)
