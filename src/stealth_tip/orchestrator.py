"""
Submission state machine for contract commands.

    IDLE -> SUBMITTING -> BROADCAST -> IN_BLOCK -> FINALIZED | INVALID | DROPPED
    IDLE / SUBMITTING -> FAILED   (nothing reached the network)

Each orchestrator owns one logical slot (one form or action). At most one
request per slot is between SUBMITTING and a terminal status; another
attempt meanwhile raises AlreadyInFlightError and leaves the first alone.

IN_BLOCK is reported but is not success: only FINALIZED is. There is no
deadline on finalization. A request that stops moving is re-reported with
stalled=True every `stall_notice_s` seconds.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, AsyncIterator, Callable, Optional, Union

from .amounts import to_ledger_units
from .errors import (
    AlreadyInFlightError,
    TransactionError,
    ValidationError,
    WalletError,
)
from .models import (
    GameIntent,
    Outcome,
    OutcomeKind,
    StatusEvent,
    TxStatus,
    TxUpdate,
)
from .project_constants import REGISTRATION_COST, SALT_LENGTH, STALL_NOTICE_S
from .salt import salt_fingerprint
from .stealth import normalize_username
from .streak import StreakTracker
from .wallet import Signer

log = logging.getLogger(__name__)

Amount = Union[str, int]

_IN_FLIGHT = frozenset({TxStatus.SUBMITTING, TxStatus.BROADCAST, TxStatus.IN_BLOCK})

EVENT_JACKPOT_WON = "JackpotWon"
EVENT_GAME_PLAYED = "GamePlayed"
EVENT_USERNAME_REGISTERED = "UsernameRegistered"
EVENT_EXTRINSIC_FAILED = "ExtrinsicFailed"


def _username(raw: str) -> str:
    username = normalize_username(raw)
    if not username:
        raise ValidationError("Username must not be empty.")
    return username


def _units(amount: Amount) -> int:
    if isinstance(amount, bool):
        raise ValidationError("Amount must be a number.")
    if isinstance(amount, int):
        if amount <= 0:
            raise ValidationError("Amount must be greater than zero.")
        return amount
    return to_ledger_units(amount)


def _salt(salt: Optional[bytes]) -> bytes:
    if salt is None or len(salt) != SALT_LENGTH:
        raise ValidationError(f"A {SALT_LENGTH}-byte salt is required.")
    return salt


async def _next_update(updates: AsyncIterator[TxUpdate]) -> Optional[TxUpdate]:
    try:
        return await updates.__anext__()
    except StopAsyncIteration:
        return None


class TransactionOrchestrator:
    def __init__(
        self,
        contract,
        signer: Optional[Signer],
        fallback_caller: str,
        slot: str = "default",
        on_status: Optional[Callable[[StatusEvent], Any]] = None,
        streak_tracker: Optional[StreakTracker] = None,
        stall_notice_s: Optional[float] = STALL_NOTICE_S,
    ) -> None:
        self.contract = contract
        self.signer = signer
        self.fallback_caller = fallback_caller
        self.slot = slot
        self.on_status = on_status
        self.streak_tracker = streak_tracker
        self.stall_notice_s = stall_notice_s
        self.state = TxStatus.IDLE
        self.correlation_id: Optional[str] = None
        self.block_hash: Optional[str] = None

    @property
    def in_flight(self) -> bool:
        return self.state in _IN_FLIGHT

    # ------------------------
    # Commands
    # ------------------------
    async def tip(self, username: str, amount: Amount, salt: bytes) -> Outcome:
        username, value, salt = _username(username), _units(amount), _salt(salt)
        return await self._run("tip", (username, salt), value)

    async def tip_and_play(
        self, username: str, amount: Amount, salt: Optional[bytes] = None
    ) -> Outcome:
        """
        A salt may be omitted only for a registered handle: the contract
        then pays the owner directly and ignores the salt.
        """
        username, value = _username(username), _units(amount)
        if salt is None:
            self._ensure_idle()
            owner = await self.contract.get_username_owner(self._caller(), username)
            if owner is None:
                raise ValidationError(
                    f"'{username}' is not registered; a salt is required."
                )
            salt = bytes(SALT_LENGTH)
        intent = GameIntent(
            username=username,
            amount=value,
            salt=_salt(salt),
            correlation_id=uuid.uuid4().hex,
        )
        return await self._run(
            "tip_and_play",
            (intent.username, intent.salt),
            intent.amount,
            game=True,
            correlation_id=intent.correlation_id,
        )

    async def withdraw(self, username: str, salt: bytes) -> Outcome:
        return await self._run("withdraw", (_username(username), _salt(salt)), 0)

    async def register_username(
        self, username: str, value: Amount = REGISTRATION_COST
    ) -> Outcome:
        return await self._run("register_username", (_username(username),), _units(value))

    async def register_premium_username(
        self, username: str, value: Amount = REGISTRATION_COST
    ) -> Outcome:
        return await self._run(
            "register_premium_username", (_username(username),), _units(value)
        )

    async def set_fee_enabled(self, enabled: bool) -> Outcome:
        return await self._run("set_fee_enabled", (bool(enabled),), 0)

    async def collect_fees(self) -> Outcome:
        return await self._run("collect_fees", (), 0)

    # ------------------------
    # State machine
    # ------------------------
    def _caller(self):
        return self.signer.address if self.signer is not None else self.fallback_caller

    def _ensure_idle(self) -> None:
        if self.in_flight:
            raise AlreadyInFlightError(self.slot)

    def _emit(
        self,
        status: TxStatus,
        block_hash: Optional[str] = None,
        stalled: bool = False,
        detail: str = "",
    ) -> None:
        self.state = status
        if block_hash:
            self.block_hash = block_hash
        event = StatusEvent(
            slot=self.slot,
            correlation_id=self.correlation_id or "",
            status=status,
            block_hash=block_hash,
            stalled=stalled,
            detail=detail,
        )
        log.info(
            "[%s %s] %s%s%s",
            self.slot,
            event.correlation_id[:8],
            status.value,
            " (stalled)" if stalled else "",
            f" {block_hash}" if block_hash else "",
        )
        if self.on_status is not None:
            self.on_status(event)

    async def _run(
        self,
        label: str,
        args: tuple,
        value: int,
        game: bool = False,
        correlation_id: Optional[str] = None,
    ) -> Outcome:
        self._ensure_idle()
        self.correlation_id = correlation_id or uuid.uuid4().hex
        self.block_hash = None
        self._emit(TxStatus.SUBMITTING, detail=label)

        if len(args) == 2 and isinstance(args[1], bytes):
            log.debug("%s for %s with salt %s", label, args[0], salt_fingerprint(args[1]))

        if self.signer is None:
            self._emit(TxStatus.FAILED, detail="no signer available")
            raise WalletError("No signer available. Connect a wallet first.")

        try:
            final = await self._follow(
                self.contract.submit(label, args, value, self.signer)
            )
        except TransactionError as e:
            if not self.state.is_terminal:
                terminal = TxStatus.DROPPED if e.status == TxStatus.DROPPED.value else TxStatus.INVALID
                self._emit(terminal, detail=str(e))
            raise
        except asyncio.CancelledError:
            if self.in_flight:
                log.warning(
                    "[%s] stopped watching %s; a broadcast request may still finalize",
                    self.slot,
                    self.correlation_id,
                )
                self.state = TxStatus.IDLE
            raise
        except Exception as e:
            if self.state == TxStatus.SUBMITTING:
                self._emit(TxStatus.FAILED, detail=str(e))
                raise
            if self.state.is_terminal:
                raise
            log.exception("[%s] lost track of %s", self.slot, self.correlation_id)
            self._emit(TxStatus.DROPPED, block_hash=self.block_hash, detail=str(e))
            raise TransactionError(
                f"Lost track of request {self.correlation_id}: {e}",
                status=TxStatus.DROPPED.value,
            ) from e

        return self._classify(final, game)

    async def _follow(self, updates: AsyncIterator[TxUpdate]) -> TxUpdate:
        pending: Optional[asyncio.Future] = None
        try:
            while True:
                pending = asyncio.ensure_future(_next_update(updates))
                while True:
                    done, _ = await asyncio.wait({pending}, timeout=self.stall_notice_s)
                    if done:
                        break
                    self._emit(
                        self.state,
                        block_hash=self.block_hash,
                        stalled=True,
                        detail="no status change yet",
                    )
                update = pending.result()
                if update is None:
                    raise TransactionError(
                        "Status stream ended before finalization.",
                        status=TxStatus.DROPPED.value,
                    )
                if self._apply(update):
                    return update
        finally:
            if pending is not None and not pending.done():
                pending.cancel()
                await asyncio.wait({pending})
            aclose = getattr(updates, "aclose", None)
            if aclose is not None:
                await aclose()

    def _apply(self, update: TxUpdate) -> bool:
        """Moves the machine forward; True once FINALIZED."""
        status = update.status
        if not status.is_terminal and status.rank <= self.state.rank:
            log.debug("[%s] ignoring out-of-order status %s", self.slot, status.value)
            return False

        if status in (TxStatus.INVALID, TxStatus.DROPPED):
            self._emit(status, block_hash=update.block_hash)
            raise TransactionError(
                f"Request {self.correlation_id} was {status.value}.", status=status.value
            )

        if status == TxStatus.FINALIZED and self.state != TxStatus.IN_BLOCK:
            self._emit(TxStatus.IN_BLOCK, block_hash=update.block_hash)

        self._emit(status, block_hash=update.block_hash)
        return status == TxStatus.FINALIZED

    def _classify(self, final: TxUpdate, game: bool) -> Outcome:
        by_name = {}
        for event in final.events:
            by_name.setdefault(event.name, event)

        if EVENT_EXTRINSIC_FAILED in by_name:
            reason = by_name[EVENT_EXTRINSIC_FAILED].fields.get("error", "unknown")
            raise TransactionError(
                f"Request {self.correlation_id} finalized but the call failed: {reason}",
                status=TxStatus.FINALIZED.value,
            )

        cid = self.correlation_id or ""
        if game:
            streak = None
            played = by_name.get(EVENT_GAME_PLAYED)
            if played is not None and "streak" in played.fields:
                streak = int(played.fields["streak"])
                if self.streak_tracker is not None:
                    self.streak_tracker.apply_optimistic(streak)

            won = by_name.get(EVENT_JACKPOT_WON)
            if won is not None:
                amount = won.fields.get("amount")
                return Outcome(
                    OutcomeKind.JACKPOT_WON,
                    cid,
                    final.block_hash,
                    amount=int(amount) if amount is not None else None,
                    streak=streak,
                )
            return Outcome(OutcomeKind.NO_WIN, cid, final.block_hash, streak=streak)

        if EVENT_USERNAME_REGISTERED in by_name:
            return Outcome(OutcomeKind.REGISTERED, cid, final.block_hash)
        return Outcome(OutcomeKind.SUCCESS, cid, final.block_hash)
