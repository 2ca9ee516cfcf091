"""
Static description of the contract calls this client uses, checked once
against the contract metadata at startup.

Metadata is the ink! contract JSON (spec.messages[*]). Every entry in
MESSAGES must be present with the same argument labels and flags, or the
client refuses to start.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Tuple

import httpx

from .errors import LedgerConnectionError

log = logging.getLogger(__name__)

# Return kinds understood by the contract client decoder
RETURNS_NONE = "none"
RETURNS_BALANCE = "balance"
RETURNS_OPTION_ACCOUNT = "option_account"
RETURNS_STREAK = "streak"
RETURNS_BOOL = "bool"
RETURNS_U64 = "u64"


@dataclass(frozen=True)
class MessageSpec:
    label: str
    args: Tuple[str, ...]
    mutates: bool
    payable: bool
    returns: str


MESSAGES: Dict[str, MessageSpec] = {
    m.label: m
    for m in (
        # Commands
        MessageSpec("tip", ("username", "salt"), True, True, RETURNS_NONE),
        MessageSpec("tip_and_play", ("username", "salt"), True, True, RETURNS_NONE),
        MessageSpec("withdraw", ("username", "salt"), True, False, RETURNS_NONE),
        MessageSpec("register_username", ("username",), True, True, RETURNS_NONE),
        MessageSpec(
            "register_premium_username", ("username",), True, True, RETURNS_NONE
        ),
        MessageSpec("set_fee_enabled", ("enabled",), True, False, RETURNS_NONE),
        MessageSpec("collect_fees", (), True, False, RETURNS_NONE),
        # Queries
        MessageSpec(
            "get_stealth_balance", ("username", "salt"), False, False, RETURNS_BALANCE
        ),
        MessageSpec(
            "get_username_owner", ("username",), False, False, RETURNS_OPTION_ACCOUNT
        ),
        MessageSpec(
            "get_premium_owner", ("username",), False, False, RETURNS_OPTION_ACCOUNT
        ),
        MessageSpec("get_jackpot_pool", (), False, False, RETURNS_BALANCE),
        MessageSpec(
            "get_last_jackpot_winner", (), False, False, RETURNS_OPTION_ACCOUNT
        ),
        MessageSpec("get_streak", ("account",), False, False, RETURNS_STREAK),
    )
}

# Read-only helpers used by the admin commands; optional in the metadata.
OPTIONAL_MESSAGES: Dict[str, MessageSpec] = {
    m.label: m
    for m in (
        MessageSpec("get_fee_enabled", (), False, False, RETURNS_BOOL),
        MessageSpec("get_accumulated_fees", (), False, False, RETURNS_BALANCE),
        MessageSpec("get_game_play_count", (), False, False, RETURNS_U64),
    )
}


@dataclass(frozen=True)
class ContractSchema:
    selectors: Dict[str, str]
    source: str

    def selector(self, label: str) -> str:
        try:
            return self.selectors[label]
        except KeyError:
            raise LedgerConnectionError(
                f"Contract schema from {self.source} has no message '{label}'."
            )

    def spec(self, label: str) -> MessageSpec:
        if label in MESSAGES:
            return MESSAGES[label]
        if label in OPTIONAL_MESSAGES and label in self.selectors:
            return OPTIONAL_MESSAGES[label]
        raise LedgerConnectionError(f"Message '{label}' is not available.")

    @staticmethod
    def from_metadata(metadata: Dict[str, Any], source: str) -> "ContractSchema":
        messages = _messages_of(metadata, source)
        by_label = {m.get("label"): m for m in messages if isinstance(m, dict)}

        problems: List[str] = []
        selectors: Dict[str, str] = {}
        for label, spec in MESSAGES.items():
            entry = by_label.get(label)
            if entry is None:
                problems.append(f"missing message '{label}'")
                continue
            problems.extend(_check_entry(spec, entry))
            selectors[label] = str(entry.get("selector", ""))

        for label, spec in OPTIONAL_MESSAGES.items():
            entry = by_label.get(label)
            if entry is not None and not _check_entry(spec, entry):
                selectors[label] = str(entry.get("selector", ""))

        if problems:
            raise LedgerConnectionError(
                f"Contract schema {source} does not match this client: "
                + "; ".join(problems)
            )

        log.info("Contract schema %s validated (%d messages)", source, len(selectors))
        return ContractSchema(selectors=selectors, source=source)

    @staticmethod
    async def load(source: str, timeout_s: float = 30.0) -> "ContractSchema":
        """Reads metadata from a local path or an http(s) URL."""
        if source.startswith(("http://", "https://")):
            try:
                async with httpx.AsyncClient(timeout=timeout_s) as client:
                    resp = await client.get(source)
                    resp.raise_for_status()
                    metadata = resp.json()
            except httpx.HTTPError as e:
                raise LedgerConnectionError(f"Could not fetch contract schema: {e}")
            except ValueError as e:
                raise LedgerConnectionError(f"Contract schema is not valid JSON: {e}")
        else:
            try:
                metadata = json.loads(Path(source).read_text(encoding="utf-8"))
            except OSError as e:
                raise LedgerConnectionError(f"Could not read contract schema: {e}")
            except ValueError as e:
                raise LedgerConnectionError(f"Contract schema is not valid JSON: {e}")

        if not isinstance(metadata, dict):
            raise LedgerConnectionError("Contract schema must be a JSON object.")
        return ContractSchema.from_metadata(metadata, source)


def _messages_of(metadata: Dict[str, Any], source: str) -> List[Any]:
    spec = metadata.get("spec")
    if not isinstance(spec, dict) or not isinstance(spec.get("messages"), list):
        raise LedgerConnectionError(
            f"Contract schema {source} has no spec.messages list."
        )
    return spec["messages"]


def _check_entry(spec: MessageSpec, entry: Dict[str, Any]) -> List[str]:
    problems: List[str] = []
    labels = tuple(a.get("label") for a in entry.get("args", []) if isinstance(a, dict))
    if labels != spec.args:
        problems.append(f"'{spec.label}' takes {labels}, expected {spec.args}")
    if bool(entry.get("mutates")) != spec.mutates:
        problems.append(f"'{spec.label}' mutates flag differs")
    if bool(entry.get("payable")) != spec.payable:
        problems.append(f"'{spec.label}' payable flag differs")
    if not entry.get("selector"):
        problems.append(f"'{spec.label}' has no selector")
    return problems
