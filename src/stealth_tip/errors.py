from __future__ import annotations

from typing import Optional


class StealthTipError(Exception):
    """Base class for every error this client reports to its caller."""


class ValidationError(StealthTipError):
    """Input rejected before any network call."""


class MalformedSaltError(ValidationError):
    pass


class LedgerConnectionError(StealthTipError):
    """Endpoint unreachable or contract schema unusable."""


class WalletError(StealthTipError):
    """No signer, no account, or the signature was refused."""


class ContractQueryError(StealthTipError):
    """The ledger reported a failed read. Never defaulted to zero."""


class TransactionError(StealthTipError):
    def __init__(self, message: str, status: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status


class AlreadyInFlightError(StealthTipError):
    def __init__(self, slot: str) -> None:
        super().__init__(f"A request is already in flight for slot '{slot}'")
        self.slot = slot
