"""
Fixed-point conversion between display quantities and raw ledger units.

Display output is truncated to DISPLAY_PRECISION digits, so
to_display(to_ledger_units(x)) does not always give back x. That loss is
deliberate UI behaviour; only raw units ever go into a transaction.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation

from .errors import ValidationError
from .project_constants import DISPLAY_PRECISION, MAX_BALANCE, TOKEN_DECIMALS


def to_ledger_units(amount: str, decimals: int = TOKEN_DECIMALS) -> int:
    """
    "1.5" -> 1500000000000000000 (18 decimals).

    Digits beyond `decimals` are dropped, matching what the ledger can
    represent. Anything that is not a positive number is rejected.
    """
    text = str(amount).strip()
    try:
        value = Decimal(text)
    except InvalidOperation:
        raise ValidationError(f"Amount is not a number: {amount!r}")

    if not value.is_finite():
        raise ValidationError(f"Amount is not a finite number: {amount!r}")

    sign, digits, exponent = value.as_tuple()
    if sign or not any(digits):
        raise ValidationError(f"Amount must be greater than zero: {amount!r}")

    # Integer-only scaling: no float or limited-precision Decimal arithmetic.
    shift = exponent + decimals
    kept = len(digits) + shift if shift < 0 else len(digits)
    if kept + max(shift, 0) > len(str(MAX_BALANCE)):
        raise ValidationError(f"Amount {amount!r} exceeds the largest ledger balance.")
    if kept <= 0:
        units = 0
    else:
        units = int("".join(str(d) for d in digits[:kept])) * 10 ** max(shift, 0)

    if units > MAX_BALANCE:
        raise ValidationError(f"Amount {amount!r} exceeds the largest ledger balance.")

    if units <= 0:
        raise ValidationError(
            f"Amount {amount!r} is below the smallest unit (1e-{decimals})."
        )
    return units


def to_display(
    units: int,
    decimals: int = TOKEN_DECIMALS,
    precision: int = DISPLAY_PRECISION,
) -> str:
    """1500000000000000000 -> "1.5000". Truncates, never rounds up."""
    if units < 0:
        raise ValidationError(f"Ledger amounts are unsigned, got {units}.")

    whole, remainder = divmod(int(units), 10**decimals)
    if precision <= 0:
        return str(whole)

    fraction = remainder * (10**precision) // (10**decimals)
    return f"{whole}.{fraction:0{precision}d}"
