"""Decimal helpers for monetary amounts."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from .exceptions import InvalidAmountError

CENT = Decimal("0.01")


def to_money(value: Decimal | int | float | str) -> Decimal:
    """Parse ``value`` into a Decimal rounded to two places."""
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise InvalidAmountError(details={"amount": str(value)}) from exc
    if not amount.is_finite():
        raise InvalidAmountError(details={"amount": str(value)})
    return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def percentage_of(amount: Decimal, percentage: Decimal) -> Decimal:
    return (amount * percentage / Decimal("100")).quantize(CENT, rounding=ROUND_HALF_UP)
