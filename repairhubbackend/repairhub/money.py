"""Integer-cent helpers.

Every amount that feeds a total, a split or a ledger row goes through
``to_cents`` once and stays an ``int`` until it is shown again.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Union

Amount = Union[Decimal, int, float, str]

CENT = Decimal("0.01")


def to_decimal(value: Amount) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        # str() keeps the literal the caller typed (0.1 stays 0.1)
        return Decimal(str(value))
    return Decimal(value)


def to_cents(value: Amount) -> int:
    return int((to_decimal(value) * 100).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / 100).quantize(CENT)


def percent_of(cents: int, rate: Amount) -> int:
    """``cents * rate / 100`` rounded half-up to a whole cent."""
    exact = Decimal(cents) * to_decimal(rate) / Decimal(100)
    return int(exact.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def fmt_eur(cents: int) -> str:
    return f"€{from_cents(cents):.2f}"
