"""Money rounding helpers shared by pricing and checkout."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Final

MONEY_PLACES: Final = Decimal("0.01")
ZERO: Final = Decimal("0.00")


def to_money(value: Decimal | float | int | str) -> Decimal:
    """Quantize a value to cents using half-up rounding."""
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


def to_str(value: Decimal) -> str:
    return f"{value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP):.2f}"
