"""Decimal helpers for currency amounts"""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from schoolms.config import settings

Number = Union[Decimal, int, str]

ZERO = Decimal("0")


def to_decimal(value: Optional[Number]) -> Decimal:
    """
    Coerce a DB or request value to Decimal.

    Floats are rejected: they cannot represent most cent values exactly.
    """
    if value is None:
        return ZERO
    if isinstance(value, float):
        raise TypeError("Monetary amounts must not be floats")
    return value if isinstance(value, Decimal) else Decimal(value)


def quantize(value: Decimal, places: Optional[int] = None) -> Decimal:
    """Round to the currency's minor unit (half-up)."""
    if places is None:
        places = settings.CURRENCY_DECIMAL_PLACES
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def money_sum(values: Iterable[Optional[Number]]) -> Decimal:
    return sum((to_decimal(v) for v in values), ZERO)
