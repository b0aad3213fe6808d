"""
Money conversion helpers.

Amounts travel through the code as ``Decimal`` and are stored as integer
minor units (paise/cents), so no binary float ever touches a balance.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional, Union

from pocket_ledger.config import get_settings


Number = Union[Decimal, int, str]


def _exponent() -> int:
    return get_settings().app.minor_unit_exponent


def quantize(amount: Number) -> Decimal:
    """Round an amount to the configured number of decimal places."""
    places = Decimal(1).scaleb(-_exponent())
    return Decimal(amount).quantize(places, rounding=ROUND_HALF_UP)


def to_minor_units(amount: Number) -> int:
    """Convert a decimal amount to integer minor units (e.g. 12.34 -> 1234)."""
    return int(quantize(amount).scaleb(_exponent()))


def from_minor_units(value: Optional[int]) -> Decimal:
    """Convert stored minor units back to a decimal amount. NULL reads as zero."""
    if value is None:
        return quantize(0)
    return quantize(Decimal(int(value)).scaleb(-_exponent()))
