"""
Monetary Amount Module

Decimal coercion and rounding helpers for every monetary field in the ledger.
NEVER uses float for monetary values.
"""

from decimal import Decimal, DecimalException, InvalidOperation, ROUND_HALF_UP, ROUND_UP, getcontext
from typing import Union

# Set global decimal context for financial precision
getcontext().prec = 28

ZERO = Decimal('0')
CENT = Decimal('0.01')

AmountLike = Union[Decimal, int, str, float]


def to_decimal(value: AmountLike) -> Decimal:
    """
    Convert a user-supplied amount to Decimal.

    Floats go through str() so the binary representation never leaks in.

    Raises:
        ValueError: If the value is not a finite number
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a numeric amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise ValueError(f"Not a numeric amount: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Amount must be finite, got {value!r}")
    return result


def quantize_amount(amount: Decimal, places: int = 2, rounding: str = ROUND_HALF_UP) -> Decimal:
    """
    Round to a fixed number of decimal places (half-up, as for cash)

    Raises:
        ValueError: If the rounded amount needs more digits than the context holds
    """
    try:
        return amount.quantize(Decimal('0.1') ** places, rounding=rounding)
    except DecimalException as e:
        raise ValueError(f"Amount {amount} is too large to round to {places} places") from e


def round_up_amount(amount: Decimal, places: int = 2) -> Decimal:
    """Smallest payable amount at this precision that covers amount"""
    return quantize_amount(amount, places, rounding=ROUND_UP)


def percentage(part: Decimal, whole: Decimal, places: int = 1) -> Decimal:
    """part / whole * 100, rounded; zero when whole is zero"""
    if whole == ZERO:
        return quantize_amount(ZERO, places)
    return quantize_amount(part / whole * Decimal('100'), places)
