"""
Amounts -- Decimal coercion and the single sanctioned rounding function.

Every monetary comparison in the kernel goes through ``round_money`` (2 dp,
ROUND_HALF_UP).  Sums are always computed on ``Decimal`` values, never on
binary floats: a float handed in by a caller is converted through its
shortest ``str`` form first, so ``99.99`` becomes ``Decimal("99.99")`` and
not ``Decimal(99.9899999999999948840923025272786617279052734375)``.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

MONEY_DECIMAL_PLACES = 2
DEFAULT_ROUNDING = ROUND_HALF_UP
ZERO = Decimal("0")

AmountLike = Decimal | int | float | str


def to_decimal(value: AmountLike | None) -> Decimal:
    """
    Coerce an amount to ``Decimal``.

    ``None`` is treated as zero (an absent debit or credit).

    Raises:
        ValueError: if the value is not numeric, is NaN or is infinite.
    """
    if value is None:
        return ZERO
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError) as e:
            raise ValueError(f"Invalid amount: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return result


def round_money(
    value: Decimal,
    decimal_places: int = MONEY_DECIMAL_PLACES,
    rounding: str = DEFAULT_ROUNDING,
) -> Decimal:
    """Round a monetary value.  The ONLY rounding function the kernel uses."""
    quantizer = Decimal(1).scaleb(-decimal_places)
    return value.quantize(quantizer, rounding=rounding)


def sum_money(values: Iterable[Decimal]) -> Decimal:
    """Exact Decimal sum (no rounding)."""
    total = ZERO
    for value in values:
        total += value
    return total
