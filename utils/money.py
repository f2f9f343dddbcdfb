"""
Money helpers.

All amounts are Decimal quantized to two places with ROUND_HALF_UP.
None is treated as zero so optional line items can be summed directly.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")
UNBOUNDED = Decimal("Infinity")

Amount = Union[Decimal, int, float, str, None]


def to_money(amount: Amount) -> Decimal:
     """Convert to a two-place Decimal. Floats go through str() to avoid binary noise."""
     if amount is None:
          return ZERO
     if isinstance(amount, Decimal):
          value = amount
     else:
          value = Decimal(str(amount))
     if not value.is_finite():
          return value
     return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def money_sum(amounts: Iterable[Amount]) -> Decimal:
     return to_money(sum((to_money(a) for a in amounts), ZERO))
