"""Monetary totals for orders and checkout previews.

Amounts are computed with :class:`decimal.Decimal`. Every input goes
through ``str`` first so a float tax rate such as ``0.1`` means exactly one
tenth instead of its binary approximation.
"""

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable

from .domain import OrderTotals

ZERO = Decimal("0")
CENT = Decimal("0.01")
# largest amount a DecimalField(max_digits=12, decimal_places=2) column holds
MAX_AMOUNT = Decimal("9999999999.99")


def to_decimal(value: Any) -> Decimal:
    """Convert an int, float, str or Decimal amount to Decimal.

    Raises:
        ValueError: If the value is not a finite number.
    """
    if isinstance(value, Decimal):
        amount = value
    else:
        try:
            amount = Decimal(str(value))
        except ArithmeticError:
            raise ValueError(f"Invalid amount: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"Invalid amount: {value!r}")
    return amount


def _line(item: Any) -> tuple[Decimal, Decimal]:
    if isinstance(item, Mapping):
        return to_decimal(item["quantity"]), to_decimal(item["price"])
    return to_decimal(item.quantity), to_decimal(item.price)


def calculate_totals(
    items: Iterable[Any],
    discount: Any = 0,
    tax_rate: Any = 0,
    shipping_cost: Any = 0,
) -> OrderTotals:
    """Compute subtotal, discount, tax, shipping and total.

    ``tax`` is taken on ``subtotal - discount`` and rounded half-up to the
    cent. Only ``total`` is clamped at zero; the other fields keep the raw
    arithmetic so a discount larger than the subtotal is still visible.

    Args:
        items: Line items exposing ``quantity`` and ``price`` (attributes or
            mapping keys).
        discount: Discount amount already resolved by the caller.
        tax_rate: Tax rate as a fraction (``0.1`` for 10%).
        shipping_cost: Shipping amount already resolved by the caller.

    Returns:
        OrderTotals with all five amounts.
    """
    subtotal = ZERO
    for item in items:
        quantity, price = _line(item)
        subtotal += quantity * price

    discount_amount = to_decimal(discount)
    shipping = to_decimal(shipping_cost)
    taxable = subtotal - discount_amount
    tax = (taxable * to_decimal(tax_rate)).quantize(CENT, rounding=ROUND_HALF_UP)
    total = max(ZERO, taxable + tax + shipping)

    return OrderTotals(
        subtotal=subtotal,
        discount=discount_amount,
        tax=tax,
        shipping=shipping,
        total=total,
    )
