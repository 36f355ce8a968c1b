"""
Money handling and cart totals.

All amounts are :class:`decimal.Decimal` quantized to cents with
``ROUND_HALF_UP``, which is the rounding printed on store receipts.
Binary floats are never accumulated.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Iterable, Union

from config import DEFAULT_TAX_RATE
from errors import InvalidAmount

CENT = Decimal("0.01")
ZERO = Decimal("0.00")

MoneyLike = Union[Decimal, int, str, float]


def to_money(value: MoneyLike) -> Decimal:
    """Convert ``value`` to a two-digit Decimal.

    Floats go through ``str()`` first so ``0.1`` becomes ``Decimal("0.10")``
    rather than its binary expansion.

    Raises:
        InvalidAmount: If the value is not a finite number.
    """
    if isinstance(value, bool):
        raise InvalidAmount(f"Not a monetary amount: {value!r}")
    if not isinstance(value, Decimal):
        try:
            value = Decimal(str(value))
        except InvalidOperation:
            raise InvalidAmount(f"Not a monetary amount: {value!r}")
    if not value.is_finite():
        raise InvalidAmount(f"Not a monetary amount: {value!r}")
    try:
        return value.quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        # more digits than the decimal context can hold at cent precision
        raise InvalidAmount(f"Amount out of range: {value!r}")


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    total: Decimal


def compute_totals(lines: Iterable, tax_rate: Decimal = DEFAULT_TAX_RATE) -> Totals:
    """Return subtotal, tax and total for ``lines``.

    ``lines`` is a :class:`cart.Cart` or any iterable of objects exposing
    ``unit_price`` and ``quantity``.
    """
    subtotal = sum((Decimal(line.unit_price) * line.quantity for line in lines), ZERO)
    subtotal = to_money(subtotal)
    tax = to_money(subtotal * Decimal(tax_rate))
    return Totals(subtotal=subtotal, tax=tax, total=subtotal + tax)
