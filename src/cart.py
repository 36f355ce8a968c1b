"""
Shopping cart owned by one checkout session.

Lines are keyed by catalog id; adding an item that is already in the
cart increases its quantity.  A line never holds a quantity below one:
setting a quantity of zero or less removes the line instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Iterator

from errors import InvalidAmount, NotFound
from inventory import Item


@dataclass
class LineItem:
    """A (catalog item, quantity) pair."""
    item: Item
    quantity: int

    @property
    def item_id(self) -> int:
        return self.item.id

    @property
    def unit_price(self) -> Decimal:
        return self.item.price

    @property
    def points_per_unit(self) -> int:
        return self.item.points_per_unit

    @property
    def line_total(self) -> Decimal:
        return self.item.price * self.quantity


class Cart:
    def __init__(self) -> None:
        self._lines: Dict[int, LineItem] = {}

    def __iter__(self) -> Iterator[LineItem]:
        return iter(list(self._lines.values()))

    def __len__(self) -> int:
        return len(self._lines)

    def __bool__(self) -> bool:
        return bool(self._lines)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._lines

    def add(self, item: Item, qty: int = 1) -> LineItem:
        if qty <= 0:
            raise InvalidAmount("Quantity must be positive.")
        line = self._lines.get(item.id)
        if line is None:
            line = LineItem(item=item, quantity=qty)
            self._lines[item.id] = line
        else:
            line.quantity += qty
        return line

    def remove(self, item_id: int) -> LineItem:
        line = self._lines.pop(item_id, None)
        if line is None:
            raise NotFound(f"Item {item_id} is not in the cart")
        return line

    def set_quantity(self, item_id: int, qty: int) -> None:
        if item_id not in self._lines:
            raise NotFound(f"Item {item_id} is not in the cart")
        if qty <= 0:
            del self._lines[item_id]
        else:
            self._lines[item_id].quantity = qty

    def quantity_of(self, item_id: int) -> int:
        line = self._lines.get(item_id)
        return line.quantity if line else 0

    def clear(self) -> None:
        self._lines.clear()
