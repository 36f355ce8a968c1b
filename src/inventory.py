"""
In-memory product catalog.

The catalog is the inventory collaborator of the checkout engine: it
answers lookups by id, barcode or category and performs the stock
decrement at commit time.  Stock changes go through a single lock so a
decrement is an atomic compare-and-decrement; stock never goes negative.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, List, Optional

from errors import InvalidAmount, NotFound
from pricing import to_money

logger = logging.getLogger(__name__)


@dataclass
class Item:
    """A product on the shelf."""
    id: int
    name: str
    price: Decimal
    barcode: str
    stock: int
    category: str
    points_per_unit: int = 0

    def __post_init__(self) -> None:
        self.price = to_money(self.price)
        if self.price < 0:
            raise InvalidAmount(f"Price must not be negative for {self.name}")
        if self.stock < 0:
            raise InvalidAmount(f"Stock must not be negative for {self.name}")
        if self.points_per_unit < 0:
            raise InvalidAmount(f"Points per unit must not be negative for {self.name}")


class Inventory:
    """Thread-safe catalog keyed by item id."""

    def __init__(self) -> None:
        self._items: Dict[int, Item] = {}
        self._lock = threading.Lock()

    # ---- Catalog maintenance ----

    def add_item(self, item: Item) -> None:
        with self._lock:
            if item.id in self._items:
                raise ValueError(f"Item id {item.id} already exists")
            self._items[item.id] = item

    def remove_item(self, item_id: int) -> bool:
        with self._lock:
            return self._items.pop(item_id, None) is not None

    # ---- Lookups ----

    def get_item(self, item_id: int) -> Item:
        item = self._items.get(item_id)
        if item is None:
            raise NotFound(f"Item {item_id} not found")
        return item

    def get_item_by_barcode(self, barcode: str) -> Item:
        code = barcode.strip()
        for item in self._items.values():
            if item.barcode == code:
                return item
        raise NotFound(f"No item with barcode {barcode}")

    def search_by_category(self, category: str) -> List[Item]:
        wanted = category.strip().lower()
        return [item for item in self._items.values() if item.category.lower() == wanted]

    def list_items(self) -> List[Item]:
        return list(self._items.values())

    # ---- Stock ----

    def stock_of(self, item_id: int) -> int:
        return self.get_item(item_id).stock

    def decrease_stock_if_available(self, item_id: int, qty: int) -> bool:
        """Subtract ``qty`` from stock only if enough remains.

        Returns:
            True if the stock was decremented, False if the item is gone
            or would go negative.
        """
        if qty <= 0:
            raise InvalidAmount("Quantity must be positive.")
        with self._lock:
            item = self._items.get(item_id)
            if item is None or item.stock < qty:
                return False
            item.stock -= qty
            return True

    def increase_stock(self, item_id: int, qty: int) -> bool:
        """Put ``qty`` units back on the shelf.  False if the item is gone."""
        if qty <= 0:
            raise InvalidAmount("Quantity must be positive.")
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                logger.warning("Restock skipped, item removed from catalog", extra={"extra": {"item_id": item_id, "qty": qty}})
                return False
            item.stock += qty
            return True


def default_inventory() -> Inventory:
    """Catalog seeded with the store's sample groceries."""
    inventory = Inventory()
    for item in (
        Item(1, "Milk", Decimal("3.99"), "1001", 50, "Dairy", 4),
        Item(2, "Bread", Decimal("2.49"), "1002", 40, "Bakery", 2),
        Item(3, "Eggs", Decimal("4.29"), "1003", 30, "Dairy", 4),
        Item(4, "Apples", Decimal("0.99"), "1004", 100, "Produce", 1),
        Item(5, "Chicken", Decimal("7.99"), "1005", 25, "Meat", 8),
        Item(6, "Rice", Decimal("5.49"), "1006", 60, "Grains", 5),
        Item(7, "Pasta", Decimal("1.99"), "1007", 80, "Grains", 2),
        Item(8, "Orange Juice", Decimal("4.59"), "1008", 35, "Beverages", 5),
        Item(9, "Chocolate", Decimal("3.29"), "1009", 70, "Snacks", 3),
        Item(10, "Potato Chips", Decimal("2.99"), "1010", 65, "Snacks", 3),
    ):
        inventory.add_item(item)
    return inventory
