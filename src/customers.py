"""Customer accounts: two money balances plus a loyalty point total."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List

from errors import InvalidAmount, NotFound
from pricing import to_money


@dataclass
class Account:
    """A customer's balances and purchase history.

    Balances and points are only changed by :mod:`payment_service`,
    :mod:`loyalty` and :mod:`receipts`; they hold ``lock`` while doing so.
    The lock is re-entrant so the checkout engine can hold it across a
    whole commit while those components take it again.
    """
    id: int
    name: str
    cash_balance: Decimal = Decimal("0.00")
    card_balance: Decimal = Decimal("0.00")
    loyalty_points: int = 0
    purchase_history: List = field(default_factory=list)
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.cash_balance = to_money(self.cash_balance)
        self.card_balance = to_money(self.card_balance)
        if self.cash_balance < 0 or self.card_balance < 0:
            raise InvalidAmount("Balances must not be negative.")
        if self.loyalty_points < 0:
            raise InvalidAmount("Loyalty points must not be negative.")


class CustomerRegistry:
    def __init__(self) -> None:
        self._accounts: Dict[int, Account] = {}

    def add_customer(self, account: Account) -> Account:
        if account.id in self._accounts:
            raise ValueError(f"Customer id {account.id} already exists")
        self._accounts[account.id] = account
        return account

    def get_customer(self, customer_id: int) -> Account:
        account = self._accounts.get(customer_id)
        if account is None:
            raise NotFound(f"Customer {customer_id} not found")
        return account


def default_customers() -> CustomerRegistry:
    """Registry seeded with the store's sample customer."""
    registry = CustomerRegistry()
    registry.add_customer(Account(1, "John Doe", Decimal("100.00"), Decimal("500.00"), 250))
    return registry
