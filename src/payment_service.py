# payment_service.py
"""
Funds verification and debit against a customer's two balances.

- Strategy per payment instrument (cash/card), each owning one balance.
- Closed ``PaymentMethod`` enum; anything else is rejected at the boundary.
- Debit re-checks the balance under the account lock (no partial debit).
- Refund API for compensating rollback of a failed commit.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from enum import Enum
from typing import Dict

from customers import Account
from errors import InvalidAmount, UnknownPaymentMethod
from pricing import MoneyLike, to_money

logger = logging.getLogger(__name__)


class PaymentMethod(str, Enum):
    CASH = "Cash"
    CARD = "Card"

    @classmethod
    def parse(cls, value: object) -> "PaymentMethod":
        """Accept a member or its case-insensitive name/value."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            wanted = value.strip().lower()
            for method in cls:
                if wanted in (method.value.lower(), method.name.lower()):
                    return method
        raise UnknownPaymentMethod(f"Unknown payment method: {value!r}")


# ---------- Strategy interfaces ----------

class PaymentStrategy:
    """Abstract base: reads and writes one balance of an account."""

    def balance(self, account: Account) -> Decimal:
        raise NotImplementedError

    def set_balance(self, account: Account, value: Decimal) -> None:
        raise NotImplementedError


class CashPaymentStrategy(PaymentStrategy):
    def balance(self, account: Account) -> Decimal:
        return account.cash_balance

    def set_balance(self, account: Account, value: Decimal) -> None:
        account.cash_balance = value


class CardPaymentStrategy(PaymentStrategy):
    def balance(self, account: Account) -> Decimal:
        return account.card_balance

    def set_balance(self, account: Account, value: Decimal) -> None:
        account.card_balance = value


# ---------- Payment service ----------

class PaymentService:
    """Strategy-driven funds verifier/debitor."""

    def __init__(self) -> None:
        self.strategies: Dict[PaymentMethod, PaymentStrategy] = {}
        self.register_strategy(PaymentMethod.CASH, CashPaymentStrategy())
        self.register_strategy(PaymentMethod.CARD, CardPaymentStrategy())

    def register_strategy(self, method: PaymentMethod, strategy: PaymentStrategy) -> None:
        self.strategies[PaymentMethod.parse(method)] = strategy

    def _strategy(self, method: object) -> PaymentStrategy:
        strategy = self.strategies.get(PaymentMethod.parse(method))
        if strategy is None:
            raise UnknownPaymentMethod(f"No strategy registered for {method!r}")
        return strategy

    @staticmethod
    def _amount(amount: MoneyLike) -> Decimal:
        value = to_money(amount)
        if value < 0:
            raise InvalidAmount(f"Amount must not be negative: {value}")
        return value

    # ----- main APIs -----
    def balance(self, account: Account, method: object) -> Decimal:
        return self._strategy(method).balance(account)

    def has_sufficient_funds(self, account: Account, amount: MoneyLike, method: object) -> bool:
        """True iff the selected balance covers ``amount``.  Never mutates."""
        value = self._amount(amount)
        strategy = self._strategy(method)
        return strategy.balance(account) >= value

    def debit(self, account: Account, amount: MoneyLike, method: object) -> bool:
        """Deduct ``amount`` from the selected balance.

        The balance is checked again here, under the account lock, since
        it may have moved since any earlier :meth:`has_sufficient_funds`.

        Returns:
            True if debited; False (nothing changed) on insufficient funds.
        """
        value = self._amount(amount)
        strategy = self._strategy(method)
        with account.lock:
            current = strategy.balance(account)
            if current < value:
                logger.info(
                    "Debit declined",
                    extra={"customer_id": account.id, "extra": {"amount": str(value), "balance": str(current), "method": PaymentMethod.parse(method).value}},
                )
                return False
            strategy.set_balance(account, current - value)
        return True

    def credit(self, account: Account, amount: MoneyLike, method: object) -> Decimal:
        """Add ``amount`` to the selected balance; returns the new balance."""
        value = self._amount(amount)
        strategy = self._strategy(method)
        with account.lock:
            new_balance = strategy.balance(account) + value
            strategy.set_balance(account, new_balance)
        return new_balance

    def refund(self, account: Account, amount: MoneyLike, method: object) -> Decimal:
        """Compensating credit for a debit whose checkout did not commit."""
        new_balance = self.credit(account, amount, method)
        logger.warning(
            "Debit refunded",
            extra={"customer_id": account.id, "extra": {"amount": str(to_money(amount)), "method": PaymentMethod.parse(method).value}},
        )
        return new_balance
