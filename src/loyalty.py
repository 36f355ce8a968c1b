"""
Loyalty points ledger.

Points convert to money at a fixed rate (100 points = 1.00 by default).
A checkout either redeems points or earns them, never both.
"""

from __future__ import annotations

import logging
from decimal import Decimal, ROUND_CEILING
from typing import Iterable

from config import DEFAULT_POINTS_PER_UNIT
from customers import Account
from errors import InsufficientPoints, InvalidAmount
from metrics import LOYALTY_POINTS_TOTAL
from pricing import to_money

logger = logging.getLogger(__name__)


class LoyaltyLedger:
    """Accrual and redemption rules applied to an :class:`Account`."""

    def __init__(self, points_per_currency_unit: int = DEFAULT_POINTS_PER_UNIT) -> None:
        if points_per_currency_unit <= 0:
            raise ValueError("points_per_currency_unit must be positive")
        self.points_per_currency_unit = points_per_currency_unit

    def points_earnable(self, lines: Iterable) -> int:
        """Points a purchase of ``lines`` would earn if nothing is redeemed."""
        return sum(line.points_per_unit * line.quantity for line in lines)

    def discount_for(self, points: int) -> Decimal:
        """Money value of ``points``.  Does not touch any balance."""
        if points < 0:
            raise InvalidAmount("Points must not be negative.")
        return to_money(Decimal(points) / self.points_per_currency_unit)

    def points_for(self, amount: Decimal) -> int:
        """Fewest points whose discount covers ``amount``."""
        if amount <= 0:
            return 0
        points = (Decimal(amount) * self.points_per_currency_unit).to_integral_value(rounding=ROUND_CEILING)
        return int(points)

    def accrue(self, account: Account, points: int) -> int:
        """Add earned points and return the new balance."""
        if points < 0:
            raise InvalidAmount("Points must not be negative.")
        with account.lock:
            account.loyalty_points += points
            balance = account.loyalty_points
        if points:
            LOYALTY_POINTS_TOTAL.inc(points, direction="earned")
        logger.info(
            "Loyalty points accrued",
            extra={"customer_id": account.id, "extra": {"points": points, "balance": balance}},
        )
        return balance

    def redeem(self, account: Account, points: int) -> Decimal:
        """Deduct ``points`` and return the discount they are worth.

        Raises:
            InvalidAmount: If ``points`` is negative.
            InsufficientPoints: If the balance is lower than ``points``.
                The balance is left unchanged.
        """
        if points < 0:
            raise InvalidAmount("Points must not be negative.")
        with account.lock:
            if points > account.loyalty_points:
                raise InsufficientPoints(
                    f"Insufficient points: have {account.loyalty_points}, need {points}"
                )
            discount = self.discount_for(points)
            account.loyalty_points -= points
            balance = account.loyalty_points
        if points:
            LOYALTY_POINTS_TOTAL.inc(points, direction="redeemed")
        logger.info(
            "Loyalty points redeemed",
            extra={"customer_id": account.id, "extra": {"points": points, "discount": str(discount), "balance": balance}},
        )
        return discount

    def reverse_redemption(self, account: Account, points: int) -> None:
        """Give back points taken by :meth:`redeem` for a commit that failed."""
        if points < 0:
            raise InvalidAmount("Points must not be negative.")
        with account.lock:
            account.loyalty_points += points
        if points:
            LOYALTY_POINTS_TOTAL.inc(points, direction="reversed")
        logger.warning(
            "Loyalty redemption reversed",
            extra={"customer_id": account.id, "extra": {"points": points}},
        )
