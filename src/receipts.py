"""
Receipts: immutable snapshots of a committed checkout.

A receipt copies every cart line at build time, so editing the cart
afterwards cannot change an issued receipt.  Totals are recomputed from
the copied lines rather than taken from the caller; the engine compares
them with its own figures as a consistency check.
"""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from datetime import datetime, UTC
from decimal import Decimal
from typing import Tuple

from config import DEFAULT_TAX_RATE
from customers import Account
from loyalty import LoyaltyLedger
from payment_service import PaymentMethod
from pricing import ZERO, compute_totals, to_money


@dataclass(frozen=True)
class ReceiptLine:
    item_id: int
    name: str
    unit_price: Decimal
    quantity: int
    points_per_unit: int

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class Receipt:
    receipt_id: int
    customer_id: int
    customer_name: str
    issued_at: datetime
    lines: Tuple[ReceiptLine, ...]
    subtotal: Decimal
    tax: Decimal
    total: Decimal
    discount: Decimal
    amount_charged: Decimal
    payment_method: PaymentMethod
    points_earned: int
    points_redeemed: int
    points_balance: int


class ReceiptBuilder:
    """Issues receipts with ids from a single increasing sequence."""

    def __init__(self, ledger: LoyaltyLedger | None = None, tax_rate: Decimal = DEFAULT_TAX_RATE, start: int = 1) -> None:
        self.ledger = ledger or LoyaltyLedger()
        self.tax_rate = tax_rate
        self._ids = itertools.count(start)
        self._id_lock = threading.Lock()

    def next_id(self) -> int:
        with self._id_lock:
            return next(self._ids)

    def build(
        self,
        account: Account,
        cart,
        method: PaymentMethod,
        points_redeemed: int,
        discount: Decimal = ZERO,
        points_balance: int | None = None,
    ) -> Receipt:
        """Freeze ``cart`` into a receipt and append it to the history.

        ``points_balance`` is the balance to print; it defaults to the
        account's balance at build time.
        """
        lines = tuple(
            ReceiptLine(
                item_id=line.item_id,
                name=line.item.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
                points_per_unit=line.points_per_unit,
            )
            for line in cart
        )
        totals = compute_totals(lines, self.tax_rate)
        discount = to_money(discount)
        points_earned = 0 if points_redeemed > 0 else self.ledger.points_earnable(lines)
        with account.lock:
            receipt = Receipt(
                receipt_id=self.next_id(),
                customer_id=account.id,
                customer_name=account.name,
                issued_at=datetime.now(UTC),
                lines=lines,
                subtotal=totals.subtotal,
                tax=totals.tax,
                total=totals.total,
                discount=discount,
                amount_charged=totals.total - discount,
                payment_method=PaymentMethod.parse(method),
                points_earned=points_earned,
                points_redeemed=points_redeemed,
                points_balance=account.loyalty_points if points_balance is None else points_balance,
            )
            account.purchase_history.append(receipt)
        return receipt


def render_receipt(receipt: Receipt, tax_rate: Decimal = DEFAULT_TAX_RATE) -> str:
    """Printable receipt text."""
    rule = "=" * 43
    thin = "-" * 43
    lines = [
        rule,
        "GROCERY STORE".center(43),
        rule,
        f"Receipt ID: {receipt.receipt_id}",
        f"Date: {receipt.issued_at:%Y-%m-%d %H:%M:%S} UTC",
        f"Customer: {receipt.customer_name}",
        thin,
        "Items:",
    ]
    for ln in receipt.lines:
        lines.append(f"{ln.name} x{ln.quantity} - ${ln.unit_price:.2f} each = ${ln.line_total:.2f}")
    lines.append(thin)
    lines.append(f"Subtotal: ${receipt.subtotal:.2f}")
    lines.append(f"Tax ({tax_rate * 100:.0f}%): ${receipt.tax:.2f}")
    lines.append(f"Total: ${receipt.total:.2f}")
    if receipt.points_redeemed > 0:
        lines.append(f"Points Redeemed: {receipt.points_redeemed} (${receipt.discount:.2f} discount)")
        lines.append(f"Total After Discount: ${receipt.amount_charged:.2f}")
    lines.append(f"Payment Method: {receipt.payment_method.value}")
    if receipt.points_earned > 0:
        lines.append(f"Points Earned This Transaction: {receipt.points_earned}")
    lines.append(f"Current Points Balance: {receipt.points_balance}")
    lines.append(rule)
    lines.append("Thank You For Shopping!".center(43))
    lines.append(rule)
    return "\n".join(lines)
