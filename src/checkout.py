# src/checkout.py
from __future__ import annotations

import logging
import time
import warnings
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Tuple

from cart import Cart, LineItem
from cashier import CashierLines
from config import Settings, load_settings
from customers import Account
from errors import (
    AbortReason,
    CheckoutError,
    EmptyCart,
    InsufficientFunds,
    InvalidAmount,
    NotFound,
    PartialCommitWarning,
    UnknownPaymentMethod,
)
from inventory import Inventory, Item, default_inventory
from loyalty import LoyaltyLedger
from metrics import (
    CHECKOUT_ABORT_TOTAL,
    CHECKOUT_COMMITTED_TOTAL,
    CHECKOUT_DURATION_SECONDS,
    PARTIAL_COMMIT_TOTAL,
)
from payment_service import PaymentMethod, PaymentService
from pricing import ZERO, MoneyLike, Totals, compute_totals, to_money
from receipts import Receipt, ReceiptBuilder

logger = logging.getLogger(__name__)


class CheckoutState(str, Enum):
    IDLE = "Idle"
    TOTALING = "Totaling"
    DISCOUNT_APPLIED = "DiscountApplied"
    FUNDS_CHECKED = "FundsChecked"
    COMMITTED = "Committed"
    ABORTED = "Aborted"


@dataclass(frozen=True)
class Quote:
    """Phase-one figures for a checkout.  Computing one mutates nothing."""
    totals: Totals
    method: PaymentMethod
    points_requested: int
    points_to_redeem: int
    discount: Decimal
    final_total: Decimal
    points_to_earn: int


@dataclass
class CheckoutResult:
    """Outcome of one checkout attempt: a receipt or an abort reason."""
    state: CheckoutState
    receipt: Optional[Receipt] = None
    reason: Optional[AbortReason] = None
    message: str = ""
    warnings: List[PartialCommitWarning] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return self.state is CheckoutState.COMMITTED


class CheckoutEngine:
    """
    Checkout transaction engine for one store.

    Owns the catalog, the payment service, the loyalty ledger and the
    receipt sequence.  Carts and accounts are passed in per call and are
    only borrowed for the duration of that call.

    A checkout runs in two phases while holding the account lock:
    a side-effect-free :meth:`quote` (totals, tentative discount, funds
    check), then a commit that reserves stock, redeems points, debits
    funds, accrues points and issues the receipt.  A failure inside the
    commit undoes the steps already applied.
    """

    def __init__(
        self,
        inventory: Inventory | None = None,
        payment_service: PaymentService | None = None,
        ledger: LoyaltyLedger | None = None,
        receipt_builder: ReceiptBuilder | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        self.inventory = inventory if inventory is not None else default_inventory()
        self.payment_service = payment_service or PaymentService()
        self.ledger = ledger or LoyaltyLedger(self.settings.points_per_currency_unit)
        self.receipt_builder = receipt_builder or ReceiptBuilder(self.ledger, self.settings.tax_rate)
        self.cashier_lines = CashierLines(self.settings.cashier_stations, self.settings.minutes_per_customer)

    # ---- Catalog ----

    def browse(self) -> List[Item]:
        return self.inventory.list_items()

    def lookup(self, item_id: int | None = None, barcode: str | None = None, category: str | None = None) -> List[Item]:
        """Find items by exactly one of id, barcode or category.

        Raises:
            NotFound: For an unknown id or barcode.
            ValueError: If not exactly one criterion is given.
        """
        given = [c for c in (item_id, barcode, category) if c is not None]
        if len(given) != 1:
            raise ValueError("Specify exactly one of item_id, barcode or category")
        if item_id is not None:
            return [self.inventory.get_item(item_id)]
        if barcode is not None:
            return [self.inventory.get_item_by_barcode(barcode)]
        return self.inventory.search_by_category(category)

    # ---- Cart operations ----

    def _add_item(self, cart: Cart, item: Item, qty: int) -> Tuple[bool, str]:
        if cart.quantity_of(item.id) + qty > item.stock:
            return False, f"Only {item.stock} in stock for {item.name}"
        cart.add(item, qty)
        return True, f"Added {qty} x {item.name} to cart"

    def add_to_cart(self, cart: Cart, item_id: int, qty: int) -> Tuple[bool, str]:
        if qty <= 0:
            return False, "Quantity must be positive."
        try:
            item = self.inventory.get_item(item_id)
        except NotFound:
            return False, "Item not found."
        return self._add_item(cart, item, qty)

    def scan_item(self, cart: Cart, barcode: str) -> Tuple[bool, str]:
        try:
            item = self.inventory.get_item_by_barcode(barcode)
        except NotFound:
            return False, f"No item with barcode {barcode}."
        return self._add_item(cart, item, 1)

    def remove_from_cart(self, cart: Cart, item_id: int) -> Tuple[bool, str]:
        try:
            line = cart.remove(item_id)
        except NotFound:
            return False, "Item not in cart."
        return True, f"Removed {line.item.name} from cart"

    def update_cart_quantity(self, cart: Cart, item_id: int, qty: int) -> Tuple[bool, str]:
        if item_id not in cart:
            return False, "Item not in cart."
        if qty > 0:
            try:
                item = self.inventory.get_item(item_id)
            except NotFound:
                return False, "Item not found."
            if qty > item.stock:
                return False, f"Only {item.stock} in stock for {item.name}"
        cart.set_quantity(item_id, qty)
        return True, "Item removed from cart." if qty <= 0 else f"Quantity set to {qty}"

    def compute_totals(self, cart: Cart) -> Totals:
        return compute_totals(cart, self.settings.tax_rate)

    # ---- Phase one ----

    def quote(self, account: Account, cart: Cart, method: object, points_to_redeem: int = 0) -> Quote:
        """Compute totals, the tentative discount and the amount to charge.

        Points beyond the balance are ignored (the checkout goes ahead at
        full price and earns points instead).  A discount larger than the
        total is capped at the total, redeeming only the points needed.

        Raises:
            EmptyCart, UnknownPaymentMethod, InvalidAmount
        """
        if not cart:
            raise EmptyCart("Cart is empty.")
        pm = PaymentMethod.parse(method)
        if points_to_redeem < 0:
            raise InvalidAmount("Points to redeem must not be negative.")

        totals = self.compute_totals(cart)
        points = points_to_redeem
        if points > account.loyalty_points:
            logger.warning(
                "Requested redemption exceeds balance; redeeming none",
                extra={"customer_id": account.id, "extra": {"requested": points, "balance": account.loyalty_points}},
            )
            points = 0

        discount = ZERO
        if points > 0:
            discount = self.ledger.discount_for(points)
            if discount > totals.total:
                points = self.ledger.points_for(totals.total)
                discount = min(self.ledger.discount_for(points), totals.total)

        return Quote(
            totals=totals,
            method=pm,
            points_requested=points_to_redeem,
            points_to_redeem=points,
            discount=discount,
            final_total=totals.total - discount,
            points_to_earn=0 if points > 0 else self.ledger.points_earnable(cart),
        )

    def check_funds(self, account: Account, cart: Cart, method: object, points_to_redeem: int = 0) -> bool:
        """Preview whether a checkout would pass the funds check.  Read-only."""
        try:
            q = self.quote(account, cart, method, points_to_redeem)
        except CheckoutError:
            return False
        return self.payment_service.has_sufficient_funds(account, q.final_total, q.method)

    # ---- Checkout ----

    def _abort(self, account: Account, reason: AbortReason, message: str, warns: List[PartialCommitWarning] | None = None) -> CheckoutResult:
        CHECKOUT_ABORT_TOTAL.inc(reason=reason.value)
        logger.info(
            "Checkout aborted",
            extra={"customer_id": account.id, "extra": {"reason": reason.value, "detail": message}},
        )
        return CheckoutResult(
            state=CheckoutState.ABORTED,
            reason=reason,
            message=message,
            warnings=list(warns or []),
        )

    def _release_stock(self, lines: List[LineItem], warns: List[PartialCommitWarning]) -> None:
        for line in lines:
            if not self.inventory.increase_stock(line.item_id, line.quantity):
                warning = PartialCommitWarning(f"Could not restock {line.quantity} x {line.item.name}")
                warnings.warn(warning, stacklevel=3)
                PARTIAL_COMMIT_TOTAL.inc()
                warns.append(warning)

    def _transition(self, account: Account, old: CheckoutState, new: CheckoutState) -> CheckoutState:
        logger.debug("Checkout %s -> %s", old.value, new.value, extra={"customer_id": account.id})
        return new

    def process_checkout(self, account: Account, cart: Cart, method: object, points_to_redeem: int = 0) -> CheckoutResult:
        """Run a checkout all-or-nothing.

        Business failures come back as an aborted :class:`CheckoutResult`;
        nothing about the account, cart, stock or points has changed in
        that case.  Unexpected exceptions during the commit are re-raised
        after the applied steps have been undone.
        """
        start_time = time.perf_counter()
        try:
            method_label = PaymentMethod.parse(method).value
        except UnknownPaymentMethod:
            method_label = "unknown"
        state = CheckoutState.IDLE
        try:
            with account.lock:
                state = self._transition(account, state, CheckoutState.TOTALING)
                try:
                    q = self.quote(account, cart, method, points_to_redeem)
                except CheckoutError as ex:
                    return self._abort(account, ex.reason, ex.message)
                state = self._transition(account, state, CheckoutState.DISCOUNT_APPLIED)

                if not self.payment_service.has_sufficient_funds(account, q.final_total, q.method):
                    available = self.payment_service.balance(account, q.method)
                    return self._abort(
                        account,
                        AbortReason.INSUFFICIENT_FUNDS,
                        f"Insufficient {q.method.value.lower()} funds: need {q.final_total:.2f}, have {available:.2f}",
                    )
                state = self._transition(account, state, CheckoutState.FUNDS_CHECKED)

                return self._commit(account, cart, q)
        finally:
            CHECKOUT_DURATION_SECONDS.observe(time.perf_counter() - start_time, payment_method=method_label)

    def _commit(self, account: Account, cart: Cart, q: Quote) -> CheckoutResult:
        warns: List[PartialCommitWarning] = []

        # Reserve stock first so a shortage aborts before money moves.
        reserved: List[LineItem] = []
        for line in cart:
            if not self.inventory.decrease_stock_if_available(line.item_id, line.quantity):
                self._release_stock(reserved, warns)
                return self._abort(
                    account,
                    AbortReason.STOCK_UNAVAILABLE,
                    f"Insufficient stock for {line.item.name}",
                    warns,
                )
            reserved.append(line)

        redeemed = 0
        debited = False
        try:
            if q.points_to_redeem:
                self.ledger.redeem(account, q.points_to_redeem)
                redeemed = q.points_to_redeem
            if not self.payment_service.debit(account, q.final_total, q.method):
                raise InsufficientFunds(f"Insufficient {q.method.value.lower()} funds at commit time.")
            debited = True
            receipt = self.receipt_builder.build(
                account,
                cart,
                q.method,
                redeemed,
                q.discount,
                points_balance=account.loyalty_points + q.points_to_earn,
            )
        except Exception as ex:
            if debited:
                self.payment_service.refund(account, q.final_total, q.method)
            if redeemed:
                self.ledger.reverse_redemption(account, redeemed)
            self._release_stock(reserved, warns)
            if isinstance(ex, CheckoutError):
                return self._abort(account, ex.reason, ex.message, warns)
            logger.exception("Checkout commit failed; compensated", extra={"customer_id": account.id})
            raise

        if q.points_to_earn:
            self.ledger.accrue(account, q.points_to_earn)

        if receipt.total != q.totals.total or receipt.points_earned != q.points_to_earn:
            logger.error(
                "Receipt figures disagree with checkout totals",
                extra={
                    "customer_id": account.id,
                    "receipt_id": receipt.receipt_id,
                    "extra": {"receipt_total": str(receipt.total), "quoted_total": str(q.totals.total)},
                },
            )

        cart.clear()
        CHECKOUT_COMMITTED_TOTAL.inc(payment_method=q.method.value)
        logger.info(
            "Checkout committed",
            extra={
                "customer_id": account.id,
                "receipt_id": receipt.receipt_id,
                "extra": {
                    "charged": str(q.final_total),
                    "method": q.method.value,
                    "points_redeemed": redeemed,
                    "points_earned": receipt.points_earned,
                },
            },
        )
        return CheckoutResult(state=CheckoutState.COMMITTED, receipt=receipt, warnings=warns)

    # ---- Suggestions / account helpers ----

    def suggest_items_to_remove(self, cart: Cart, available_funds: MoneyLike) -> List[LineItem]:
        """Most expensive lines first until their value covers the shortfall.

        The shortfall is the taxed total minus ``available_funds``; lines
        are summed at their pre-tax value.  A greedy heuristic, not an
        optimal subset.
        """
        deficit = self.compute_totals(cart).total - to_money(available_funds)
        if deficit <= 0:
            return []
        suggestions: List[LineItem] = []
        covered = ZERO
        for line in sorted(cart, key=lambda ln: ln.unit_price, reverse=True):
            if covered >= deficit:
                break
            suggestions.append(line)
            covered += line.line_total
        return suggestions

    def add_funds(self, account: Account, amount: MoneyLike, method: object) -> Tuple[bool, str]:
        try:
            value = to_money(amount)
            if value <= 0:
                return False, "Amount must be positive."
            new_balance = self.payment_service.credit(account, value, method)
        except CheckoutError as ex:
            return False, ex.message
        pm = PaymentMethod.parse(method)
        logger.info(
            "Funds added",
            extra={"customer_id": account.id, "extra": {"amount": str(value), "method": pm.value}},
        )
        return True, f"{pm.value} balance is now ${new_balance:.2f}"

    def purchase_history(self, account: Account) -> List[Receipt]:
        return list(account.purchase_history)
