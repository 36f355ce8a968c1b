# --- path/bootstrap (keep this at the very top) ---
from pathlib import Path
import sys

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if SRC.is_dir() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))
# --- end path/bootstrap ---

import unittest
from decimal import Decimal

from cart import Cart
from checkout import CheckoutEngine, CheckoutState
from config import Settings
from customers import Account
from errors import AbortReason, EmptyCart, InvalidAmount, PartialCommitWarning, UnknownPaymentMethod
from inventory import Inventory, Item
from metrics import (
    CHECKOUT_ABORT_TOTAL,
    CHECKOUT_COMMITTED_TOTAL,
    CHECKOUT_DURATION_SECONDS,
    PARTIAL_COMMIT_TOTAL,
)
from payment_service import PaymentMethod, PaymentService
from receipts import ReceiptBuilder


def build_inventory(inventory=None):
    inventory = inventory if inventory is not None else Inventory()
    inventory.add_item(Item(1, "Test Item", Decimal("10.00"), "2001", 100, "Test", 10))
    inventory.add_item(Item(2, "Cheap Item", Decimal("1.50"), "2002", 5, "Test", 1))
    inventory.add_item(Item(3, "Pricey Item", Decimal("25.00"), "2003", 10, "Deli", 25))
    return inventory


class DelistingInventory(Inventory):
    """Catalog where item 1 is delisted while item 2 is being reserved."""

    def decrease_stock_if_available(self, item_id, qty):
        if item_id == 2:
            self.remove_item(1)
            return False
        return super().decrease_stock_if_available(item_id, qty)


class DecliningPaymentService(PaymentService):
    """Passes the funds check but declines the debit itself."""

    def debit(self, account, amount, method):
        return False


class BrokenReceiptBuilder(ReceiptBuilder):
    def build(self, *args, **kwargs):
        raise RuntimeError("printer on fire")


class CheckoutTestCase(unittest.TestCase):
    def setUp(self):
        self.inventory = build_inventory()
        self.engine = CheckoutEngine(inventory=self.inventory, settings=Settings())
        self.account = Account(1, "Test Customer", Decimal("100.00"), Decimal("200.00"), 500)
        self.cart = Cart()

    def fill_cart(self, qty=2):
        ok, msg = self.engine.add_to_cart(self.cart, 1, qty)
        self.assertTrue(ok, msg)

    def assert_untouched(self, cash="100.00", card="200.00", points=500):
        self.assertEqual(self.account.cash_balance, Decimal(cash))
        self.assertEqual(self.account.card_balance, Decimal(card))
        self.assertEqual(self.account.loyalty_points, points)
        self.assertEqual(self.account.purchase_history, [])


class TestCheckoutCommit(CheckoutTestCase):
    def test_cash_checkout_earns_points(self):
        self.fill_cart()
        result = self.engine.process_checkout(self.account, self.cart, PaymentMethod.CASH)

        self.assertTrue(result.ok, result.message)
        self.assertIs(result.state, CheckoutState.COMMITTED)
        self.assertEqual(self.account.cash_balance, Decimal("78.40"))
        self.assertEqual(self.account.card_balance, Decimal("200.00"))
        self.assertEqual(self.account.loyalty_points, 520)
        self.assertEqual(self.inventory.stock_of(1), 98)
        self.assertEqual(len(self.cart), 0)

        receipt = result.receipt
        self.assertEqual(receipt.total, Decimal("21.60"))
        self.assertEqual(receipt.amount_charged, Decimal("21.60"))
        self.assertEqual(receipt.points_earned, 20)
        self.assertEqual(receipt.points_redeemed, 0)
        self.assertEqual(receipt.points_balance, 520)
        self.assertEqual(self.account.purchase_history, [receipt])

    def test_card_checkout_with_redemption_earns_nothing(self):
        self.fill_cart()
        result = self.engine.process_checkout(self.account, self.cart, "card", points_to_redeem=100)

        self.assertTrue(result.ok, result.message)
        self.assertEqual(self.account.card_balance, Decimal("179.40"))
        self.assertEqual(self.account.cash_balance, Decimal("100.00"))
        self.assertEqual(self.account.loyalty_points, 400)
        self.assertEqual(result.receipt.discount, Decimal("1.00"))
        self.assertEqual(result.receipt.amount_charged, Decimal("20.60"))
        self.assertEqual(result.receipt.points_earned, 0)
        self.assertEqual(result.receipt.points_balance, 400)

    def test_redemption_above_balance_is_ignored(self):
        self.fill_cart()
        result = self.engine.process_checkout(self.account, self.cart, PaymentMethod.CASH, points_to_redeem=600)

        self.assertTrue(result.ok, result.message)
        self.assertEqual(result.receipt.points_redeemed, 0)
        self.assertEqual(result.receipt.discount, Decimal("0.00"))
        self.assertEqual(self.account.cash_balance, Decimal("78.40"))
        self.assertEqual(self.account.loyalty_points, 520)

    def test_discount_capped_at_total(self):
        self.account.loyalty_points = 5000
        self.fill_cart()
        result = self.engine.process_checkout(self.account, self.cart, PaymentMethod.CARD, points_to_redeem=5000)

        self.assertTrue(result.ok, result.message)
        self.assertEqual(result.receipt.points_redeemed, 2160)
        self.assertEqual(result.receipt.discount, Decimal("21.60"))
        self.assertEqual(result.receipt.amount_charged, Decimal("0.00"))
        self.assertEqual(self.account.loyalty_points, 2840)
        self.assertEqual(self.account.card_balance, Decimal("200.00"))

    def test_successive_checkouts_get_increasing_receipt_ids(self):
        ids = []
        for _ in range(3):
            self.fill_cart(1)
            result = self.engine.process_checkout(self.account, self.cart, PaymentMethod.CARD)
            self.assertTrue(result.ok, result.message)
            ids.append(result.receipt.receipt_id)
        self.assertEqual(ids, sorted(ids))
        self.assertEqual(len(set(ids)), 3)
        self.assertEqual([r.receipt_id for r in self.engine.purchase_history(self.account)], ids)

    def test_commit_metrics(self):
        committed = CHECKOUT_COMMITTED_TOTAL.value(payment_method="Cash")
        observed = CHECKOUT_DURATION_SECONDS.count(payment_method="Cash")
        self.fill_cart()
        self.engine.process_checkout(self.account, self.cart, PaymentMethod.CASH)
        self.assertEqual(CHECKOUT_COMMITTED_TOTAL.value(payment_method="Cash") - committed, 1)
        self.assertEqual(CHECKOUT_DURATION_SECONDS.count(payment_method="Cash") - observed, 1)


class TestCheckoutAbort(CheckoutTestCase):
    def test_insufficient_funds_keeps_points(self):
        self.account.card_balance = Decimal("10.00")
        self.fill_cart()
        before = CHECKOUT_ABORT_TOTAL.value(reason="InsufficientFunds")

        result = self.engine.process_checkout(self.account, self.cart, PaymentMethod.CARD, points_to_redeem=50)

        self.assertFalse(result.ok)
        self.assertIs(result.state, CheckoutState.ABORTED)
        self.assertIs(result.reason, AbortReason.INSUFFICIENT_FUNDS)
        self.assertIn("need 21.10", result.message)
        self.assert_untouched(card="10.00")
        self.assertEqual(self.inventory.stock_of(1), 100)
        self.assertEqual(len(self.cart), 1)
        self.assertEqual(CHECKOUT_ABORT_TOTAL.value(reason="InsufficientFunds") - before, 1)

    def test_empty_cart(self):
        result = self.engine.process_checkout(self.account, self.cart, PaymentMethod.CASH)
        self.assertIs(result.reason, AbortReason.EMPTY_CART)
        self.assert_untouched()

    def test_unknown_payment_method(self):
        self.fill_cart()
        unknown = CHECKOUT_DURATION_SECONDS.count(payment_method="unknown")
        result = self.engine.process_checkout(self.account, self.cart, "Bitcoin")
        self.assertIs(result.reason, AbortReason.UNKNOWN_PAYMENT_METHOD)
        self.assert_untouched()
        self.assertEqual(self.inventory.stock_of(1), 100)
        # free-form method strings must not become metric label values
        self.assertEqual(CHECKOUT_DURATION_SECONDS.count(payment_method="unknown") - unknown, 1)
        self.assertEqual(CHECKOUT_DURATION_SECONDS.count(payment_method="Bitcoin"), 0)

    def test_negative_points(self):
        self.fill_cart()
        result = self.engine.process_checkout(self.account, self.cart, PaymentMethod.CASH, points_to_redeem=-10)
        self.assertIs(result.reason, AbortReason.INVALID_AMOUNT)
        self.assert_untouched()

    def test_stock_shortage_releases_reserved_lines(self):
        self.fill_cart()
        ok, msg = self.engine.add_to_cart(self.cart, 2, 3)
        self.assertTrue(ok, msg)
        # another till sells the shelf empty after the item went into this cart
        self.assertTrue(self.inventory.decrease_stock_if_available(2, 4))

        result = self.engine.process_checkout(self.account, self.cart, PaymentMethod.CASH)

        self.assertIs(result.reason, AbortReason.STOCK_UNAVAILABLE)
        self.assertIn("Cheap Item", result.message)
        self.assertEqual(self.inventory.stock_of(1), 100)
        self.assertEqual(self.inventory.stock_of(2), 1)
        self.assert_untouched()
        self.assertEqual(result.warnings, [])

    def test_item_delisted_mid_commit_reports_partial_commit(self):
        inventory = build_inventory(DelistingInventory())
        engine = CheckoutEngine(inventory=inventory, settings=Settings())
        engine.add_to_cart(self.cart, 1, 2)
        engine.add_to_cart(self.cart, 2, 3)
        before = PARTIAL_COMMIT_TOTAL.value()

        with self.assertWarns(PartialCommitWarning):
            result = engine.process_checkout(self.account, self.cart, PaymentMethod.CASH)

        self.assertIs(result.reason, AbortReason.STOCK_UNAVAILABLE)
        self.assertEqual(len(result.warnings), 1)
        self.assertIn("Test Item", str(result.warnings[0]))
        self.assertEqual(PARTIAL_COMMIT_TOTAL.value() - before, 1)
        self.assertEqual([i.id for i in inventory.list_items()], [2, 3])
        self.assert_untouched()

    def test_declined_debit_undoes_redemption_and_stock(self):
        engine = CheckoutEngine(inventory=self.inventory, payment_service=DecliningPaymentService(), settings=Settings())
        self.fill_cart()

        result = engine.process_checkout(self.account, self.cart, PaymentMethod.CARD, points_to_redeem=100)

        self.assertIs(result.reason, AbortReason.INSUFFICIENT_FUNDS)
        self.assert_untouched()
        self.assertEqual(self.inventory.stock_of(1), 100)
        self.assertEqual(len(self.cart), 1)

    def test_unexpected_error_is_compensated_and_raised(self):
        engine = CheckoutEngine(
            inventory=self.inventory,
            receipt_builder=BrokenReceiptBuilder(),
            settings=Settings(),
        )
        self.fill_cart()

        with self.assertLogs("checkout", level="ERROR"):
            with self.assertRaises(RuntimeError):
                engine.process_checkout(self.account, self.cart, PaymentMethod.CASH, points_to_redeem=100)

        self.assert_untouched()
        self.assertEqual(self.inventory.stock_of(1), 100)


class TestQuoteAndFunds(CheckoutTestCase):
    def test_quote_mutates_nothing(self):
        self.fill_cart()
        q = self.engine.quote(self.account, self.cart, "cash", 100)
        self.assertEqual(q.totals.total, Decimal("21.60"))
        self.assertEqual(q.discount, Decimal("1.00"))
        self.assertEqual(q.final_total, Decimal("20.60"))
        self.assertEqual(q.points_to_earn, 0)
        self.assert_untouched()
        self.assertEqual(self.inventory.stock_of(1), 100)

    def test_quote_errors(self):
        with self.assertRaises(EmptyCart):
            self.engine.quote(self.account, self.cart, "cash")
        self.fill_cart()
        with self.assertRaises(UnknownPaymentMethod):
            self.engine.quote(self.account, self.cart, "voucher")
        with self.assertRaises(InvalidAmount):
            self.engine.quote(self.account, self.cart, "cash", -1)

    def test_check_funds_is_read_only(self):
        self.fill_cart(9)
        self.engine.add_to_cart(self.cart, 2, 2)
        # (90.00 + 3.00) + 8% tax = 100.44 > 100.00 cash; 500 points bring it to 95.44
        for _ in range(2):
            self.assertFalse(self.engine.check_funds(self.account, self.cart, PaymentMethod.CASH))
            self.assertTrue(self.engine.check_funds(self.account, self.cart, PaymentMethod.CARD))
        self.assertTrue(self.engine.check_funds(self.account, self.cart, PaymentMethod.CASH, points_to_redeem=500))
        self.assertFalse(self.engine.check_funds(self.account, Cart(), PaymentMethod.CASH))
        self.assert_untouched()

    def test_suggest_items_to_remove(self):
        self.engine.add_to_cart(self.cart, 1, 2)
        self.engine.add_to_cart(self.cart, 2, 2)
        self.engine.add_to_cart(self.cart, 3, 1)
        # total: (20.00 + 3.00 + 25.00) * 1.08 = 51.84
        suggestions = self.engine.suggest_items_to_remove(self.cart, Decimal("40.00"))
        self.assertEqual([line.item_id for line in suggestions], [3])

        suggestions = self.engine.suggest_items_to_remove(self.cart, Decimal("20.00"))
        self.assertEqual([line.item_id for line in suggestions], [3, 1])

        self.assertEqual(self.engine.suggest_items_to_remove(self.cart, Decimal("60.00")), [])


class TestCartOperations(CheckoutTestCase):
    def test_add_to_cart_validation(self):
        ok, msg = self.engine.add_to_cart(self.cart, 999, 1)
        self.assertFalse(ok)
        self.assertIn("not found", msg.lower())

        ok, msg = self.engine.add_to_cart(self.cart, 1, 0)
        self.assertFalse(ok)
        self.assertIn("quantity", msg.lower())

        ok, msg = self.engine.add_to_cart(self.cart, 2, 6)
        self.assertFalse(ok)
        self.assertIn("stock", msg.lower())
        self.assertEqual(len(self.cart), 0)

    def test_add_accumulates_against_stock(self):
        self.assertTrue(self.engine.add_to_cart(self.cart, 2, 3)[0])
        self.assertFalse(self.engine.add_to_cart(self.cart, 2, 3)[0])
        self.assertTrue(self.engine.add_to_cart(self.cart, 2, 2)[0])
        self.assertEqual(self.cart.quantity_of(2), 5)

    def test_scan_item(self):
        ok, msg = self.engine.scan_item(self.cart, "2003")
        self.assertTrue(ok, msg)
        self.assertEqual(self.cart.quantity_of(3), 1)
        ok, msg = self.engine.scan_item(self.cart, "0000")
        self.assertFalse(ok)
        self.assertIn("barcode", msg)

    def test_remove_and_update(self):
        self.fill_cart()
        ok, msg = self.engine.update_cart_quantity(self.cart, 1, 5)
        self.assertTrue(ok, msg)
        self.assertEqual(self.cart.quantity_of(1), 5)
        self.assertFalse(self.engine.update_cart_quantity(self.cart, 1, 500)[0])
        ok, msg = self.engine.update_cart_quantity(self.cart, 1, 0)
        self.assertTrue(ok)
        self.assertNotIn(1, self.cart)
        self.assertFalse(self.engine.remove_from_cart(self.cart, 1)[0])
        self.fill_cart()
        ok, msg = self.engine.remove_from_cart(self.cart, 1)
        self.assertTrue(ok)
        self.assertIn("Test Item", msg)

    def test_lookup(self):
        self.assertEqual([i.id for i in self.engine.lookup(category="deli")], [3])
        self.assertEqual(self.engine.lookup(barcode="2002")[0].name, "Cheap Item")
        self.assertEqual(self.engine.lookup(item_id=1)[0].barcode, "2001")
        with self.assertRaises(ValueError):
            self.engine.lookup()
        with self.assertRaises(ValueError):
            self.engine.lookup(item_id=1, category="Test")

    def test_add_funds(self):
        ok, msg = self.engine.add_funds(self.account, "25.50", "cash")
        self.assertTrue(ok, msg)
        self.assertEqual(self.account.cash_balance, Decimal("125.50"))
        self.assertIn("125.50", msg)
        self.assertFalse(self.engine.add_funds(self.account, "0", "cash")[0])
        self.assertFalse(self.engine.add_funds(self.account, "ten", "cash")[0])
        self.assertFalse(self.engine.add_funds(self.account, "5", "gift card")[0])
        self.assertEqual(self.account.cash_balance, Decimal("125.50"))

    def test_add_funds_out_of_range_amount(self):
        ok, msg = self.engine.add_funds(self.account, "1e30", "cash")
        self.assertFalse(ok)
        self.assertIn("out of range", msg)
        self.assertEqual(self.account.cash_balance, Decimal("100.00"))

    def test_update_quantity_of_delisted_item(self):
        self.fill_cart(1)
        self.assertTrue(self.inventory.remove_item(1))
        ok, msg = self.engine.update_cart_quantity(self.cart, 1, 2)
        self.assertFalse(ok)
        self.assertEqual(msg, "Item not found.")
        self.assertEqual(self.cart.quantity_of(1), 1)
        # dropping the line still works without a catalog entry
        self.assertTrue(self.engine.update_cart_quantity(self.cart, 1, 0)[0])
        self.assertNotIn(1, self.cart)


if __name__ == "__main__":
    unittest.main(verbosity=2)
