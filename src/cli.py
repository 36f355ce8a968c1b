"""
Command-line interface for the grocery checkout engine.

This script wires the ``CheckoutEngine`` class into an interactive menu
loop.  It prompts for input, invokes engine methods and prints results.
All money movement and validation happens in the engine; this module
only reads input and prints.
"""

import sys
from typing import Optional

from cart import Cart
from checkout import CheckoutEngine
from customers import Account, default_customers
from errors import UnknownPaymentMethod
from logging_config import configure_logging
from payment_service import PaymentMethod
from receipts import render_receipt


def _read_int(prompt: str) -> Optional[int]:
    try:
        return int(input(prompt).strip())
    except ValueError:
        return None


def interactive_cli(engine: Optional[CheckoutEngine] = None, customer: Optional[Account] = None) -> None:
    """Run the checkout menu for one customer until they choose Exit."""
    engine = engine or CheckoutEngine()
    customer = customer or default_customers().get_customer(1)
    cart = Cart()
    method = PaymentMethod.CASH
    points_to_redeem = 0

    def print_menu() -> None:
        totals = engine.compute_totals(cart)
        print("\n-- Grocery Store Checkout --")
        print(f"Customer: {customer.name}  Points: {customer.loyalty_points}")
        print(f"Cash: ${customer.cash_balance:.2f}  Card: ${customer.card_balance:.2f}")
        print(f"Cart: {len(cart)} lines  Total: ${totals.total:.2f}  Pay by: {method.value}")
        if points_to_redeem:
            print(f"Points to redeem: {points_to_redeem}")
        print("1. Browse Items")
        print("2. Add Item to Cart")
        print("3. Scan Item")
        print("4. Choose Payment Method")
        print("5. Redeem Loyalty Points")
        print("6. View Cart")
        print("7. Remove Item from Cart")
        print("8. Checkout")
        print("9. View Customer Information")
        print("10. Add Funds")
        print("0. Exit")

    while True:
        print_menu()
        choice = input("Select an option: ").strip()
        if choice == "1":
            category = input("Category (blank for all): ").strip()
            items = engine.lookup(category=category) if category else engine.browse()
            if not items:
                print("No items found.")
            for item in items:
                print(f"{item.id:<3}| {item.name:<21} | ${item.price:<6.2f}| {item.stock}")
        elif choice == "2":
            item_id = _read_int("Enter item ID: ")
            qty = _read_int("Enter quantity: ")
            if item_id is None or qty is None:
                print("Please enter valid numeric values.")
                continue
            ok, msg = engine.add_to_cart(cart, item_id, qty)
            print(msg)
        elif choice == "3":
            ok, msg = engine.scan_item(cart, input("Enter barcode: "))
            print(msg)
        elif choice == "4":
            try:
                method = PaymentMethod.parse(input("Payment method (Cash/Card): "))
                print(f"Payment method set to {method.value}.")
            except UnknownPaymentMethod:
                print("Invalid payment method.")
        elif choice == "5":
            print(f"Available Points: {customer.loyalty_points} (100 points = $1.00)")
            points = _read_int("Enter points to redeem (0 to cancel): ")
            if points is None or points < 0:
                print("Invalid input.")
            elif points > customer.loyalty_points:
                print("You don't have enough points.")
            else:
                points_to_redeem = points
        elif choice == "6":
            if not cart:
                print("Your cart is empty.")
                continue
            for line in cart:
                print(f"{line.item_id:<3}| {line.item.name:<21} | ${line.unit_price:<7.2f}| {line.quantity:<4}| ${line.line_total:.2f}")
            totals = engine.compute_totals(cart)
            print(f"Subtotal: ${totals.subtotal:.2f}")
            print(f"Tax: ${totals.tax:.2f}")
            print(f"Total: ${totals.total:.2f}")
        elif choice == "7":
            item_id = _read_int("Enter item ID to remove: ")
            if item_id is None:
                print("Invalid item ID.")
                continue
            ok, msg = engine.remove_from_cart(cart, item_id)
            print(msg)
        elif choice == "8":
            if not engine.check_funds(customer, cart, method, points_to_redeem):
                if not cart:
                    print("Your cart is empty. Nothing to checkout.")
                    continue
                available = engine.payment_service.balance(customer, method)
                print(f"Not enough money. Available {method.value}: ${available:.2f}")
                print("Suggested items to remove:")
                for line in engine.suggest_items_to_remove(cart, available):
                    print(f"- {line.item.name} (${line.line_total:.2f})")
                continue
            result = engine.process_checkout(customer, cart, method, points_to_redeem)
            if result.ok:
                points_to_redeem = 0
                print("\nPurchase successful! Receipt:")
                print(render_receipt(result.receipt, engine.settings.tax_rate))
            else:
                print(f"Checkout failed: {result.message}")
            for warning in result.warnings:
                print(f"Warning: {warning}")
        elif choice == "9":
            print(f"Customer: {customer.name} (ID {customer.id})")
            print(f"Loyalty Points: {customer.loyalty_points}")
            print(f"Purchases: {len(engine.purchase_history(customer))}")
            for receipt in engine.purchase_history(customer):
                print(f"  #{receipt.receipt_id} {receipt.issued_at:%Y-%m-%d %H:%M} ${receipt.amount_charged:.2f} ({receipt.payment_method.value})")
        elif choice == "10":
            amount = input("Amount to add: ").strip()
            target = input("To (Cash/Card): ")
            ok, msg = engine.add_funds(customer, amount, target)
            print(msg)
        elif choice == "0":
            print("Exiting application.")
            break
        else:
            print("Invalid option. Please try again.")


def main() -> None:
    configure_logging()
    try:
        interactive_cli()
    except KeyboardInterrupt:
        print("\nInterrupted by user. Exiting.")
        sys.exit(0)


if __name__ == "__main__":
    main()
