"""
Error kinds raised by the checkout components.

Components (ledger, payment service, inventory, cart) raise these
exceptions.  The checkout engine catches them and turns them into a
:class:`checkout.CheckoutResult` carrying the matching
:class:`AbortReason`, so callers of the engine branch on data rather
than on exceptions.
"""

from __future__ import annotations

from enum import Enum


class AbortReason(str, Enum):
    """Why a checkout (or a cart/account operation) did not go through."""

    EMPTY_CART = "EmptyCart"
    UNKNOWN_PAYMENT_METHOD = "UnknownPaymentMethod"
    INSUFFICIENT_FUNDS = "InsufficientFunds"
    INSUFFICIENT_POINTS = "InsufficientPoints"
    INVALID_AMOUNT = "InvalidAmount"
    NOT_FOUND = "NotFound"
    STOCK_UNAVAILABLE = "StockUnavailable"


class CheckoutError(Exception):
    """Base class for recoverable business errors."""

    reason: AbortReason

    def __init__(self, message: str = "") -> None:
        super().__init__(message or self.reason.value)
        self.message = message or self.reason.value


class EmptyCart(CheckoutError):
    reason = AbortReason.EMPTY_CART


class UnknownPaymentMethod(CheckoutError):
    reason = AbortReason.UNKNOWN_PAYMENT_METHOD


class InsufficientFunds(CheckoutError):
    reason = AbortReason.INSUFFICIENT_FUNDS


class InsufficientPoints(CheckoutError):
    reason = AbortReason.INSUFFICIENT_POINTS


class InvalidAmount(CheckoutError, ValueError):
    reason = AbortReason.INVALID_AMOUNT


class NotFound(CheckoutError, LookupError):
    reason = AbortReason.NOT_FOUND


class StockUnavailable(CheckoutError):
    reason = AbortReason.STOCK_UNAVAILABLE


class PartialCommitWarning(UserWarning):
    """A compensating action could not fully undo a failed commit."""
