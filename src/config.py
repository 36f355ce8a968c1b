"""Runtime settings read from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

DEFAULT_TAX_RATE = Decimal("0.08")
DEFAULT_POINTS_PER_UNIT = 100


@dataclass(frozen=True)
class Settings:
    tax_rate: Decimal = DEFAULT_TAX_RATE
    points_per_currency_unit: int = DEFAULT_POINTS_PER_UNIT
    cashier_stations: int = 3
    minutes_per_customer: int = 3
    log_dir: str = ""
    log_level: str = "INFO"


def _get_env(key: str, default: str) -> str:
    value = os.environ.get(key)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _get_int(key: str, default: int, minimum: int = 0) -> int:
    raw = _get_env(key, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {value}")
    return value


def _get_decimal(key: str, default: Decimal) -> Decimal:
    raw = _get_env(key, str(default))
    try:
        value = Decimal(raw)
    except InvalidOperation:
        raise ValueError(f"{key} must be a decimal number, got {raw!r}")
    if not value.is_finite() or value < 0:
        raise ValueError(f"{key} must be a non-negative number, got {raw!r}")
    return value


def load_settings() -> Settings:
    """Build a :class:`Settings` from ``CHECKOUT_*`` environment variables.

    Raises:
        ValueError: If a variable is present but malformed.
    """
    return Settings(
        tax_rate=_get_decimal("CHECKOUT_TAX_RATE", DEFAULT_TAX_RATE),
        points_per_currency_unit=_get_int("CHECKOUT_POINTS_PER_UNIT", DEFAULT_POINTS_PER_UNIT, minimum=1),
        cashier_stations=_get_int("CHECKOUT_CASHIER_STATIONS", 3),
        minutes_per_customer=_get_int("CHECKOUT_MINUTES_PER_CUSTOMER", 3),
        log_dir=_get_env("CHECKOUT_LOG_DIR", ""),
        log_level=_get_env("CHECKOUT_LOG_LEVEL", "INFO").upper(),
    )
