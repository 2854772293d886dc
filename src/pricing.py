"""VAT display, money formatting and bulk pricing.

Shopify returns prices excluding VAT. Inc-VAT display adds the configured
rate on the client; Ex-VAT display shows the raw price.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from src.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_VAT_RATE = 0.2


class VatMode(str, Enum):
    """How prices are displayed."""

    INC = "inc"
    EX = "ex"

    @classmethod
    def parse(cls, value: str | None) -> "VatMode | None":
        """Return the mode for a stored value, or None if it is not a mode."""
        try:
            return cls(value)
        except ValueError:
            return None


def clamp(n: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, n))


def _as_number(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number != number:  # NaN
        return None
    return number


def format_gbp(value: Any) -> str:
    """Format a number as pounds, e.g. ``£1,234.50``."""
    number = _as_number(value)
    if number is None:
        return "£—"
    sign = "-" if number < 0 else ""
    return f"{sign}£{abs(number):,.2f}"


_CURRENCY_SYMBOLS = {"GBP": "£", "EUR": "€", "USD": "US$"}


def format_money_v2(money: dict[str, Any] | None) -> str:
    """Format a Shopify MoneyV2 object."""
    if not money or money.get("amount") is None:
        return "—"
    number = _as_number(money.get("amount")) or 0.0
    currency = money.get("currencyCode") or "GBP"
    symbol = _CURRENCY_SYMBOLS.get(currency)
    sign = "-" if number < 0 else ""
    if symbol:
        return f"{sign}{symbol}{abs(number):,.2f}"
    return f"{sign}{currency} {abs(number):,.2f}"


def format_datetime(iso: str | None) -> str:
    """Format an ISO timestamp as ``17 Oct 2026, 14:05``; empty when invalid."""
    if not iso:
        return ""
    try:
        moment = datetime.fromisoformat(iso.replace("Z", "+00:00"))
    except ValueError:
        return ""
    return moment.strftime("%d %b %Y, %H:%M")


def display_price(base_price: Any, mode: VatMode, vat_rate: float = DEFAULT_VAT_RATE) -> str:
    number = _as_number(base_price) or 0.0
    if mode == VatMode.INC:
        return format_gbp(number * (1 + vat_rate))
    return format_gbp(number)


def display_compare_at(
    compare_at_price: Any,
    mode: VatMode,
    vat_rate: float = DEFAULT_VAT_RATE,
) -> str:
    if not compare_at_price:
        return ""
    return display_price(compare_at_price, mode, vat_rate)


def cart_totals(
    cart: dict[str, Any] | None,
    mode: VatMode,
    vat_rate: float = DEFAULT_VAT_RATE,
) -> dict[str, float]:
    """Recalculate displayed cart totals from the ex-VAT line prices.

    Returns:
        Dict with ``subtotal``, ``tax`` and ``total``.
    """
    if not cart:
        return {"subtotal": 0.0, "tax": 0.0, "total": 0.0}

    line_subtotal = sum(
        (_as_number(line.get("price")) or 0.0) * (line.get("quantity") or 0)
        for line in cart.get("lines", [])
    )
    if mode == VatMode.INC:
        inc_subtotal = line_subtotal * (1 + vat_rate)
        return {
            "subtotal": inc_subtotal,
            "tax": line_subtotal * vat_rate,
            "total": inc_subtotal,
        }
    return {"subtotal": line_subtotal, "tax": 0.0, "total": line_subtotal}


class BulkPricing:
    """Quantity break discounts.

    Tiers are checked from the largest minimum quantity down; the first one
    reached wins.

    Example:
        >>> BulkPricing.discount_percent(30)
        10
        >>> BulkPricing.price(10.0, 100)
        8.0
    """

    TIERS: list[tuple[int, int]] = [
        (100, 20),
        (50, 15),
        (25, 10),
        (10, 5),
    ]

    @classmethod
    def discount_percent(cls, quantity: int) -> int:
        for min_quantity, percent in cls.TIERS:
            if quantity >= min_quantity:
                return percent
        return 0

    @classmethod
    def price(cls, base_price: float, quantity: int) -> float:
        """Unit price after the quantity discount."""
        return base_price * (100 - cls.discount_percent(quantity)) / 100

    @classmethod
    def next_tier(cls, quantity: int) -> tuple[int, int] | None:
        """The next (min_quantity, percent) tier above ``quantity``, if any."""
        for min_quantity, percent in reversed(cls.TIERS):
            if quantity < min_quantity:
                return min_quantity, percent
        return None
