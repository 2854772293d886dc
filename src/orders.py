"""Order history from the Customer Account API, with reorder support."""

import time
from typing import Any

from src.account import AccountService
from src.cart import CartService
from src.logging_config import get_logger
from src.pricing import clamp, format_datetime, format_money_v2
from src.shopify.queries import CUSTOMER_ORDERS_QUERY
from src.storage import Preferences, StorageKeys

logger = get_logger(__name__)

RECENT_ITEMS = 4
MAX_REORDER_QUANTITY = 999


def line_items(order: dict[str, Any] | None) -> list[dict[str, Any]]:
    """Line items of an order, whether given as a connection or a list."""
    items = (order or {}).get("lineItems") or []
    if isinstance(items, dict):
        return items.get("nodes") or []
    return items


class NothingToReorderError(Exception):
    pass


class OrderService:
    """Loads and caches the logged-in customer's orders.

    Attributes:
        orders: Orders from the last load (or the cache at boot).
        recently_ordered: Up to four items from the latest order.
    """

    def __init__(self, account: AccountService, cart: CartService, prefs: Preferences):
        self.account = account
        self.cart = cart
        self.prefs = prefs
        self.orders: list[dict[str, Any]] = []
        self.recently_ordered: list[dict[str, Any]] = []

    def restore(self) -> None:
        cache = self.prefs.get_json(StorageKeys.ORDERS_CACHE)
        if isinstance(cache, dict) and cache.get("orders"):
            self.orders = cache["orders"]
            self._derive_recently_ordered()

    def load_orders(self, first: int = 40) -> list[dict[str, Any]]:
        """Fetch orders newest first and cache them.

        Raises:
            NotAuthenticatedError: If nobody is logged in.
        """
        session = self.account.auth.require_session()

        with self.account.customer_client(session.access_token) as client:
            data = client.execute(CUSTOMER_ORDERS_QUERY, {"first": first})

        self.orders = ((data.get("customer") or {}).get("orders") or {}).get("nodes") or []
        self._derive_recently_ordered()
        self.prefs.set_json(
            StorageKeys.ORDERS_CACHE,
            {"savedAt": int(time.time() * 1000), "orders": self.orders},
        )
        logger.info("Loaded orders", extra={"count": len(self.orders)})
        return self.orders

    def _derive_recently_ordered(self) -> None:
        if not self.orders:
            self.recently_ordered = []
            return
        self.recently_ordered = [
            {
                "name": item.get("name") or "Item",
                "sku": item.get("sku") or None,
                "quantity": item.get("quantity") or 1,
                "variantId": item.get("variantId"),
            }
            for item in line_items(self.orders[0])[:RECENT_ITEMS]
        ]

    def find_order(self, name_or_id: str) -> dict[str, Any] | None:
        wanted = name_or_id.lstrip("#")
        for order in self.orders:
            keys = (
                (order.get("name") or "").lstrip("#"),
                order.get("id"),
                str(order.get("number")),
            )
            if wanted in keys:
                return order
        return None

    def reorder(self, order: dict[str, Any]) -> dict[str, Any]:
        """Add every line of a previous order to the cart in one batch."""
        lines = [
            {
                "merchandiseId": item.get("variantId"),
                "quantity": int(clamp(int(item.get("quantity") or 1), 1, MAX_REORDER_QUANTITY)),
            }
            for item in line_items(order)
            if item.get("variantId")
        ]
        if not lines:
            raise NothingToReorderError("Nothing to reorder (no variant IDs found)")
        logger.info("Reordering", extra={"order": order.get("name"), "lines": len(lines)})
        return self.cart.add_lines(lines)

    def add_recent_item(self, item: dict[str, Any]) -> dict[str, Any]:
        if not item.get("variantId"):
            raise NothingToReorderError("Item has no variant to add")
        return self.cart.add_line(item["variantId"], item.get("quantity") or 1)


def invoice_text(order: dict[str, Any]) -> str:
    """Plain-text invoice for an order."""
    lines = [
        f"INVOICE - {order.get('name', '')}",
        f"Date: {format_datetime(order.get('createdAt'))}",
        f"Subtotal: {format_money_v2(order.get('subtotal'))}",
        f"Tax: {format_money_v2(order.get('totalTax'))}",
        f"Total: {format_money_v2(order.get('totalPrice'))}",
        "",
        "Items:",
    ]
    lines.extend(
        f"- {item.get('name') or 'Item'} ({item.get('quantity') or 1}x)"
        for item in line_items(order)
    )
    lines.extend(["", "Thank you for your business!"])
    return "\n".join(lines)
