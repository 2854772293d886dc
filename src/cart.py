"""Storefront cart management.

The cart lives on Shopify; the client only remembers its id. Every mutation
goes through ``ensure_cart_id`` first, so an expired cart is replaced
transparently, and refetches the cart afterwards so ``self.cart`` always
mirrors Shopify.
"""

from typing import Any

from src.logging_config import get_logger
from src.shopify import StorefrontClient, ShopifyClientError, normalize_cart, raise_user_errors
from src.shopify.queries import (
    CART_CREATE_MUTATION,
    CART_LINES_ADD_MUTATION,
    CART_LINES_REMOVE_MUTATION,
    CART_LINES_UPDATE_MUTATION,
    CART_QUERY,
)
from src.storage import Preferences, StorageKeys

logger = get_logger(__name__)


class CartNotFoundError(ShopifyClientError):
    """Raised when a cart id no longer resolves (carts expire)."""

    pass


class CartService:
    """Cart operations against the Storefront API.

    Attributes:
        cart: The last fetched, normalized cart (None until fetched).
    """

    def __init__(self, client: StorefrontClient, prefs: Preferences):
        self.client = client
        self.prefs = prefs
        self.cart: dict[str, Any] | None = None

    @property
    def cart_id(self) -> str | None:
        return self.prefs.get(StorageKeys.CART_ID) or None

    @cart_id.setter
    def cart_id(self, value: str) -> None:
        self.prefs.set(StorageKeys.CART_ID, value)

    def create_cart(self) -> str:
        data = self.client.execute(CART_CREATE_MUTATION, {"input": {}})
        payload = data.get("cartCreate") or {}
        raise_user_errors(payload)
        cart_id = (payload.get("cart") or {}).get("id")
        if not cart_id:
            raise ShopifyClientError("Failed to create cart")
        logger.info("Created cart", extra={"cart_id": cart_id})
        return cart_id

    def fetch_cart(self, cart_id: str) -> dict[str, Any]:
        data = self.client.execute(CART_QUERY, {"id": cart_id})
        cart = data.get("cart")
        if not cart or not cart.get("id"):
            raise CartNotFoundError("Cart not found (expired).")
        self.cart = normalize_cart(cart)
        return self.cart

    def ensure_cart_id(self) -> str:
        """Return a live cart id, creating (and persisting) a new cart if needed."""
        existing = self.cart_id
        if existing:
            try:
                self.fetch_cart(existing)
                return existing
            except ShopifyClientError as e:
                logger.info(
                    "Stored cart unusable, creating a new one",
                    extra={"cart_id": existing, "error": str(e)},
                )

        new_id = self.create_cart()
        self.cart_id = new_id
        self.fetch_cart(new_id)
        return new_id

    def _mutate(self, mutation: str, field: str, variables: dict[str, Any]) -> dict[str, Any]:
        cart_id = self.ensure_cart_id()
        data = self.client.execute(mutation, {"cartId": cart_id, **variables})
        raise_user_errors(data.get(field))
        return self.fetch_cart(cart_id)

    def add_line(self, variant_id: str, quantity: int = 1) -> dict[str, Any]:
        return self.add_lines([{"merchandiseId": variant_id, "quantity": quantity}])

    def add_lines(self, lines: list[dict[str, Any]]) -> dict[str, Any]:
        """Add several ``{merchandiseId, quantity}`` lines in one mutation."""
        cart = self._mutate(CART_LINES_ADD_MUTATION, "cartLinesAdd", {"lines": lines})
        logger.info("Added lines to cart", extra={"lines": len(lines)})
        return cart

    def update_line(self, line_id: str, quantity: int) -> dict[str, Any]:
        return self._mutate(
            CART_LINES_UPDATE_MUTATION,
            "cartLinesUpdate",
            {"lines": [{"id": line_id, "quantity": quantity}]},
        )

    def remove_line(self, line_id: str) -> dict[str, Any]:
        return self._mutate(
            CART_LINES_REMOVE_MUTATION, "cartLinesRemove", {"lineIds": [line_id]}
        )

    def increment(self, line_id: str, step: int = 1) -> dict[str, Any]:
        """Change a line's quantity by ``step``; removes it when it drops to zero."""
        line = self.find_line(line_id)
        quantity = (line["quantity"] if line else 0) + step
        if quantity <= 0:
            return self.remove_line(line_id)
        return self.update_line(line_id, quantity)

    def find_line(self, line_id: str) -> dict[str, Any] | None:
        for line in (self.cart or {}).get("lines", []):
            if line.get("id") == line_id:
                return line
        return None

    def checkout_url(self) -> str | None:
        self.ensure_cart_id()
        return (self.cart or {}).get("checkoutUrl")

    @property
    def total_quantity(self) -> int:
        return (self.cart or {}).get("totalQuantity", 0)
