"""Catalog browsing plus the customer's local favorites and reviews."""

from datetime import datetime, timezone
from typing import Any

from src.logging_config import get_logger
from src.pricing import clamp
from src.shopify import ShopifyClientError, StorefrontClient, normalize_collection, normalize_product
from src.shopify.queries import COLLECTION_BY_HANDLE_QUERY, COLLECTIONS_QUERY
from src.storage import Preferences, StorageKeys

logger = get_logger(__name__)


class CollectionNotFoundError(ShopifyClientError):
    pass


class CatalogService:
    """Loads collections and their products from the Storefront API."""

    def __init__(self, client: StorefrontClient):
        self.client = client
        self.collections: list[dict[str, Any]] = []
        self.active_collection: dict[str, Any] | None = None
        self.products: list[dict[str, Any]] = []

    def load_collections(self, first: int = 40) -> list[dict[str, Any]]:
        data = self.client.execute(COLLECTIONS_QUERY, {"first": first})
        edges = (data.get("collections") or {}).get("edges") or []
        self.collections = [normalize_collection(e.get("node") or {}) for e in edges]
        logger.info("Loaded collections", extra={"count": len(self.collections)})
        return self.collections

    def load_collection(
        self, handle: str, first: int = 40
    ) -> tuple[dict[str, Any], list[dict[str, Any]]]:
        """Load a collection by handle together with its products.

        Raises:
            CollectionNotFoundError: If no collection has this handle.
        """
        data = self.client.execute(
            COLLECTION_BY_HANDLE_QUERY, {"handle": handle, "first": first}
        )
        node = data.get("collectionByHandle")
        if not node:
            raise CollectionNotFoundError("Collection not found")

        self.active_collection = {
            "id": node.get("id"),
            "title": node.get("title") or "",
            "handle": node.get("handle") or "",
            "description": node.get("description") or "",
            "descriptionHtml": node.get("descriptionHtml") or "",
        }
        edges = (node.get("products") or {}).get("edges") or []
        self.products = [normalize_product(e.get("node") or {}) for e in edges]
        logger.info(
            "Loaded collection products",
            extra={"handle": handle, "count": len(self.products)},
        )
        return self.active_collection, self.products

    def find_product(self, handle_or_id: str) -> dict[str, Any] | None:
        for product in self.products:
            if handle_or_id in (product.get("handle"), product.get("id")):
                return product
        return None


class Favorites:
    """Favorited products, stored as minimal product snapshots."""

    def __init__(self, prefs: Preferences):
        self.prefs = prefs

    def all(self) -> list[dict[str, Any]]:
        items = self.prefs.get_json(StorageKeys.FAVORITES)
        return items if isinstance(items, list) else []

    def is_favorited(self, product_id: str) -> bool:
        return any(item.get("id") == product_id for item in self.all())

    def toggle(self, product: dict[str, Any]) -> bool:
        """Add or remove a product; returns True if it is now a favorite."""
        items = self.all()
        remaining = [item for item in items if item.get("id") != product.get("id")]
        added = len(remaining) == len(items)
        if added:
            remaining.append(
                {
                    "id": product.get("id"),
                    "title": product.get("title"),
                    "handle": product.get("handle"),
                    "vendor": product.get("vendor"),
                }
            )
        self.prefs.set_json(StorageKeys.FAVORITES, remaining)
        return added


class Reviews:
    """Reviews written on this device, keyed by product id."""

    def __init__(self, prefs: Preferences):
        self.prefs = prefs

    def _all(self) -> dict[str, list[dict[str, Any]]]:
        data = self.prefs.get_json(StorageKeys.REVIEWS)
        return data if isinstance(data, dict) else {}

    def for_product(self, product_id: str) -> list[dict[str, Any]]:
        return self._all().get(product_id, [])

    def add(self, product_id: str, rating: int, comment: str = "") -> dict[str, Any]:
        now = datetime.now(timezone.utc)
        review = {
            "id": f"review-{int(now.timestamp() * 1000)}",
            "rating": int(clamp(rating, 1, 5)),
            "comment": comment,
            "createdAt": now.isoformat(),
            "author": "You",
        }
        data = self._all()
        data.setdefault(product_id, []).append(review)
        self.prefs.set_json(StorageKeys.REVIEWS, data)
        return review

    def average_rating(self, product_id: str) -> float:
        reviews = self.for_product(product_id)
        if not reviews:
            return 0.0
        return round(sum(r.get("rating", 0) for r in reviews) / len(reviews), 1)
