"""Catalog search and filtering.

Operates on normalized collections and products (see
``src.shopify.normalize``):
- Text search over collections (title, handle)
- Text search over products (title, vendor, product type)
- Price range on the first variant's ex-VAT price
- Vendor whitelist
"""

from dataclasses import dataclass, field
from typing import Any

DEFAULT_MIN_PRICE = 0.0
DEFAULT_MAX_PRICE = 999.0


def filter_collections(
    collections: list[dict[str, Any]],
    query: str | None,
) -> list[dict[str, Any]]:
    q = (query or "").strip().lower()
    if not q:
        return collections
    return [
        c
        for c in collections
        if q in (c.get("title") or "").lower() or q in (c.get("handle") or "").lower()
    ]


def first_variant_price(product: dict[str, Any]) -> float:
    variants = product.get("variants") or []
    if not variants:
        return 0.0
    try:
        return float(variants[0].get("price") or 0)
    except (TypeError, ValueError):
        return 0.0


@dataclass
class ProductFilter:
    """Search text, price range and vendor filter for a product list.

    A product with no variants is treated as price 0 by the price range.

    Example:
        >>> ProductFilter(search="screw", vendors=["Spax"]).apply(products)
    """

    search: str = ""
    min_price: float = DEFAULT_MIN_PRICE
    max_price: float = DEFAULT_MAX_PRICE
    vendors: list[str] = field(default_factory=list)

    @property
    def has_price_filter(self) -> bool:
        return self.min_price > DEFAULT_MIN_PRICE or self.max_price < DEFAULT_MAX_PRICE

    def matches(self, product: dict[str, Any]) -> bool:
        q = (self.search or "").strip().lower()
        if q:
            haystack = " ".join(
                [
                    product.get("title") or "",
                    product.get("vendor") or "",
                    product.get("productType") or "",
                ]
            ).lower()
            if q not in haystack:
                return False

        if self.has_price_filter:
            price = first_variant_price(product)
            if not self.min_price <= price <= self.max_price:
                return False

        if self.vendors and product.get("vendor") not in self.vendors:
            return False

        return True

    def apply(self, products: list[dict[str, Any]]) -> list[dict[str, Any]]:
        return [p for p in products if self.matches(p)]


def all_vendors(products: list[dict[str, Any]]) -> list[str]:
    """Sorted unique non-empty vendors."""
    return sorted({p.get("vendor") for p in products if p.get("vendor")})


def related_products(
    product: dict[str, Any] | None,
    products: list[dict[str, Any]],
    limit: int = 4,
) -> list[dict[str, Any]]:
    """Other products sharing the vendor or product type."""
    if not product:
        return []
    related = [
        p
        for p in products
        if p.get("id") != product.get("id")
        and (
            p.get("vendor") == product.get("vendor")
            or p.get("productType") == product.get("productType")
        )
    ]
    return related[:limit]
