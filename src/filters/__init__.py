"""Catalog filtering and customer tag matching."""

from .products import ProductFilter, all_vendors, filter_collections, related_products
from .tags import TagMatcher

__all__ = [
    "ProductFilter",
    "TagMatcher",
    "all_vendors",
    "filter_collections",
    "related_products",
]
