"""Shopify API integration module."""

from .client import (
    AdminClient,
    CustomerAccountClient,
    GraphQLClient,
    ShopifyAPIError,
    ShopifyClientError,
    ShopifyThrottledError,
    ShopifyUserError,
    StorefrontClient,
    raise_user_errors,
)
from .normalize import normalize_cart, normalize_collection, normalize_product

__all__ = [
    "AdminClient",
    "CustomerAccountClient",
    "GraphQLClient",
    "ShopifyAPIError",
    "ShopifyClientError",
    "ShopifyThrottledError",
    "ShopifyUserError",
    "StorefrontClient",
    "raise_user_errors",
    "normalize_cart",
    "normalize_collection",
    "normalize_product",
]
