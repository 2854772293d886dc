"""Flatten Storefront API responses into the shapes the client works with.

Storefront responses are deeply nested connection objects; the catalog and
cart code only ever need a handful of fields, so they are pulled up here:
- Money amounts become floats (Storefront returns decimal strings)
- Connection edges become plain lists
- Missing optional fields get empty-string defaults
"""

from typing import Any

DEFAULT_CURRENCY = "GBP"


def _to_float(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _edges(connection: dict[str, Any] | None) -> list[dict[str, Any]]:
    return [edge.get("node") or {} for edge in (connection or {}).get("edges") or []]


def normalize_collection(node: dict[str, Any]) -> dict[str, Any]:
    """Flatten a collection node; the image alt text falls back to the title."""
    image = node.get("image") or {}
    return {
        "id": node.get("id"),
        "title": node.get("title") or "",
        "handle": node.get("handle") or "",
        "description": node.get("description") or "",
        "descriptionHtml": node.get("descriptionHtml") or "",
        "imageUrl": image.get("url") or "",
        "imageAlt": image.get("altText") or node.get("title") or "",
    }


def normalize_variant(node: dict[str, Any]) -> dict[str, Any]:
    price = node.get("price") or {}
    compare_at = node.get("compareAtPrice")
    return {
        "id": node.get("id"),
        "title": node.get("title") or "",
        "availableForSale": bool(node.get("availableForSale")),
        "quantityAvailable": node.get("quantityAvailable"),
        "price": _to_float(price.get("amount")),
        "currencyCode": price.get("currencyCode") or DEFAULT_CURRENCY,
        "compareAtPrice": _to_float(compare_at.get("amount")) if compare_at else None,
        "sku": node.get("sku") or "",
    }


def normalize_product(node: dict[str, Any]) -> dict[str, Any]:
    """Flatten a product node.

    Images are the featured image followed by the gallery images; entries
    without a URL are dropped.
    """
    images: list[dict[str, Any]] = []
    featured = node.get("featuredImage")
    if featured:
        images.append({"url": featured.get("url"), "altText": featured.get("altText")})
    for image in _edges(node.get("images")):
        images.append({"url": image.get("url"), "altText": image.get("altText")})

    return {
        "id": node.get("id"),
        "title": node.get("title") or "",
        "handle": node.get("handle") or "",
        "vendor": node.get("vendor") or "",
        "productType": node.get("productType") or "",
        "description": node.get("description") or "",
        "descriptionHtml": node.get("descriptionHtml") or "",
        "images": [image for image in images if image.get("url")],
        "variants": [normalize_variant(v) for v in _edges(node.get("variants"))],
    }


def normalize_cart_line(node: dict[str, Any]) -> dict[str, Any]:
    merchandise = node.get("merchandise") or {}
    product = merchandise.get("product") or {}
    image = product.get("featuredImage") or {}
    return {
        "id": node.get("id"),
        "quantity": node.get("quantity") or 0,
        "variantId": merchandise.get("id"),
        "variantTitle": merchandise.get("title"),
        "sku": merchandise.get("sku") or "",
        "price": _to_float((merchandise.get("price") or {}).get("amount")),
        "productTitle": product.get("title") or "",
        "productHandle": product.get("handle") or "",
        "imageUrl": image.get("url") or "",
        "imageAlt": image.get("altText") or "",
    }


def normalize_cart(cart: dict[str, Any]) -> dict[str, Any]:
    cost = cart.get("cost") or {}
    return {
        "id": cart.get("id"),
        "checkoutUrl": cart.get("checkoutUrl"),
        "totalQuantity": cart.get("totalQuantity") or 0,
        "cost": {
            "subtotal": _to_float((cost.get("subtotalAmount") or {}).get("amount")),
            "total": _to_float((cost.get("totalAmount") or {}).get("amount")),
            "tax": _to_float((cost.get("totalTaxAmount") or {}).get("amount")),
            "currency": (cost.get("totalAmount") or {}).get("currencyCode")
            or DEFAULT_CURRENCY,
        },
        "lines": [normalize_cart_line(line) for line in _edges(cart.get("lines"))],
    }
