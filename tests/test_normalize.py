"""Tests for flattening Storefront API responses."""

import pytest

from src.shopify.normalize import (
    normalize_cart,
    normalize_collection,
    normalize_product,
    normalize_variant,
)


@pytest.fixture
def product_node():
    return {
        "id": "gid://shopify/Product/1",
        "title": "Wood Screws 4x40",
        "handle": "wood-screws-4x40",
        "vendor": "Spax",
        "productType": "Screws",
        "description": "Box of 200",
        "featuredImage": {"url": "https://cdn/featured.jpg", "altText": "Box"},
        "images": {
            "edges": [
                {"node": {"url": "https://cdn/1.jpg", "altText": None}},
                {"node": {"url": None, "altText": "broken"}},
            ]
        },
        "variants": {
            "edges": [
                {
                    "node": {
                        "id": "gid://shopify/ProductVariant/11",
                        "title": "Box of 200",
                        "availableForSale": True,
                        "quantityAvailable": 7,
                        "price": {"amount": "12.50", "currencyCode": "GBP"},
                        "compareAtPrice": {"amount": "15.00", "currencyCode": "GBP"},
                        "sku": "SPX-440",
                    }
                }
            ]
        },
    }


class TestNormalizeProduct:
    def test_flattens_fields(self, product_node):
        product = normalize_product(product_node)

        assert product["handle"] == "wood-screws-4x40"
        assert product["vendor"] == "Spax"
        assert product["descriptionHtml"] == ""

    def test_images_featured_first_and_url_less_dropped(self, product_node):
        images = normalize_product(product_node)["images"]
        assert [i["url"] for i in images] == ["https://cdn/featured.jpg", "https://cdn/1.jpg"]

    def test_variant_prices_are_floats(self, product_node):
        variant = normalize_product(product_node)["variants"][0]
        assert variant["price"] == 12.5
        assert variant["compareAtPrice"] == 15.0
        assert variant["currencyCode"] == "GBP"
        assert variant["quantityAvailable"] == 7

    def test_empty_node(self):
        product = normalize_product({})
        assert product["images"] == []
        assert product["variants"] == []
        assert product["title"] == ""


class TestNormalizeVariant:
    def test_missing_compare_at_is_none(self):
        variant = normalize_variant({"id": "v", "price": {"amount": "1.00"}})
        assert variant["compareAtPrice"] is None
        assert variant["availableForSale"] is False
        assert variant["currencyCode"] == "GBP"

    def test_bad_amount_is_zero(self):
        assert normalize_variant({"price": {"amount": "n/a"}})["price"] == 0.0


class TestNormalizeCollection:
    def test_alt_text_falls_back_to_title(self):
        collection = normalize_collection(
            {"id": "c1", "title": "Anchors", "handle": "anchors", "image": {"url": "u"}}
        )
        assert collection["imageUrl"] == "u"
        assert collection["imageAlt"] == "Anchors"

    def test_without_image(self):
        collection = normalize_collection({"title": "Nails", "handle": "nails"})
        assert collection["imageUrl"] == ""


class TestNormalizeCart:
    def test_lines_and_cost(self):
        cart = normalize_cart(
            {
                "id": "gid://shopify/Cart/1",
                "checkoutUrl": "https://acefixings.com/checkout/1",
                "totalQuantity": 3,
                "cost": {
                    "subtotalAmount": {"amount": "30.00", "currencyCode": "GBP"},
                    "totalAmount": {"amount": "36.00", "currencyCode": "GBP"},
                    "totalTaxAmount": {"amount": "6.00", "currencyCode": "GBP"},
                },
                "lines": {
                    "edges": [
                        {
                            "node": {
                                "id": "line-1",
                                "quantity": 3,
                                "merchandise": {
                                    "id": "gid://shopify/ProductVariant/11",
                                    "title": "Box of 200",
                                    "sku": "SPX-440",
                                    "price": {"amount": "10.00"},
                                    "product": {"title": "Wood Screws", "handle": "wood-screws"},
                                },
                            }
                        }
                    ]
                },
            }
        )

        assert cart["cost"] == {"subtotal": 30.0, "total": 36.0, "tax": 6.0, "currency": "GBP"}
        line = cart["lines"][0]
        assert line["variantId"] == "gid://shopify/ProductVariant/11"
        assert line["price"] == 10.0
        assert line["productTitle"] == "Wood Screws"
        assert line["imageUrl"] == ""

    def test_empty_cart(self):
        cart = normalize_cart({"id": "c"})
        assert cart["lines"] == []
        assert cart["totalQuantity"] == 0
        assert cart["cost"]["currency"] == "GBP"
