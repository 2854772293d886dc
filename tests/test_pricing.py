"""Tests for VAT display, money formatting and bulk pricing."""

import pytest

from src.pricing import (
    BulkPricing,
    VatMode,
    cart_totals,
    clamp,
    display_compare_at,
    display_price,
    format_datetime,
    format_gbp,
    format_money_v2,
)


class TestVatMode:
    def test_parse_known_values(self):
        assert VatMode.parse("inc") == VatMode.INC
        assert VatMode.parse("ex") == VatMode.EX

    def test_parse_unknown_values(self):
        assert VatMode.parse("both") is None
        assert VatMode.parse(None) is None


class TestFormatGbp:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (0, "£0.00"),
            (12, "£12.00"),
            (1234.5, "£1,234.50"),
            ("9.999", "£10.00"),
            (-5, "-£5.00"),
        ],
    )
    def test_formats(self, value, expected):
        assert format_gbp(value) == expected

    @pytest.mark.parametrize("value", [None, "abc", float("nan"), True])
    def test_invalid_shows_dash(self, value):
        assert format_gbp(value) == "£—"


class TestFormatMoneyV2:
    def test_gbp(self):
        assert format_money_v2({"amount": "49.5", "currencyCode": "GBP"}) == "£49.50"

    def test_eur(self):
        assert format_money_v2({"amount": "10", "currencyCode": "EUR"}) == "€10.00"

    def test_unknown_currency_uses_code(self):
        assert format_money_v2({"amount": "3", "currencyCode": "CHF"}) == "CHF 3.00"

    def test_missing(self):
        assert format_money_v2(None) == "—"
        assert format_money_v2({"currencyCode": "GBP"}) == "—"


class TestFormatDatetime:
    def test_iso_with_z(self):
        assert format_datetime("2026-10-17T14:05:00Z") == "17 Oct 2026, 14:05"

    def test_invalid(self):
        assert format_datetime("not a date") == ""
        assert format_datetime(None) == ""


class TestDisplayPrice:
    def test_inc_vat_adds_rate(self):
        assert display_price(10, VatMode.INC) == "£12.00"

    def test_ex_vat_is_raw(self):
        assert display_price(10, VatMode.EX) == "£10.00"

    def test_custom_rate(self):
        assert display_price(100, VatMode.INC, vat_rate=0.135) == "£113.50"

    def test_compare_at_missing_is_blank(self):
        assert display_compare_at(None, VatMode.INC) == ""
        assert display_compare_at(0, VatMode.INC) == ""
        assert display_compare_at(20, VatMode.INC) == "£24.00"


class TestCartTotals:
    @pytest.fixture
    def cart(self):
        return {
            "lines": [
                {"price": 10.0, "quantity": 2},
                {"price": 5.0, "quantity": 1},
            ]
        }

    def test_inc_vat(self, cart):
        totals = cart_totals(cart, VatMode.INC)
        assert totals["subtotal"] == pytest.approx(30.0)
        assert totals["tax"] == pytest.approx(5.0)
        assert totals["total"] == pytest.approx(30.0)

    def test_ex_vat(self, cart):
        assert cart_totals(cart, VatMode.EX) == {"subtotal": 25.0, "tax": 0.0, "total": 25.0}

    def test_no_cart(self):
        assert cart_totals(None, VatMode.INC) == {"subtotal": 0.0, "tax": 0.0, "total": 0.0}


class TestBulkPricing:
    @pytest.mark.parametrize(
        "quantity,percent",
        [(1, 0), (9, 0), (10, 5), (24, 5), (25, 10), (49, 10), (50, 15), (99, 15), (100, 20), (500, 20)],
    )
    def test_discount_percent(self, quantity, percent):
        assert BulkPricing.discount_percent(quantity) == percent

    def test_price(self):
        assert BulkPricing.price(10.0, 100) == pytest.approx(8.0)
        assert BulkPricing.price(10.0, 1) == pytest.approx(10.0)

    def test_next_tier(self):
        assert BulkPricing.next_tier(0) == (10, 5)
        assert BulkPricing.next_tier(30) == (50, 15)
        assert BulkPricing.next_tier(100) is None


def test_clamp():
    assert clamp(0, 1, 999) == 1
    assert clamp(5000, 1, 999) == 999
    assert clamp(7, 1, 999) == 7
