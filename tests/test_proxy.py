"""Tests for the proxy service endpoints.

Tests cover:
- CORS preflight and method handling
- Customer registration (new and existing customers)
- VAT verification requests
- Storefront relay for the web build
"""

import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from src.proxy import create_app
from src.proxy.app import get_admin_client, get_relay_session
from src.shopify import ShopifyAPIError

CUSTOMER_ID = "gid://shopify/Customer/77"


@pytest.fixture
def admin():
    admin = MagicMock()
    admin.find_customer_by_email.return_value = None
    admin.create_customer.return_value = {"customer": {"id": CUSTOMER_ID}, "userErrors": []}
    admin.set_metafields.return_value = {"userErrors": []}
    admin.add_tags.return_value = {"userErrors": []}
    admin.send_account_invite.return_value = {"userErrors": []}
    admin.find_segment_by_name.return_value = {"id": "gid://shopify/Segment/5", "name": "No Vat Customers"}
    admin.add_customer_to_segment.return_value = {"userErrors": []}
    return admin


@pytest.fixture
def relay_session():
    return MagicMock()


@pytest.fixture
def client(settings, admin, relay_session):
    app = create_app(settings)
    app.dependency_overrides[get_admin_client] = lambda: admin
    app.dependency_overrides[get_relay_session] = lambda: relay_session
    return TestClient(app)


class TestMethods:
    @pytest.mark.parametrize("path", ["/api/registerCustomer", "/api/submitVatVerification"])
    def test_preflight(self, client, path):
        response = client.options(path)
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"

    @pytest.mark.parametrize("path", ["/api/registerCustomer", "/api/submitVatVerification"])
    def test_get_not_allowed(self, client, path):
        response = client.get(path)
        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}

    def test_relay_preflight_and_get(self, client):
        assert client.options("/.netlify/functions/shopify").json() == {"ok": True}
        response = client.get("/.netlify/functions/shopify")
        assert response.status_code == 405
        assert response.json() == {"ok": False, "error": "Use POST"}


class TestRegisterCustomer:
    BODY = {
        "email": "new@trade.ie",
        "firstName": "Sam",
        "lastName": "Byrne",
        "phone": "+353861234567",
        "address": {"address1": "1 Quay St", "city": "Galway", "zip": "H91"},
        "vatNumber": "IE9999999X",
    }

    def test_creates_new_customer(self, client, admin):
        response = client.post("/api/registerCustomer", json=self.BODY)

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "customerId": CUSTOMER_ID,
            "isNewCustomer": True,
            "message": "Account created! Check your email for login instructions.",
        }
        customer_input = admin.create_customer.call_args.args[0]
        assert customer_input["tags"] == ["No Vat Customers"]
        assert customer_input["addresses"][0]["country"] == "Ireland"
        assert customer_input["addresses"][0]["city"] == "Galway"
        admin.send_account_invite.assert_called_once_with(CUSTOMER_ID)
        admin.add_tags.assert_not_called()

    def test_vat_metafields_carry_owner(self, client, admin):
        client.post("/api/registerCustomer", json=self.BODY)

        metafields = admin.set_metafields.call_args.args[0]
        assert {(m["namespace"], m["key"], m["value"]) for m in metafields} == {
            ("custom", "tax_vat_number", "IE9999999X"),
            ("custom", "business_name", "Sam Byrne"),
        }
        assert all(m["ownerId"] == CUSTOMER_ID for m in metafields)

    def test_existing_customer_is_tagged(self, client, admin):
        admin.find_customer_by_email.return_value = {"id": CUSTOMER_ID}

        response = client.post("/api/registerCustomer", json=self.BODY)

        assert response.json()["isNewCustomer"] is False
        assert response.json()["message"] == "Account updated successfully."
        admin.create_customer.assert_not_called()
        admin.add_tags.assert_called_once_with(CUSTOMER_ID, ["No Vat Customers"])
        admin.send_account_invite.assert_not_called()

    def test_without_vat_number(self, client, admin):
        body = {"email": "plain@trade.ie"}
        response = client.post("/api/registerCustomer", json=body)

        assert response.status_code == 200
        assert admin.create_customer.call_args.args[0]["tags"] == []
        assert "addresses" not in admin.create_customer.call_args.args[0]
        admin.set_metafields.assert_not_called()

    def test_invite_failure_still_succeeds(self, client, admin):
        admin.send_account_invite.side_effect = ShopifyAPIError("Invite failed")
        response = client.post("/api/registerCustomer", json=self.BODY)
        assert response.status_code == 200

    def test_missing_email(self, client):
        response = client.post("/api/registerCustomer", json={"firstName": "Sam"})
        assert response.status_code == 400
        assert response.json() == {"error": "Email is required"}

    def test_user_errors(self, client, admin):
        admin.create_customer.return_value = {
            "customer": None,
            "userErrors": [{"message": "Phone is invalid"}, {"message": "Email is invalid"}],
        }
        response = client.post("/api/registerCustomer", json=self.BODY)
        assert response.status_code == 400
        assert response.json() == {"error": "Phone is invalid, Email is invalid"}

    def test_missing_customer_id(self, client, admin):
        admin.create_customer.return_value = {"customer": None, "userErrors": []}
        response = client.post("/api/registerCustomer", json=self.BODY)
        assert response.status_code == 500
        assert response.json() == {"error": "Failed to create/find customer"}

    def test_missing_admin_token(self, client, settings):
        settings.shopify_admin_api_token = None
        response = client.post("/api/registerCustomer", json=self.BODY)
        assert response.status_code == 500
        assert response.json() == {"error": "Server configuration error"}

    def test_invalid_json(self, client):
        response = client.post(
            "/api/registerCustomer",
            content=b"{nope",
            headers={"Content-Type": "application/json"},
        )
        assert response.status_code == 400

    def test_shopify_failure_is_500(self, client, admin):
        admin.find_customer_by_email.side_effect = ShopifyAPIError("Admin HTTP 503")
        response = client.post("/api/registerCustomer", json=self.BODY)
        assert response.status_code == 500
        assert response.json() == {"error": "Admin HTTP 503"}

    def test_unexpected_failure_is_json_500(self, client, admin):
        admin.find_customer_by_email.side_effect = RuntimeError("boom")
        quiet = TestClient(client.app, raise_server_exceptions=False)

        response = quiet.post("/api/registerCustomer", json=self.BODY)

        assert response.status_code == 500
        assert response.json() == {"error": "boom"}
        assert response.headers["access-control-allow-origin"] == "*"


class TestSubmitVatVerification:
    BODY = {
        "customerEmail": "trade@acefixings.com",
        "businessName": "Ace Ltd",
        "country": "Ireland",
        "vatNumber": "IE1234567T",
    }

    def test_success(self, client, admin):
        admin.find_customer_by_email.return_value = {"id": CUSTOMER_ID}

        response = client.post("/api/submitVatVerification", json=self.BODY)

        assert response.status_code == 200
        assert response.json()["success"] is True
        metafields = admin.set_metafields.call_args.args[0]
        assert {m["key"]: m["value"] for m in metafields} == {
            "tax_vat_number": "IE1234567T",
            "business_name": "Ace Ltd",
            "business_country": "Ireland",
        }
        assert {m["namespace"] for m in metafields} == {"acefixings"}
        assert all(m["ownerId"] == CUSTOMER_ID for m in metafields)
        admin.find_segment_by_name.assert_called_once_with("no vat customers")
        admin.add_customer_to_segment.assert_called_once_with(CUSTOMER_ID, "gid://shopify/Segment/5")

    @pytest.mark.parametrize("missing", ["customerEmail", "businessName", "country", "vatNumber"])
    def test_missing_fields(self, client, missing):
        body = {k: v for k, v in self.BODY.items() if k != missing}
        response = client.post("/api/submitVatVerification", json=body)
        assert response.status_code == 400
        assert response.json() == {"error": "Missing required fields"}

    def test_customer_not_found(self, client):
        response = client.post("/api/submitVatVerification", json=self.BODY)
        assert response.status_code == 404
        assert response.json() == {"error": "Customer with email trade@acefixings.com not found"}

    def test_metafield_errors(self, client, admin):
        admin.find_customer_by_email.return_value = {"id": CUSTOMER_ID}
        admin.set_metafields.return_value = {"userErrors": [{"message": "Value too long"}]}

        response = client.post("/api/submitVatVerification", json=self.BODY)

        assert response.status_code == 500
        assert response.json() == {"error": "Metafield update failed: Value too long"}
        admin.add_customer_to_segment.assert_not_called()

    def test_segment_missing_is_advisory(self, client, admin):
        admin.find_customer_by_email.return_value = {"id": CUSTOMER_ID}
        admin.find_segment_by_name.return_value = None

        response = client.post("/api/submitVatVerification", json=self.BODY)

        assert response.status_code == 200
        assert "segment exists" in response.json()["message"]
        admin.add_customer_to_segment.assert_not_called()

    def test_segment_add_errors(self, client, admin):
        admin.find_customer_by_email.return_value = {"id": CUSTOMER_ID}
        admin.add_customer_to_segment.return_value = {"userErrors": [{"message": "Segment is static"}]}
        response = client.post("/api/submitVatVerification", json=self.BODY)
        assert response.status_code == 500
        assert response.json() == {"error": "Segment add failed: Segment is static"}

    def test_missing_admin_token(self, client, settings):
        settings.shopify_admin_api_token = ""
        response = client.post("/api/submitVatVerification", json=self.BODY)
        assert response.status_code == 500
        assert response.json() == {"error": "Missing admin API token"}


class TestStorefrontRelay:
    PATH = "/.netlify/functions/shopify"

    def test_forwards_with_token(self, client, relay_session, settings, response):
        relay_session.post.return_value = response(200, {"data": {"shop": {"name": "Ace"}}})

        result = client.post(self.PATH, json={"query": "{ shop { name } }", "variables": {"a": 1}})

        assert result.status_code == 200
        assert result.json() == {"data": {"shop": {"name": "Ace"}}}
        call = relay_session.post.call_args
        assert call.args[0] == settings.storefront_graphql_url
        assert json.loads(call.kwargs["data"]) == {"query": "{ shop { name } }", "variables": {"a": 1}}
        assert call.kwargs["headers"]["X-Shopify-Storefront-Access-Token"] == "sf-test-token"

    def test_missing_query(self, client, relay_session):
        result = client.post(self.PATH, json={"variables": {}})
        assert result.status_code == 400
        assert result.json() == {"ok": False, "error": "Missing query"}
        relay_session.post.assert_not_called()

    def test_invalid_json(self, client):
        result = client.post(self.PATH, content=b"{nope", headers={"Content-Type": "application/json"})
        assert result.status_code == 400
        assert result.json()["error"] == "Invalid JSON body"
        assert "details" in result.json()

    def test_missing_token(self, client, settings):
        settings.shopify_storefront_token = None
        result = client.post(self.PATH, json={"query": "{ shop { name } }"})
        assert result.status_code == 500
        assert result.json() == {"ok": False, "error": "Missing SHOPIFY_STOREFRONT_TOKEN env var"}

    def test_upstream_error_passes_status(self, client, relay_session, response):
        relay_session.post.return_value = response(401, {"errors": "Unauthorized"})
        result = client.post(self.PATH, json={"query": "{ shop { name } }"})
        assert result.status_code == 401
        assert result.json() == {
            "ok": False,
            "error": "Shopify HTTP 401",
            "details": {"errors": "Unauthorized"},
        }

    def test_non_json_upstream(self, client, relay_session, response):
        relay_session.post.return_value = response(200, text="<html>maintenance</html>")
        result = client.post(self.PATH, json={"query": "{ shop { name } }"})
        assert result.json() == {"raw": "<html>maintenance</html>"}

    def test_network_failure(self, client, relay_session):
        import requests

        relay_session.post.side_effect = requests.exceptions.ConnectionError("refused")
        result = client.post(self.PATH, json={"query": "{ shop { name } }"})
        assert result.status_code == 500
        assert result.json()["ok"] is False
