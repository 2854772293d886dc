"""Tests for the plain HTTP transport.

Tests cover:
- Discovery document fetching
- OAuth token endpoint form posts and error messages
- JSON posts to the proxy service
"""

import json
from unittest.mock import MagicMock
from urllib.parse import parse_qs

import pytest
import requests

from src.transport import (
    HttpTransport,
    HttpTransportError,
    oauth_error_message,
    safe_json_parse,
)

TOKEN_URL = "https://shopify.com/authentication/1/oauth/token"


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def transport(session):
    return HttpTransport(timeout=5, session=session)


class TestSafeJsonParse:
    def test_valid(self):
        assert safe_json_parse('{"a": 1}') == {"a": 1}

    @pytest.mark.parametrize("text", [None, "", "<html>", "{nope"])
    def test_invalid_returns_none(self, text):
        assert safe_json_parse(text) is None


class TestOauthErrorMessage:
    def test_description_wins(self):
        payload = {"error": "invalid_grant", "error_description": "Code expired"}
        assert oauth_error_message(payload, "raw", 400) == "Code expired"

    def test_error_code(self):
        assert oauth_error_message({"error": "invalid_grant"}, "raw", 400) == "invalid_grant"

    def test_body_text(self):
        assert oauth_error_message(None, "Bad Request", 400) == "Bad Request"

    def test_status_fallback(self):
        assert oauth_error_message(None, "", 502) == "HTTP 502"


class TestFetchJson:
    def test_returns_document(self, transport, session, response):
        session.get.return_value = response(200, {"authorization_endpoint": "https://x/auth"})

        assert transport.fetch_json("https://acefixings.com/.well-known/openid-configuration") == {
            "authorization_endpoint": "https://x/auth"
        }
        headers = session.get.call_args.kwargs["headers"]
        assert headers["Cache-Control"] == "no-store"

    def test_invalid_json(self, transport, session, response):
        session.get.return_value = response(200, text="<html>not found</html>")
        with pytest.raises(HttpTransportError, match="Invalid JSON from discovery endpoint"):
            transport.fetch_json("https://acefixings.com/.well-known/openid-configuration")

    def test_network_failure(self, transport, session):
        session.get.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(HttpTransportError, match="Request failed"):
            transport.get_text("https://acefixings.com")


class TestPostForm:
    def test_drops_none_fields(self, transport, session, response):
        session.post.return_value = response(200, {"access_token": "tok"})

        result = transport.post_form(
            TOKEN_URL,
            {"grant_type": "authorization_code", "code": "abc", "client_secret": None},
        )

        assert result == {"access_token": "tok"}
        call = session.post.call_args
        assert parse_qs(call.kwargs["data"]) == {
            "grant_type": ["authorization_code"],
            "code": ["abc"],
        }
        assert call.kwargs["headers"]["Content-Type"] == "application/x-www-form-urlencoded"

    def test_error_status_raises(self, transport, session, response):
        session.post.return_value = response(
            400, {"error": "invalid_grant", "error_description": "Code expired"}
        )
        with pytest.raises(HttpTransportError, match="Code expired") as exc_info:
            transport.post_form(TOKEN_URL, {"code": "abc"})
        assert exc_info.value.status_code == 400

    def test_error_in_ok_body_raises(self, transport, session, response):
        session.post.return_value = response(200, {"error": "invalid_client"})
        with pytest.raises(HttpTransportError, match="invalid_client"):
            transport.post_form(TOKEN_URL, {"code": "abc"})

    def test_error_status_without_json(self, transport, session, response):
        session.post.return_value = response(500, text="")
        with pytest.raises(HttpTransportError, match="HTTP 500"):
            transport.post_form(TOKEN_URL, {"code": "abc"})

    def test_non_json_success_is_empty(self, transport, session, response):
        session.post.return_value = response(200, text="ok")
        assert transport.post_form(TOKEN_URL, {"code": "abc"}) == {}


class TestPostJson:
    def test_returns_status_parsed_and_text(self, transport, session, response):
        session.post.return_value = response(404, {"error": "Customer not found"})

        status, parsed, text = transport.post_json(
            "https://proxy/api/submitVatVerification", {"vatNumber": "IE1"}
        )

        assert status == 404
        assert parsed == {"error": "Customer not found"}
        assert json.loads(text) == parsed
        call = session.post.call_args
        assert json.loads(call.kwargs["data"]) == {"vatNumber": "IE1"}
        assert call.kwargs["headers"]["Content-Type"] == "application/json"

    def test_non_json_body(self, transport, session, response):
        session.post.return_value = response(502, text="<html>Bad gateway</html>")
        assert transport.post_json("https://proxy/api/x", {}) == (502, None, "<html>Bad gateway</html>")

    def test_network_failure(self, transport, session):
        session.post.side_effect = requests.exceptions.Timeout("slow")
        with pytest.raises(HttpTransportError, match="Request failed"):
            transport.post_json("https://proxy/api/x", {})


def test_context_manager_closes_session(session):
    with HttpTransport(session=session):
        pass
    session.close.assert_called_once()
