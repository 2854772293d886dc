"""Shared fixtures."""

import json
from unittest.mock import MagicMock

import pytest

from src.config import Settings
from src.storage import Preferences


@pytest.fixture
def settings(tmp_path):
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        shop_domain="acefixings.com",
        shopify_storefront_token="sf-test-token",
        shopify_admin_api_token="admin-test-token",
        state_dir=tmp_path,
    )


@pytest.fixture
def prefs(tmp_path):
    return Preferences(tmp_path)


def make_response(status_code=200, payload=None, text=None):
    """Build a mock ``requests.Response``."""
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    if text is None:
        text = json.dumps(payload) if payload is not None else ""
    response.text = text
    if payload is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = payload
    return response


@pytest.fixture
def response():
    return make_response
