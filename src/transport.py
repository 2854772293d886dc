"""Plain HTTP helpers shared by the OAuth flow and the proxy calls.

Discovery documents, the OAuth token endpoint and the proxy service are not
GraphQL endpoints, so they go through this small wrapper around a
``requests.Session`` instead of the GraphQL clients.
"""

import json
from typing import Any
from urllib.parse import urlencode

import requests

from src.logging_config import get_logger

logger = get_logger(__name__)


class HttpTransportError(Exception):
    """Raised when a non-GraphQL HTTP call fails."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


def safe_json_parse(text: str | bytes | None) -> Any:
    """Parse JSON, returning None instead of raising on invalid input."""
    if not text:
        return None
    try:
        return json.loads(text)
    except (TypeError, ValueError):
        return None


def oauth_error_message(payload: Any, text: str, status_code: int) -> str:
    """Pick the most useful message out of an OAuth error response."""
    if isinstance(payload, dict):
        message = payload.get("error_description") or payload.get("error")
        if message:
            return str(message)
    return text or f"HTTP {status_code}"


class HttpTransport:
    """Synchronous HTTP transport used outside the GraphQL clients."""

    def __init__(self, timeout: float = 30.0, session: requests.Session | None = None):
        self.timeout = timeout
        self._session = session or requests.Session()

    def get_text(self, url: str) -> str:
        """GET a URL and return the body as text, bypassing caches."""
        try:
            response = self._session.get(
                url,
                headers={"Accept": "application/json", "Cache-Control": "no-store"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise HttpTransportError(f"Request failed: {e}") from e
        return response.text

    def fetch_json(self, url: str) -> dict[str, Any]:
        """GET a discovery document."""
        payload = safe_json_parse(self.get_text(url))
        if not isinstance(payload, dict):
            raise HttpTransportError("Invalid JSON from discovery endpoint")
        return payload

    def post_form(self, url: str, form: dict[str, Any]) -> dict[str, Any]:
        """POST an x-www-form-urlencoded body and return the JSON response.

        Shopify's token endpoint reports failures either with a 4xx status or
        with a 200 carrying an ``error`` member; both raise.

        Raises:
            HttpTransportError: On transport failure or an error response.
        """
        body = urlencode({k: v for k, v in form.items() if v is not None})
        try:
            response = self._session.post(
                url,
                data=body,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise HttpTransportError(f"Request failed: {e}") from e

        text = response.text
        payload = safe_json_parse(text)

        if response.status_code >= 400:
            raise HttpTransportError(
                oauth_error_message(payload, text, response.status_code),
                status_code=response.status_code,
                body=payload,
            )
        if isinstance(payload, dict) and payload.get("error"):
            raise HttpTransportError(
                oauth_error_message(payload, text, response.status_code),
                status_code=response.status_code,
                body=payload,
            )
        return payload if isinstance(payload, dict) else {}

    def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> tuple[int, Any, str]:
        """POST a JSON body.

        Returns:
            Tuple of (status_code, parsed JSON or None, raw text).
        """
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})
        try:
            response = self._session.post(
                url,
                data=json.dumps(payload),
                headers=request_headers,
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as e:
            raise HttpTransportError(f"Request failed: {e}") from e

        logger.debug(
            "POST completed",
            extra={"url": url, "status_code": response.status_code},
        )
        text = response.text
        return response.status_code, safe_json_parse(text), text

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "HttpTransport":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
