"""Shopify GraphQL API clients with throttling and backoff.

One base client handles the transport concerns shared by every Shopify
GraphQL surface:
- Monitors rate limit (throttling) via extensions.cost
- Implements proactive throttling when points are low
- Uses exponential backoff on 429 errors, and on timeouts for queries only
- Turns HTTP and GraphQL failures into ShopifyAPIError

Subclasses only decide the endpoint and the authentication headers:
- StorefrontClient: public Storefront API (catalog, cart)
- AdminClient: Admin API (customers, metafields, tags, segments)
- CustomerAccountClient: Customer Account API (profile, orders)
"""

import json
import random
import time
from dataclasses import dataclass
from typing import Any

import requests

from src.config import Platform, Settings, get_settings
from src.logging_config import get_logger

from .queries import (
    ADD_CUSTOMER_TO_SEGMENT_MUTATION,
    CREATE_CUSTOMER_MUTATION,
    SEARCH_CUSTOMERS_QUERY,
    SEGMENTS_QUERY,
    SEND_INVITE_MUTATION,
    SET_METAFIELDS_MUTATION,
    TAGS_ADD_MUTATION,
)

logger = get_logger(__name__)


def is_mutation(document: str) -> bool:
    """Whether a GraphQL document is a mutation rather than a read."""
    return document.lstrip().startswith("mutation")


@dataclass
class ThrottleStatus:
    """Tracks the current state of Shopify's rate limiting.

    Shopify GraphQL API uses a cost-based throttling system where each query
    consumes points from a bucket that refills over time.

    Attributes:
        requested_cost: The cost that was requested for the query.
        actual_cost: The actual cost charged for the query (may differ).
        currently_available: Points currently available in the bucket.
        restore_rate: Points restored per second.
        maximum_available: Maximum bucket capacity.
    """

    requested_cost: float
    actual_cost: float
    currently_available: float
    restore_rate: float
    maximum_available: float

    @classmethod
    def from_extensions(cls, extensions: dict[str, Any]) -> "ThrottleStatus | None":
        """Parse throttle status from GraphQL response extensions.

        Returns:
            ThrottleStatus, or None when the response carries no cost data
            (the Storefront API does not report it).
        """
        cost = extensions.get("cost")
        if not cost:
            return None
        throttle = cost.get("throttleStatus", {})

        return cls(
            requested_cost=cost.get("requestedQueryCost", 0),
            actual_cost=cost.get("actualQueryCost", 0),
            currently_available=throttle.get("currentlyAvailable", 1000),
            restore_rate=throttle.get("restoreRate", 50),
            maximum_available=throttle.get("maximumAvailable", 1000),
        )

    def wait_time_seconds(self, next_query_cost: float) -> float:
        """Calculate how long to wait for sufficient points to restore."""
        if self.currently_available >= next_query_cost or self.restore_rate <= 0:
            return 0

        points_needed = next_query_cost - self.currently_available
        # Add a small buffer (10%) to avoid edge cases
        return (points_needed / self.restore_rate) * 1.1


class ShopifyClientError(Exception):
    """Base exception for Shopify client errors."""

    pass


class ShopifyThrottledError(ShopifyClientError):
    """Raised when the API is throttled and max retries exceeded."""

    pass


class ShopifyAPIError(ShopifyClientError):
    """Raised when a Shopify API returns an HTTP or GraphQL error."""

    def __init__(
        self,
        message: str,
        errors: list[dict[str, Any]] | None = None,
        status_code: int | None = None,
    ):
        super().__init__(message)
        self.errors = errors or []
        self.status_code = status_code


class ShopifyUserError(ShopifyClientError):
    """Raised when a mutation reports userErrors."""

    def __init__(self, message: str, user_errors: list[dict[str, Any]]):
        super().__init__(message)
        self.user_errors = user_errors


def raise_user_errors(payload: dict[str, Any] | None) -> None:
    """Raise ShopifyUserError with the first userError of a mutation payload."""
    user_errors = (payload or {}).get("userErrors") or []
    if user_errors:
        raise ShopifyUserError(user_errors[0].get("message") or "Shopify user error", user_errors)


def _error_message(payload: Any, text: str, fallback: str) -> str:
    if isinstance(payload, dict):
        errors = payload.get("errors")
        if isinstance(errors, list) and errors:
            message = errors[0].get("message") if isinstance(errors[0], dict) else None
            if message:
                return message
        elif isinstance(errors, str) and errors:
            return errors
        if payload.get("error"):
            return str(payload["error"])
    return text or fallback


class GraphQLClient:
    """Base GraphQL client with automatic throttling and backoff.

    Subclasses set ``API_NAME`` and implement ``_endpoint`` and
    ``_auth_headers``.
    """

    API_NAME = "GraphQL"

    # Backoff configuration
    MAX_BACKOFF_SECONDS = 60.0
    MAX_RETRIES = 5

    # Estimated query cost (conservative estimate)
    ESTIMATED_QUERY_COST = 100

    def __init__(
        self,
        settings: Settings | None = None,
        session: requests.Session | None = None,
    ):
        self.settings = settings or get_settings()
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        self._last_throttle_status: ThrottleStatus | None = None

    def _endpoint(self) -> str:
        raise NotImplementedError

    def _auth_headers(self) -> dict[str, str]:
        raise NotImplementedError

    def execute(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Execute a GraphQL query with throttling and backoff handling.

        Args:
            query: The GraphQL query string.
            variables: Optional variables for the query.

        Returns:
            The 'data' field from the GraphQL response.

        Raises:
            ShopifyThrottledError: If max retries exceeded due to throttling.
            ShopifyAPIError: If the API returns errors.
            ShopifyClientError: For other request failures.
        """
        url = self._endpoint()
        payload = {"query": query, "variables": variables or {}}
        retry_count = 0

        while retry_count <= self.MAX_RETRIES:
            self._apply_proactive_throttle()

            try:
                logger.debug(
                    "Executing %s query",
                    self.API_NAME,
                    extra={"url": url, "retry_count": retry_count},
                )

                response = self._session.post(
                    url,
                    data=json.dumps(payload),
                    headers=self._auth_headers(),
                    timeout=self.settings.http_timeout,
                )

                if response.status_code == 429:
                    retry_count += 1
                    if retry_count > self.MAX_RETRIES:
                        raise ShopifyThrottledError(
                            f"Max retries ({self.MAX_RETRIES}) exceeded due to rate limiting"
                        )

                    backoff_time = self._calculate_backoff(retry_count)
                    logger.warning(
                        "Rate limited by Shopify %s API, backing off",
                        self.API_NAME,
                        extra={
                            "retry_count": retry_count,
                            "backoff_seconds": backoff_time,
                        },
                    )
                    time.sleep(backoff_time)
                    continue

                return self._handle_response(response)

            except requests.exceptions.Timeout:
                # A timed-out mutation may already have been applied
                if is_mutation(query):
                    raise ShopifyClientError(
                        f"{self.API_NAME} request timed out"
                    )

                retry_count += 1
                if retry_count > self.MAX_RETRIES:
                    raise ShopifyClientError(
                        f"Request timeout after {self.MAX_RETRIES} retries"
                    )

                backoff_time = self._calculate_backoff(retry_count)
                logger.warning(
                    "Request timeout, retrying",
                    extra={
                        "retry_count": retry_count,
                        "backoff_seconds": backoff_time,
                    },
                )
                time.sleep(backoff_time)

            except requests.exceptions.RequestException as e:
                raise ShopifyClientError(f"Request failed: {e}") from e

        raise ShopifyThrottledError("Unexpected exit from retry loop")

    def _handle_response(self, response: requests.Response) -> dict[str, Any]:
        text = response.text
        try:
            data = response.json()
        except ValueError:
            data = None

        if not response.ok:
            message = _error_message(
                data, text, f"{self.API_NAME} HTTP {response.status_code}"
            )
            logger.error(
                "%s API returned HTTP error",
                self.API_NAME,
                extra={"status_code": response.status_code, "error": message},
            )
            raise ShopifyAPIError(
                message,
                errors=(data or {}).get("errors") if isinstance(data, dict) else None,
                status_code=response.status_code,
            )

        if not isinstance(data, dict):
            raise ShopifyAPIError(
                f"{self.API_NAME} API returned invalid JSON",
                status_code=response.status_code,
            )

        if data.get("extensions"):
            status = ThrottleStatus.from_extensions(data["extensions"])
            if status is not None:
                self._last_throttle_status = status
                logger.debug(
                    "Throttle status updated",
                    extra={
                        "available_points": status.currently_available,
                        "restore_rate": status.restore_rate,
                        "actual_cost": status.actual_cost,
                    },
                )

        errors = data.get("errors")
        if errors:
            message = _error_message(data, "", f"{self.API_NAME} API error")
            logger.error(
                "GraphQL errors in response",
                extra={"api": self.API_NAME, "errors": errors},
            )
            raise ShopifyAPIError(
                message,
                errors=errors if isinstance(errors, list) else None,
                status_code=response.status_code,
            )

        return data.get("data") or {}

    def _calculate_backoff(self, retry_count: int) -> float:
        """Calculate exponential backoff time with jitter.

        Uses the formula: min(MAX_BACKOFF, (2^retry_count) + random(0, 1))
        """
        exponential_wait = 2**retry_count
        jitter = random.uniform(0, 1)
        return min(self.MAX_BACKOFF_SECONDS, exponential_wait + jitter)

    def _apply_proactive_throttle(self) -> None:
        """Wait when the last known bucket is below the estimated query cost."""
        if self._last_throttle_status is None:
            return

        wait_time = self._last_throttle_status.wait_time_seconds(
            self.ESTIMATED_QUERY_COST
        )

        if wait_time > 0:
            logger.info(
                "Proactive throttling: waiting for rate limit points to restore",
                extra={
                    "wait_seconds": round(wait_time, 2),
                    "available_points": self._last_throttle_status.currently_available,
                    "needed_points": self.ESTIMATED_QUERY_COST,
                },
            )
            time.sleep(wait_time)

    def close(self) -> None:
        """Close the HTTP session."""
        self._session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()


class StorefrontClient(GraphQLClient):
    """Client for the public Storefront API.

    On the web platform the browser cannot call Shopify directly, so queries
    are posted to the relay endpoint, which adds the storefront token itself.
    """

    API_NAME = "Storefront"

    def _endpoint(self) -> str:
        if self.settings.platform == Platform.WEB:
            return self.settings.relay_url
        return self.settings.storefront_graphql_url

    def _auth_headers(self) -> dict[str, str]:
        if self.settings.platform == Platform.WEB:
            return {}
        token = self.settings.shopify_storefront_token
        if not token:
            raise ShopifyClientError("Missing SHOPIFY_STOREFRONT_TOKEN")
        return {"X-Shopify-Storefront-Access-Token": token}


class CustomerAccountClient(GraphQLClient):
    """Client for the Customer Account API.

    The GraphQL endpoint is not fixed; it comes from the shop's
    ``/.well-known/customer-account-api`` discovery document.
    """

    API_NAME = "Customer API"

    DISCOVERY_KEYS = ("graphql_api", "graphql", "graphqlApi", "graphql_api_url")

    def __init__(
        self,
        access_token: str,
        discovery: dict[str, Any] | None,
        settings: Settings | None = None,
        session: requests.Session | None = None,
    ):
        super().__init__(settings=settings, session=session)
        self.access_token = access_token
        self.discovery = discovery or {}

    def _endpoint(self) -> str:
        for key in self.DISCOVERY_KEYS:
            url = self.discovery.get(key)
            if url:
                return url
        raise ShopifyClientError(
            "Customer Account API not discovered (missing graphql_api)"
        )

    def _auth_headers(self) -> dict[str, str]:
        return {
            "Authorization": self.access_token,
            "X-Shopify-Customer-Access-Token": self.access_token,
        }


class AdminClient(GraphQLClient):
    """GraphQL client for the Admin API, used only by the proxy service.

    Example:
        >>> with AdminClient() as admin:
        ...     customer = admin.find_customer_by_email("a@example.com")
    """

    API_NAME = "Admin"

    def _endpoint(self) -> str:
        return self.settings.admin_graphql_url

    def _auth_headers(self) -> dict[str, str]:
        token = self.settings.shopify_admin_api_token
        if not token:
            raise ShopifyClientError("Missing SHOPIFY_ADMIN_API_TOKEN")
        return {"X-Shopify-Access-Token": token}

    def find_customer_by_email(self, email: str) -> dict[str, Any] | None:
        """Return the first customer matching ``email:<email>``, if any."""
        data = self.execute(SEARCH_CUSTOMERS_QUERY, {"query": f"email:{email}"})
        edges = (data.get("customers") or {}).get("edges") or []
        if not edges:
            return None
        return edges[0].get("node")

    def create_customer(self, customer_input: dict[str, Any]) -> dict[str, Any]:
        """Run customerCreate and return its payload (customer + userErrors)."""
        data = self.execute(CREATE_CUSTOMER_MUTATION, {"input": customer_input})
        return data.get("customerCreate") or {}

    def set_metafields(self, metafields: list[dict[str, Any]]) -> dict[str, Any]:
        """Run metafieldsSet; each metafield carries its own ownerId."""
        data = self.execute(SET_METAFIELDS_MUTATION, {"metafields": metafields})
        return data.get("metafieldsSet") or {}

    def add_tags(self, owner_id: str, tags: list[str]) -> dict[str, Any]:
        data = self.execute(TAGS_ADD_MUTATION, {"id": owner_id, "tags": tags})
        return data.get("tagsAdd") or {}

    def send_account_invite(self, customer_id: str) -> dict[str, Any]:
        data = self.execute(SEND_INVITE_MUTATION, {"customerId": customer_id})
        return data.get("customerSendAccountInviteEmail") or {}

    def find_segment_by_name(self, name: str, first: int = 100) -> dict[str, Any] | None:
        """Find a customer segment by case-insensitive name."""
        data = self.execute(SEGMENTS_QUERY, {"first": first})
        wanted = name.lower()
        for edge in (data.get("segments") or {}).get("edges") or []:
            node = edge.get("node") or {}
            if (node.get("name") or "").lower() == wanted:
                return node
        return None

    def add_customer_to_segment(self, customer_id: str, segment_id: str) -> dict[str, Any]:
        data = self.execute(
            ADD_CUSTOMER_TO_SEGMENT_MUTATION,
            {"customerId": customer_id, "segmentId": segment_id},
        )
        return data.get("segmentCustomersAdd") or {}
