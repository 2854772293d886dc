"""Proxy endpoint logic, independent of the web framework.

Each handler either returns the JSON body of a 200 response or raises
``ProxyError`` carrying the HTTP status and message for the client.
Unexpected Shopify failures propagate as ``ShopifyClientError`` and are
mapped to 500 by the application.
"""

import json
from typing import Any

import requests

from src.config import Settings
from src.logging_config import get_logger
from src.shopify import AdminClient, ShopifyClientError
from src.transport import safe_json_parse

from .schemas import RegisterCustomerRequest, VatVerificationRequest

logger = get_logger(__name__)

TEXT_FIELD = "single_line_text_field"


class ProxyError(Exception):
    """An error response with a specific HTTP status."""

    def __init__(self, status_code: int, message: str, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.details = details


def _user_error_messages(payload: dict[str, Any]) -> list[str]:
    return [e.get("message") or "" for e in payload.get("userErrors") or []]


def _text_metafield(owner_id: str, namespace: str, key: str, value: str) -> dict[str, Any]:
    return {
        "ownerId": owner_id,
        "namespace": namespace,
        "key": key,
        "type": TEXT_FIELD,
        "value": value,
    }


def register_customer(
    body: RegisterCustomerRequest,
    admin: AdminClient,
    settings: Settings,
) -> dict[str, Any]:
    """Create the customer, or update an existing one with the same email.

    With a VAT number the customer is tagged for the no-VAT review and the
    number is stored as a metafield. New customers get Shopify's account
    invite email so they can set a password.
    """
    email = (body.email or "").strip()
    if not email:
        raise ProxyError(400, "Email is required")
    if not settings.shopify_admin_api_token:
        logger.error("Missing SHOPIFY_ADMIN_API_TOKEN")
        raise ProxyError(500, "Server configuration error")

    logger.info("Processing registration", extra={"email": email})

    is_new_customer = False
    existing = admin.find_customer_by_email(email)
    if existing:
        customer_id = existing.get("id")
        logger.info("Found existing customer", extra={"customer_id": customer_id})
    else:
        customer_input: dict[str, Any] = {
            "email": email,
            "firstName": body.first_name or "",
            "lastName": body.last_name or "",
            "phone": body.phone or None,
            "tags": [settings.no_vat_tag] if body.vat_number else [],
        }
        address = body.address
        if address and address.address1:
            customer_input["addresses"] = [
                {
                    "address1": address.address1,
                    "address2": address.address2 or "",
                    "city": address.city or "",
                    "province": address.province or "",
                    "zip": address.zip or "",
                    "country": address.country or settings.default_country,
                }
            ]

        payload = admin.create_customer(customer_input)
        messages = _user_error_messages(payload)
        if messages:
            logger.error("Customer create rejected", extra={"errors": messages})
            raise ProxyError(400, ", ".join(messages))

        customer_id = (payload.get("customer") or {}).get("id")
        is_new_customer = True
        logger.info("Created customer", extra={"customer_id": customer_id})

    if not customer_id:
        raise ProxyError(500, "Failed to create/find customer")

    if body.vat_number:
        namespace = settings.registration_metafield_namespace
        metafields = [_text_metafield(customer_id, namespace, "tax_vat_number", body.vat_number)]
        if body.first_name:
            business_name = f"{body.first_name} {body.last_name or ''}".strip()
            metafields.append(
                _text_metafield(customer_id, namespace, "business_name", business_name)
            )

        result = admin.set_metafields(metafields)
        messages = _user_error_messages(result)
        if messages:
            logger.warning("Metafield warnings", extra={"errors": messages})

        # New customers were tagged on creation
        if not is_new_customer:
            admin.add_tags(customer_id, [settings.no_vat_tag])
            logger.info("Added no-VAT tag", extra={"customer_id": customer_id})

    if is_new_customer:
        try:
            admin.send_account_invite(customer_id)
            logger.info("Sent account invite email", extra={"email": email})
        except ShopifyClientError as e:
            logger.warning("Could not send invite email", extra={"error": str(e)})

    return {
        "success": True,
        "customerId": customer_id,
        "isNewCustomer": is_new_customer,
        "message": (
            "Account created! Check your email for login instructions."
            if is_new_customer
            else "Account updated successfully."
        ),
    }


def submit_vat_verification(
    body: VatVerificationRequest,
    admin: AdminClient,
    settings: Settings,
) -> dict[str, Any]:
    """Record a VAT-exemption request for staff review.

    Stores the VAT details as customer metafields and adds the customer to
    the no-VAT segment when that segment exists.
    """
    if not (body.customer_email and body.business_name and body.country and body.vat_number):
        raise ProxyError(400, "Missing required fields")
    if not settings.shopify_admin_api_token:
        logger.error("Missing SHOPIFY_ADMIN_API_TOKEN")
        raise ProxyError(500, "Missing admin API token")

    logger.info(
        "Searching for customer",
        extra={"email": body.customer_email, "admin_domain": settings.shopify_admin_domain},
    )
    customer = admin.find_customer_by_email(body.customer_email)
    if not customer:
        logger.warning("Customer not found", extra={"email": body.customer_email})
        raise ProxyError(404, f"Customer with email {body.customer_email} not found")
    customer_id = customer["id"]

    namespace = settings.vat_metafield_namespace
    result = admin.set_metafields(
        [
            _text_metafield(customer_id, namespace, "tax_vat_number", body.vat_number),
            _text_metafield(customer_id, namespace, "business_name", body.business_name),
            _text_metafield(customer_id, namespace, "business_country", body.country),
        ]
    )
    messages = _user_error_messages(result)
    if messages:
        raise ProxyError(500, f"Metafield update failed: {'; '.join(messages)}")
    logger.info("Metafields updated", extra={"customer_id": customer_id})

    segment = admin.find_segment_by_name(settings.no_vat_segment)
    if not segment:
        logger.warning(
            "No-VAT segment not found; metafields updated but segment addition skipped",
            extra={"segment": settings.no_vat_segment},
        )
        return {
            "success": True,
            "message": (
                f"VAT data submitted. Please ensure '{settings.no_vat_segment}' "
                "segment exists in Shopify."
            ),
        }

    result = admin.add_customer_to_segment(customer_id, segment["id"])
    messages = _user_error_messages(result)
    if messages:
        raise ProxyError(500, f"Segment add failed: {'; '.join(messages)}")
    logger.info("Customer added to segment", extra={"segment_id": segment["id"]})

    return {
        "success": True,
        "message": "VAT verification submitted. Your team will review and approve soon.",
    }


def relay_storefront(
    raw_body: bytes,
    settings: Settings,
    session: requests.Session,
) -> tuple[int, dict[str, Any]]:
    """Forward a Storefront GraphQL request with the server-held token.

    Returns:
        Tuple of (status_code, JSON body). Shopify's body is passed through
        unchanged on success.
    """
    try:
        body = json.loads(raw_body or b"{}")
    except ValueError as e:
        raise ProxyError(400, "Invalid JSON body", details=str(e))
    if not isinstance(body, dict) or not body.get("query"):
        raise ProxyError(400, "Missing query")

    token = settings.shopify_storefront_token
    if not token:
        raise ProxyError(500, "Missing SHOPIFY_STOREFRONT_TOKEN env var")

    response = session.post(
        settings.storefront_graphql_url,
        data=json.dumps({"query": body["query"], "variables": body.get("variables") or {}}),
        headers={
            "Content-Type": "application/json",
            "X-Shopify-Storefront-Access-Token": token,
        },
        timeout=settings.http_timeout,
    )

    text = response.text
    parsed = safe_json_parse(text)
    if parsed is None:
        parsed = {"raw": text}

    if not response.ok:
        logger.warning("Storefront relay upstream error", extra={"status_code": response.status_code})
        raise ProxyError(
            response.status_code,
            f"Shopify HTTP {response.status_code}",
            details=parsed,
        )
    return 200, parsed
