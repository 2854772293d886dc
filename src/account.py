"""Customer account state: profile, VAT mode, registration and VAT requests.

Registration and VAT verification need Admin API access, which the client
must never hold, so both go through the proxy service. Everything else
reads the Customer Account API with the logged-in customer's token.
"""

import time
from dataclasses import dataclass
from typing import Any, Callable

from src.auth import CustomerAccountAuth, NotAuthenticatedError
from src.config import Settings
from src.filters import TagMatcher
from src.logging_config import get_logger
from src.pricing import VatMode
from src.shopify import CustomerAccountClient, ShopifyClientError
from src.shopify.queries import CUSTOMER_PROFILE_QUERY
from src.storage import Preferences, StorageKeys
from src.transport import HttpTransport, HttpTransportError

logger = get_logger(__name__)


class AccountError(Exception):
    """Raised when a registration or VAT request is rejected."""

    pass


@dataclass
class RegistrationForm:
    """Self-service registration details."""

    email: str
    first_name: str = ""
    last_name: str = ""
    phone: str = ""
    address1: str = ""
    city: str = ""
    county: str = ""
    postcode: str = ""
    country: str = "Ireland"
    vat_number: str = ""

    def to_payload(self) -> dict[str, Any]:
        return {
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "phone": self.phone,
            "address": {
                "address1": self.address1,
                "city": self.city,
                "province": self.county,
                "zip": self.postcode,
                "country": self.country,
            },
            "vatNumber": self.vat_number,
        }


@dataclass
class CompanyAccount:
    id: str
    name: str
    verified: bool
    reverse_charge: bool


ClientFactory = Callable[[str], CustomerAccountClient]


class AccountService:
    """Holds who is logged in and what they are allowed to see."""

    def __init__(
        self,
        settings: Settings,
        prefs: Preferences,
        auth: CustomerAccountAuth,
        transport: HttpTransport | None = None,
        client_factory: ClientFactory | None = None,
    ):
        self.settings = settings
        self.prefs = prefs
        self.auth = auth
        self.transport = transport or HttpTransport(timeout=settings.http_timeout)
        self._client_factory = client_factory
        self._vat_verified = TagMatcher(
            [settings.vat_verified_tag], settings.vat_verified_match_mode
        )

        self.email = ""
        self.full_name = ""
        self.customer_id = ""
        self.is_non_vat_customer = False
        self.vat_form_submitted = False
        self.company_account: CompanyAccount | None = None

    # -- VAT mode ----------------------------------------------------------

    @property
    def vat_mode(self) -> VatMode:
        return VatMode.parse(self.prefs.get(StorageKeys.VAT_MODE)) or VatMode.INC

    @vat_mode.setter
    def vat_mode(self, mode: VatMode) -> None:
        self.prefs.set(StorageKeys.VAT_MODE, VatMode(mode).value)

    # -- clients -----------------------------------------------------------

    def customer_client(self, access_token: str) -> CustomerAccountClient:
        if self._client_factory is not None:
            return self._client_factory(access_token)
        _, customer_api = self.auth.discover()
        return CustomerAccountClient(access_token, customer_api, settings=self.settings)

    # -- boot --------------------------------------------------------------

    def restore(self) -> None:
        """Restore the cached profile and session from preferences."""
        profile = self.prefs.get_json(StorageKeys.PROFILE)
        if isinstance(profile, dict):
            self.email = profile.get("email") or self.email
            self.full_name = profile.get("fullName") or self.full_name
            if profile.get("isNonVat"):
                self.is_non_vat_customer = True
                self.vat_mode = VatMode.EX

        session = self.auth.current_session()
        if session is not None and session.email:
            self.email = session.email
        if self.email:
            self.vat_form_submitted = self._vat_submitted_for(self.email)

    # -- profile -----------------------------------------------------------

    def load_profile(self, access_token: str) -> dict[str, Any] | None:
        """Fetch the customer profile and apply VAT status.

        Returns:
            ``{fullName, email, isNonVat}``, or None if the profile could not
            be loaded (the failure is logged; login itself still stands).
        """
        try:
            with self.customer_client(access_token) as client:
                data = client.execute(CUSTOMER_PROFILE_QUERY)
        except (ShopifyClientError, HttpTransportError) as e:
            logger.warning("Could not load customer profile", extra={"error": str(e)})
            return None

        customer = data.get("customer") or {}
        first = customer.get("firstName") or ""
        last = customer.get("lastName") or ""
        email = (customer.get("emailAddress") or {}).get("emailAddress") or ""
        full_name = f"{first} {last}".strip()
        tags = customer.get("tags") or []

        # The Customer Account API does not expose the Admin customer id
        customer_id = f"gid://shopify/Customer/{email.split('@')[0]}" if email else ""
        if customer_id:
            self.prefs.set(StorageKeys.CUSTOMER_ID, customer_id)
        self.customer_id = customer_id

        if email:
            self.email = email
            self.vat_form_submitted = self._vat_submitted_for(email)
        if full_name:
            self.full_name = full_name

        verified = self._vat_verified.matches(tags)
        self.company_account = CompanyAccount(
            id=customer_id,
            name=full_name,
            verified=verified,
            reverse_charge=verified,
        )
        self.is_non_vat_customer = verified
        if verified:
            self.vat_mode = VatMode.EX
            logger.info("Tax exempt account verified", extra={"email": email})

        self.prefs.set_json(
            StorageKeys.PROFILE,
            {
                "firstName": first,
                "lastName": last,
                "email": email,
                "fullName": full_name,
                "isNonVat": verified,
                "savedAt": int(time.time() * 1000),
            },
        )
        return {"fullName": full_name, "email": email, "isNonVat": verified}

    @property
    def user_line(self) -> str:
        name = self.full_name.strip()
        email = self.email.strip()
        if name and email:
            return f"{name} • {email}"
        return name or email

    # -- proxy calls -------------------------------------------------------

    def _vat_submitted_for(self, email: str) -> bool:
        record = self.prefs.get_json(StorageKeys.vat_submitted(email))
        return bool(isinstance(record, dict) and record.get("submitted"))

    def _mark_vat_submitted(self, email: str) -> None:
        self.prefs.set_json(
            StorageKeys.vat_submitted(email),
            {"submitted": True, "date": int(time.time() * 1000)},
        )

    def _post_to_proxy(self, url: str, payload: dict[str, Any], fallback: str) -> dict[str, Any]:
        try:
            status, result, text = self.transport.post_json(url, payload)
        except HttpTransportError as e:
            raise AccountError(str(e)) from e

        if not isinstance(result, dict):
            logger.error("Proxy response was not JSON", extra={"url": url, "body": text[:500]})
            raise AccountError("Server error: API did not return JSON")
        if not 200 <= status < 300:
            raise AccountError(result.get("error") or fallback)
        return result

    def submit_vat_verification(self, business_name: str, country: str, vat_number: str) -> str:
        """Send a VAT-exemption request for the logged-in customer.

        Returns:
            The server's confirmation message.

        Raises:
            NotAuthenticatedError: If no customer email is known.
            AccountError: If the proxy rejects the request.
        """
        if not self.email:
            raise NotAuthenticatedError(
                "Customer email not found. Please log out and log in again."
            )

        logger.info("Submitting VAT verification", extra={"email": self.email, "country": country})
        result = self._post_to_proxy(
            self.settings.submit_vat_url,
            {
                "customerEmail": self.email,
                "businessName": business_name,
                "country": country,
                "vatNumber": vat_number,
            },
            "Failed to submit VAT verification",
        )
        self.vat_form_submitted = True
        self._mark_vat_submitted(self.email)
        return result.get("message") or "VAT verification submitted for review."

    def register_customer(self, form: RegistrationForm) -> dict[str, Any]:
        """Create or update the customer through the proxy.

        The customer is not logged in afterwards; Shopify emails an account
        invite and they sign in through the normal OAuth flow.
        """
        if not form.email:
            raise AccountError("Email is required")

        result = self._post_to_proxy(
            self.settings.register_customer_url, form.to_payload(), "Registration failed"
        )
        if form.vat_number:
            self._mark_vat_submitted(form.email)
        logger.info(
            "Customer registered",
            extra={"email": form.email, "is_new": result.get("isNewCustomer")},
        )
        return result

    # -- logout ------------------------------------------------------------

    def logout(self) -> None:
        """Forget the session and everything cached for this customer."""
        self.auth.clear_session()
        self.prefs.remove(StorageKeys.PROFILE)
        self.prefs.remove(StorageKeys.ORDERS_CACHE)
        self.vat_mode = VatMode.INC
        self.email = ""
        self.full_name = ""
        self.customer_id = ""
        self.is_non_vat_customer = False
        self.vat_form_submitted = False
        self.company_account = None
        logger.info("Logged out")
