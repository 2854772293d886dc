"""Wires the storefront services together and restores state at startup."""

from typing import Any

from src.account import AccountService
from src.auth import CustomerAccountAuth
from src.cart import CartService
from src.catalog import CatalogService, Favorites, Reviews
from src.config import Platform, Settings, get_settings
from src.logging_config import get_logger
from src.orders import OrderService
from src.pricing import VatMode, cart_totals, display_compare_at, display_price
from src.shopify import StorefrontClient
from src.storage import Preferences
from src.transport import HttpTransport, HttpTransportError

logger = get_logger(__name__)


class StorefrontApp:
    """One customer's storefront session.

    Example:
        >>> with StorefrontApp() as app:
        ...     app.boot()
        ...     app.catalog.load_collections()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        prefs: Preferences | None = None,
        storefront: StorefrontClient | None = None,
        transport: HttpTransport | None = None,
    ):
        self.settings = settings or get_settings()
        self.prefs = prefs or Preferences(self.settings.state_dir)
        self.transport = transport or HttpTransport(timeout=self.settings.http_timeout)
        self.storefront = storefront or StorefrontClient(self.settings)

        self.auth = CustomerAccountAuth(self.settings, self.prefs, self.transport)
        self.account = AccountService(self.settings, self.prefs, self.auth, self.transport)
        self.catalog = CatalogService(self.storefront)
        self.cart = CartService(self.storefront, self.prefs)
        self.orders = OrderService(self.account, self.cart, self.prefs)
        self.favorites = Favorites(self.prefs)
        self.reviews = Reviews(self.prefs)

    @property
    def is_native(self) -> bool:
        return self.settings.platform == Platform.NATIVE

    def boot(self) -> None:
        """Restore persisted state and refresh the profile of a saved session.

        Discovery failures are logged, not raised: the catalog still works
        without the Customer Account API.
        """
        self.orders.restore()
        self.account.restore()

        if not self.is_native:
            return

        try:
            self.auth.discover()
        except HttpTransportError as e:
            logger.warning("Customer account discovery failed", extra={"error": str(e)})
            return

        session = self.auth.current_session()
        if session is not None:
            self.account.load_profile(session.access_token)

    def complete_login(self, redirect_url: str) -> dict[str, Any] | None:
        """Finish OAuth from the redirect URL and load the profile."""
        session = self.auth.handle_redirect(redirect_url)
        if session is None:
            return None
        if session.email:
            self.account.email = session.email
        return self.account.load_profile(session.access_token) or {"email": session.email}

    def logout(self) -> None:
        self.account.logout()
        self.orders.orders = []
        self.orders.recently_ordered = []

    # -- price display -----------------------------------------------------

    @property
    def vat_mode(self) -> VatMode:
        return self.account.vat_mode

    @property
    def vat_label(self) -> str:
        return "Inc VAT" if self.vat_mode == VatMode.INC else "Ex VAT"

    def price(self, base_price: Any) -> str:
        return display_price(base_price, self.vat_mode, self.settings.vat_rate)

    def compare_at(self, compare_at_price: Any) -> str:
        return display_compare_at(compare_at_price, self.vat_mode, self.settings.vat_rate)

    def cart_totals(self) -> dict[str, float]:
        return cart_totals(self.cart.cart, self.vat_mode, self.settings.vat_rate)

    def close(self) -> None:
        self.storefront.close()
        self.transport.close()

    def __enter__(self) -> "StorefrontApp":
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
