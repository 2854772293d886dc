"""Customer Account login: OAuth 2.0 authorization code + PKCE.

Flow:
1. ``start_login`` discovers the shop's OpenID configuration, stores a PKCE
   verifier/state/nonce record and returns the authorization URL to open in
   a browser.
2. Shopify redirects to the app's deep link; ``handle_redirect`` validates
   that URL and hands the code to ``handle_callback``.
3. ``handle_callback`` checks the stored state, exchanges the code for
   tokens at the token endpoint and persists the session.
"""

import threading
import time
from dataclasses import asdict, dataclass
from typing import Any, Callable
from urllib.parse import parse_qs

from src.config import Platform, Settings, get_settings
from src.logging_config import get_logger
from src.storage import Preferences, StorageKeys
from src.transport import HttpTransport, HttpTransportError

from .pkce import code_challenge, jwt_email, parse_url_loose, random_string, to_query

logger = get_logger(__name__)

DEFAULT_EXPIRES_IN = 3600


class AuthError(Exception):
    """Base exception for login failures."""

    pass


class LoginUnavailableError(AuthError):
    """Raised when login is attempted on a platform that cannot complete it."""

    pass


class PKCEStateError(AuthError):
    """Raised when the stored PKCE record is missing or does not match."""

    pass


class TokenExchangeError(AuthError):
    """Raised when the token endpoint does not return a usable session."""

    pass


class NotAuthenticatedError(AuthError):
    """Raised when an operation needs a logged-in customer."""

    pass


@dataclass
class AuthSession:
    """Tokens returned by the token endpoint.

    Attributes:
        access_token: Customer Account API access token.
        id_token: OpenID Connect id token (read for the email claim only).
        refresh_token: Token for the refresh_token grant, if issued.
        expires_at: Expiry as epoch milliseconds.
    """

    access_token: str
    id_token: str | None = None
    refresh_token: str | None = None
    expires_at: int = 0

    @classmethod
    def from_token_response(
        cls,
        payload: dict[str, Any],
        now_ms: int,
        previous: "AuthSession | None" = None,
    ) -> "AuthSession":
        access_token = payload.get("access_token")
        if not access_token:
            raise TokenExchangeError("Token exchange failed (missing access_token)")
        try:
            expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN
        return cls(
            access_token=access_token,
            id_token=payload.get("id_token") or (previous.id_token if previous else None),
            refresh_token=payload.get("refresh_token")
            or (previous.refresh_token if previous else None),
            expires_at=now_ms + expires_in * 1000,
        )

    @classmethod
    def from_dict(cls, data: Any) -> "AuthSession | None":
        if not isinstance(data, dict) or not data.get("access_token"):
            return None
        try:
            expires_at = int(data.get("expires_at") or 0)
        except (TypeError, ValueError):
            expires_at = 0
        return cls(
            access_token=data["access_token"],
            id_token=data.get("id_token"),
            refresh_token=data.get("refresh_token"),
            expires_at=expires_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @property
    def email(self) -> str:
        return jwt_email(self.id_token)

    def is_expired(self, now_ms: int, leeway_ms: int = 60_000) -> bool:
        return bool(self.expires_at) and now_ms + leeway_ms >= self.expires_at


def _now_ms(clock: Callable[[], float]) -> int:
    return int(clock() * 1000)


class CustomerAccountAuth:
    """OAuth + PKCE login against Shopify Customer Accounts.

    Example:
        >>> auth = CustomerAccountAuth(settings, prefs)
        >>> url = auth.start_login()        # open in a browser
        >>> session = auth.handle_redirect(redirected_url)
    """

    def __init__(
        self,
        settings: Settings | None = None,
        prefs: Preferences | None = None,
        transport: HttpTransport | None = None,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or get_settings()
        self.prefs = prefs or Preferences(self.settings.state_dir)
        self.transport = transport or HttpTransport(timeout=self.settings.http_timeout)
        self.clock = clock
        self.oidc: dict[str, Any] | None = None
        self.customer_api: dict[str, Any] | None = None
        self._redirect_lock = threading.Lock()
        self._redirect_handled = False

    # -- discovery ---------------------------------------------------------

    def discover(self) -> tuple[dict[str, Any], dict[str, Any]]:
        """Fetch (and cache) the OIDC and Customer Account API documents."""
        if self.oidc is None:
            self.oidc = self.transport.fetch_json(self.settings.oidc_config_url)
        if self.customer_api is None:
            self.customer_api = self.transport.fetch_json(
                self.settings.customer_api_discovery_url
            )
        return self.oidc, self.customer_api

    def _token_endpoint(self) -> str:
        oidc, _ = self.discover()
        endpoint = oidc.get("token_endpoint") or ""
        if not endpoint.startswith("http"):
            return self.settings.fallback_token_endpoint
        return endpoint

    # -- session -----------------------------------------------------------

    def current_session(self) -> AuthSession | None:
        return AuthSession.from_dict(self.prefs.get_json(StorageKeys.AUTH))

    def _save_session(self, session: AuthSession) -> None:
        self.prefs.set_json(StorageKeys.AUTH, session.to_dict())

    def clear_session(self) -> None:
        self.prefs.remove(StorageKeys.AUTH)
        self.prefs.remove(StorageKeys.PKCE)

    def require_session(self) -> AuthSession:
        """Return a usable session, refreshing it when it has expired."""
        session = self.current_session()
        if session is None:
            raise NotAuthenticatedError("Please login to view orders.")
        if session.is_expired(_now_ms(self.clock)) and session.refresh_token:
            session = self.refresh(session)
        return session

    # -- login -------------------------------------------------------------

    def start_login(self) -> str:
        """Store a fresh PKCE record and return the authorization URL.

        Raises:
            LoginUnavailableError: On the web platform, where the token
                exchange is blocked by CORS.
        """
        if self.settings.platform == Platform.WEB:
            raise LoginUnavailableError("Login works in the app (not on the web build)")

        with self._redirect_lock:
            self._redirect_handled = False

        oidc, _ = self.discover()
        authorization_endpoint = oidc.get("authorization_endpoint")
        if not authorization_endpoint:
            raise AuthError("OpenID configuration has no authorization_endpoint")

        verifier = random_string(64)
        state = random_string(24)
        nonce = random_string(24)

        self.prefs.set_json(
            StorageKeys.PKCE,
            {
                "verifier": verifier,
                "state": state,
                "nonce": nonce,
                "redirect": self.settings.redirect_uri,
                "created_at": _now_ms(self.clock),
            },
        )

        query = to_query(
            {
                "client_id": self.settings.customer_accounts_client_id,
                "response_type": "code",
                "redirect_uri": self.settings.redirect_uri,
                "scope": self.settings.oauth_scope,
                "state": state,
                "nonce": nonce,
                "code_challenge": code_challenge(verifier),
                "code_challenge_method": "S256",
            }
        )
        logger.info("Login started", extra={"authorization_endpoint": authorization_endpoint})
        return f"{authorization_endpoint}?{query}"

    def handle_redirect(self, raw_url: str) -> AuthSession | None:
        """Complete login from the redirect (deep link) URL.

        URLs that are not for our redirect URI are ignored and return None,
        as does a second delivery of the same deep link. A failed attempt
        releases the guard so the user can retry.

        Raises:
            AuthError: When the redirect carries an error or no code.
        """
        url = parse_url_loose(raw_url)
        if url is None:
            return None
        if not url.geturl().lower().startswith(self.settings.redirect_uri.lower()):
            return None

        with self._redirect_lock:
            if self._redirect_handled:
                logger.debug("Redirect already handled, ignoring")
                return None
            self._redirect_handled = True

        try:
            params = parse_qs(url.query)
            error = (params.get("error") or [None])[0]
            if error:
                description = (params.get("error_description") or [None])[0]
                raise AuthError(description or error)
            code = (params.get("code") or [None])[0]
            if not code:
                raise AuthError("Missing authorization code")
            state = (params.get("state") or [None])[0]
            return self.handle_callback(code, state)
        except Exception:
            with self._redirect_lock:
                self._redirect_handled = False
            raise

    def handle_callback(self, code: str, state: str | None) -> AuthSession:
        """Exchange the authorization code for tokens and persist them."""
        pkce = self.prefs.get_json(StorageKeys.PKCE)
        if not isinstance(pkce, dict) or not pkce.get("verifier"):
            raise PKCEStateError("Missing PKCE verifier (login session expired)")
        if pkce.get("state") and state and pkce["state"] != state:
            raise PKCEStateError("State mismatch (possible stale login)")

        try:
            token_response = self.transport.post_form(
                self._token_endpoint(),
                {
                    "grant_type": "authorization_code",
                    "client_id": self.settings.customer_accounts_client_id,
                    "redirect_uri": self.settings.redirect_uri,
                    "code": code,
                    "code_verifier": pkce["verifier"],
                },
            )
        except HttpTransportError as e:
            raise TokenExchangeError(str(e)) from e

        session = AuthSession.from_token_response(token_response, _now_ms(self.clock))
        self._save_session(session)
        self.prefs.remove(StorageKeys.PKCE)

        logger.info("Customer logged in", extra={"expires_at": session.expires_at})
        return session

    def refresh(self, session: AuthSession | None = None) -> AuthSession:
        """Run the refresh_token grant and persist the new session."""
        session = session or self.current_session()
        if session is None or not session.refresh_token:
            raise NotAuthenticatedError("No refresh token; please login again")

        try:
            token_response = self.transport.post_form(
                self._token_endpoint(),
                {
                    "grant_type": "refresh_token",
                    "client_id": self.settings.customer_accounts_client_id,
                    "refresh_token": session.refresh_token,
                },
            )
        except HttpTransportError as e:
            raise TokenExchangeError(str(e)) from e

        refreshed = AuthSession.from_token_response(
            token_response, _now_ms(self.clock), previous=session
        )
        self._save_session(refreshed)
        logger.info("Session refreshed", extra={"expires_at": refreshed.expires_at})
        return refreshed
