"""Customer Account authentication (OAuth + PKCE)."""

from .oauth import (
    AuthError,
    AuthSession,
    CustomerAccountAuth,
    LoginUnavailableError,
    NotAuthenticatedError,
    PKCEStateError,
    TokenExchangeError,
)

__all__ = [
    "AuthError",
    "AuthSession",
    "CustomerAccountAuth",
    "LoginUnavailableError",
    "NotAuthenticatedError",
    "PKCEStateError",
    "TokenExchangeError",
]
