"""PKCE and token helpers for the Customer Account login flow."""

import base64
import hashlib
import json
import re
import secrets
import string
from typing import Any
from urllib.parse import urlencode, urlsplit

_ALPHABET = string.digits + string.ascii_lowercase

# "scheme:/path" as some deep-link handlers deliver it
_SINGLE_SLASH_SCHEME = re.compile(r"^([a-zA-Z][a-zA-Z0-9+\-.]*):/(?!/)")


def random_string(length: int = 64) -> str:
    """Random ``[0-9a-z]`` string from a CSPRNG."""
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def base64url_encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def base64url_decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def code_challenge(verifier: str) -> str:
    """S256 code challenge: base64url(SHA-256(verifier)) without padding."""
    return base64url_encode(hashlib.sha256(verifier.encode("ascii")).digest())


def decode_jwt(token: str | None) -> dict[str, Any] | None:
    """Decode a JWT payload without verifying it.

    Only used to read display claims (email) from the id_token; the token
    itself is never trusted for authorization decisions on the client.
    """
    if not token or not isinstance(token, str):
        return None
    parts = token.split(".")
    if len(parts) < 2:
        return None
    try:
        payload = json.loads(base64url_decode(parts[1]).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    return payload if isinstance(payload, dict) else None


def jwt_email(token: str | None) -> str:
    payload = decode_jwt(token) or {}
    return (
        payload.get("email")
        or payload.get("email_address")
        or payload.get("preferred_username")
        or ""
    )


def to_query(params: dict[str, Any]) -> str:
    """URL-encode params, skipping None values."""
    return urlencode({k: str(v) for k, v in params.items() if v is not None})


def parse_url_loose(raw_url: str | None):
    """Parse a redirect URL, repairing ``scheme:/path`` to ``scheme://path``.

    Returns:
        ``urllib.parse.SplitResult`` or None when the URL has no scheme.
    """
    if not raw_url:
        return None
    fixed = _SINGLE_SLASH_SCHEME.sub(r"\1://", raw_url.strip(), count=1)
    try:
        parts = urlsplit(fixed)
    except ValueError:
        return None
    if not parts.scheme:
        return None
    return parts
