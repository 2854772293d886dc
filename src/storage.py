"""Persisted key-value state.

A small JSON-file store playing the role of the device preferences store:
string values under string keys, with JSON helpers on top. Everything the
client remembers between runs (VAT mode, cart id, OAuth session, PKCE
record, cached profile and orders) lives here.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any

from src.logging_config import get_logger

logger = get_logger(__name__)


class StorageKeys:
    """Preference keys."""

    VAT_MODE = "acefixings_vat_mode"
    CART_ID = "acefixings_cart_id"
    AUTH = "acefixings_auth"
    PKCE = "acefixings_pkce"
    PROFILE = "acefixings_customer_profile"
    ORDERS_CACHE = "acefixings_orders_cache"
    CUSTOMER_ID = "customer_shopify_id"
    FAVORITES = "acefixings_favorites"
    REVIEWS = "acefixings_reviews"

    @staticmethod
    def vat_submitted(email: str) -> str:
        return f"vat_submitted_{email}"


class Preferences:
    """JSON-file backed string key-value store.

    Writes go to a temporary file that replaces the store, so a crash never
    leaves a half-written file behind.
    """

    FILENAME = "preferences.json"

    def __init__(self, state_dir: Path | str):
        self.path = Path(state_dir) / self.FILENAME
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(
                "Preferences file unreadable, starting empty",
                extra={"path": str(self.path), "error": str(e)},
            )
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=self.path.parent, prefix=".prefs-")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(self._data, f, indent=2, sort_keys=True)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()

    def get_json(self, key: str) -> Any:
        """Return the decoded JSON value, or None when missing or corrupt."""
        raw = self.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None

    def set_json(self, key: str, value: Any) -> None:
        self.set(key, json.dumps(value, default=str))

    def keys(self) -> list[str]:
        return sorted(self._data)
