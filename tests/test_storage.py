"""Tests for the persisted key-value store."""

import json

from src.storage import Preferences, StorageKeys


class TestPreferences:
    def test_missing_key_is_none(self, prefs):
        assert prefs.get(StorageKeys.CART_ID) is None
        assert prefs.get_json(StorageKeys.AUTH) is None

    def test_values_persist_across_instances(self, tmp_path):
        Preferences(tmp_path).set(StorageKeys.VAT_MODE, "ex")
        assert Preferences(tmp_path).get(StorageKeys.VAT_MODE) == "ex"

    def test_json_helpers(self, tmp_path):
        prefs = Preferences(tmp_path)
        prefs.set_json(StorageKeys.PROFILE, {"email": "a@b.ie", "isNonVat": True})

        reloaded = Preferences(tmp_path)
        assert reloaded.get_json(StorageKeys.PROFILE) == {"email": "a@b.ie", "isNonVat": True}
        # Stored as a JSON string, like the device preferences store
        assert isinstance(reloaded.get(StorageKeys.PROFILE), str)

    def test_corrupt_json_value_is_none(self, prefs):
        prefs.set(StorageKeys.ORDERS_CACHE, "{not json")
        assert prefs.get_json(StorageKeys.ORDERS_CACHE) is None

    def test_remove(self, tmp_path):
        prefs = Preferences(tmp_path)
        prefs.set(StorageKeys.CART_ID, "gid://shopify/Cart/1")
        prefs.remove(StorageKeys.CART_ID)
        prefs.remove("never-set")

        assert Preferences(tmp_path).get(StorageKeys.CART_ID) is None

    def test_unreadable_file_starts_empty(self, tmp_path):
        (tmp_path / Preferences.FILENAME).write_text("garbage", encoding="utf-8")
        assert Preferences(tmp_path).keys() == []

    def test_creates_state_dir(self, tmp_path):
        state_dir = tmp_path / "nested" / "state"
        Preferences(state_dir).set("k", "v")
        data = json.loads((state_dir / Preferences.FILENAME).read_text(encoding="utf-8"))
        assert data == {"k": "v"}

    def test_no_temp_files_left(self, tmp_path):
        prefs = Preferences(tmp_path)
        prefs.set("a", "1")
        prefs.set("b", "2")
        assert [p.name for p in tmp_path.iterdir()] == [Preferences.FILENAME]

    def test_keys_sorted(self, prefs):
        prefs.set("b", "1")
        prefs.set("a", "2")
        assert prefs.keys() == ["a", "b"]


def test_vat_submitted_key_is_per_email():
    assert StorageKeys.vat_submitted("a@b.ie") == "vat_submitted_a@b.ie"
    assert StorageKeys.vat_submitted("a@b.ie") != StorageKeys.vat_submitted("c@d.ie")
