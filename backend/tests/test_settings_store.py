#!/usr/bin/env python3
"""Tests for the typed settings store.

These tests are written to run under pytest OR as a standalone script.
"""

import sys

# Ensure maintenance_gate imports work when running from backend/
sys.path.append(".")

from sqlalchemy.orm import sessionmaker


def _assert(condition: bool, message: str) -> None:
    if condition:
        return
    raise AssertionError(message)


def _make_store():
    from maintenance_gate.database import build_engine, init_db
    from maintenance_gate.services.settings_store import SettingsStore

    engine = build_engine("sqlite:///:memory:")
    init_db(engine)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return SettingsStore(session_factory), session_factory


def test_unset_settings_read_as_defaults():
    from maintenance_gate.services.settings_store import SettingsSnapshot

    store, _ = _make_store()

    _assert(store.get("enabled") is False, "Expected maintenance disabled by default")
    _assert(store.get("mg_template") == "modern", "Expected prefixed lookup to work")
    _assert(store.get("bypass_roles") == ["administrator"], "Expected administrator bypass role by default")
    _assert(store.snapshot() == SettingsSnapshot.defaults(), "Expected empty store to snapshot as defaults")
    print("[PASS] unset settings read as defaults")


def test_seed_defaults_does_not_overwrite():
    store, _ = _make_store()

    store.set("title", "Custom title")
    store.seed_defaults()

    _assert(store.get("title") == "Custom title", "Seeding must not overwrite stored values")
    print("[PASS] seed_defaults keeps stored values")


def test_invalid_values_are_rejected_without_raising():
    store, _ = _make_store()

    store.set("accent_color", "#00FF00")
    result = store.set("accent_color", "not-a-color")

    _assert(result.saved is False, "Expected invalid color to be rejected")
    _assert(result.message == "Could not save accent_color", f"Unexpected message: {result.message}")
    _assert(store.get("accent_color") == "#00ff00", "Rejected write must leave the previous value")

    _assert(store.set("mode", "vacation").saved is False, "Expected unknown mode to be rejected")
    _assert(store.set("contact_email", "nobody").saved is False, "Expected invalid email to be rejected")
    _assert(store.set("logo_url", "javascript:alert(1)").saved is False, "Expected javascript: URL to be rejected")

    malformed = store.set("logo_url", "http://[oops")
    _assert(malformed.saved is False, "Expected malformed IPv6 host to be rejected")
    _assert(malformed.message == "Could not save logo_url", f"Unexpected message: {malformed.message}")
    results = store.set_many({"logo_url": "http://[oops", "title": "Still saved"})
    _assert([r.saved for r in results] == [False, True], "Expected only the malformed URL rejected")
    print("[PASS] invalid values rejected")


def test_values_are_sanitized():
    store, _ = _make_store()

    store.set("title", "Back <b>soon</b>")
    _assert(store.get("title") == "Back soon", f"Expected tags stripped, got {store.get('title')!r}")

    store.set("logo_url", "example.com/logo.png")
    _assert(store.get("logo_url") == "http://example.com/logo.png", "Expected scheme added to bare host")

    store.set("show_logo", "off")
    _assert(store.get("show_logo") is False, "Expected 'off' to parse as False")

    store.set("bypass_ips", "203.0.113.5\n198.51.100.7, 203.0.113.5")
    _assert(store.get("bypass_ips") == ["203.0.113.5", "198.51.100.7"], "Expected split, deduplicated IP list")

    store.set("bypass_roles", "Editor, editor\nShop_Manager")
    _assert(store.get("bypass_roles") == ["editor", "shop_manager"], f"Expected lowercased roles, got {store.get('bypass_roles')}")

    store.set("custom_css", "body { color: red; }</style><script>alert(1)</script>")
    css = store.get("custom_css")
    _assert("<" not in css, f"Expected markup removed from CSS, got {css!r}")
    print("[PASS] values sanitized")


def test_unknown_setting_raises():
    from maintenance_gate.utils.exceptions import UnknownSettingError

    store, _ = _make_store()
    try:
        store.set("does_not_exist", "x")
    except UnknownSettingError as e:
        _assert(e.status_code == 400, "Expected 400 for unknown setting")
    else:
        raise AssertionError("Expected UnknownSettingError")
    print("[PASS] unknown setting raises")


def test_corrupt_stored_value_falls_back_to_default():
    from maintenance_gate.models.setting import Setting

    store, session_factory = _make_store()
    db = session_factory()
    try:
        db.add(Setting(key="mg_enabled", value="{not json"))
        db.add(Setting(key="mg_bg_color", value='"purple"'))
        db.commit()
    finally:
        db.close()

    snapshot = store.snapshot()
    _assert(snapshot.enabled is False, "Expected corrupt JSON to read as default")
    _assert(snapshot.bg_color == "#0b0f12", "Expected invalid stored color to read as default")
    print("[PASS] corrupt values fall back to defaults")


def test_reset_restores_defaults_and_keeps_internal_keys():
    store, _ = _make_store()

    store.set_many({"enabled": True, "mg_title": "Custom", "bypass_ips": ["10.0.0.1"]})
    store.set_internal("__license.key", "ABCDEFGH-1234")

    store.reset(updated_by="test")

    _assert(store.get("enabled") is False, "Expected enabled reset")
    _assert(store.get("title") == "Under Maintenance", "Expected title reset")
    _assert(store.get("bypass_ips") == [], "Expected bypass IPs reset")
    _assert(store.get_internal("__license.key") == "ABCDEFGH-1234", "Reset must not touch license data")
    print("[PASS] reset restores defaults")


def test_internal_keys_roundtrip_and_delete():
    store, _ = _make_store()

    store.set_internal_many({"__license.status": "active", "__license.plan": "pro"})
    _assert(store.get_internal("__license.plan") == "pro", "Expected stored internal value")

    deleted = store.delete_internal("__license.status", "__license.plan", "__license.missing")
    _assert(deleted == 2, f"Expected 2 rows deleted, got {deleted}")
    _assert(store.get_internal("__license.status", "unset") == "unset", "Expected default after delete")

    _assert("__license.status" not in store.all_settings(), "Internal keys must not be listed as settings")
    print("[PASS] internal keys")


if __name__ == "__main__":
    print("Running settings store tests...")
    print()

    test_unset_settings_read_as_defaults()
    test_seed_defaults_does_not_overwrite()
    test_invalid_values_are_rejected_without_raising()
    test_values_are_sanitized()
    test_unknown_setting_raises()
    test_corrupt_stored_value_falls_back_to_default()
    test_reset_restores_defaults_and_keeps_internal_keys()
    test_internal_keys_roundtrip_and_delete()

    print()
    print("[SUCCESS] All tests passed!")
