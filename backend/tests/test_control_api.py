#!/usr/bin/env python3
"""Tests for the control API, the auth decorators and the gate middleware.

These tests are written to run under pytest OR as a standalone script.
"""

import json
import sys

# Ensure maintenance_gate imports work when running from backend/
sys.path.append(".")

import httpx
from sqlalchemy.orm import sessionmaker


def _assert(condition: bool, message: str) -> None:
    if condition:
        return
    raise AssertionError(message)


def _license_handler(request: httpx.Request) -> httpx.Response:
    endpoint = request.url.path.rsplit("/", 1)[-1]
    if endpoint == "activate":
        payload = json.loads(request.content)
        if payload.get("license_key") == "GOOD-KEY-0001":
            return httpx.Response(200, json={"success": True, "plan": "business"})
        return httpx.Response(200, json={"success": False, "message": "Invalid license key"})
    return httpx.Response(200, json={"success": True, "status": "active", "plan": "business"})


def _make_app(**overrides):
    from maintenance_gate.config import Settings
    from maintenance_gate.database import build_engine
    from maintenance_gate.main import create_app

    values = {
        "secret_key": "test-secret",
        "site_name": "Example Site",
        "admin_email": "admin@example.com",
        "admin_roles": "administrator",
        "maintenance_api_key": None,
        "license_scheduler_enabled": False,
        "license_check_on_admin_requests": False,
    }
    values.update(overrides)
    app_settings = Settings(**values)

    engine = build_engine("sqlite:///:memory:")
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    app = create_app(
        app_settings=app_settings,
        session_factory=session_factory,
        license_transport=httpx.MockTransport(_license_handler),
        start_jobs=False,
    )
    app.config["TESTING"] = True
    return app, session_factory


def _login(client, user_id="admin-1", roles=("administrator",)):
    with client.session_transaction() as sess:
        sess["user_id"] = user_id
        sess["roles"] = list(roles)


def _admin_client(app):
    client = app.test_client()
    _login(client)
    return client


def _issue_api_key(app) -> str:
    res = _admin_client(app).post("/api/maintenance/api-key")
    _assert(res.status_code == 200, f"Expected key regeneration to succeed, got {res.status_code}")
    return res.get_json()["api_key"]


def test_unauthenticated_requests_are_rejected_generically():
    app, _ = _make_app()
    client = app.test_client()

    for method, path in (
        ("get", "/api/maintenance/status"),
        ("post", "/api/maintenance/activate"),
        ("post", "/api/maintenance/toggle"),
        ("get", "/api/license"),
    ):
        res = getattr(client, method)(path)
        _assert(res.status_code == 401, f"{path}: expected 401, got {res.status_code}")
        _assert(res.get_json() == {"error": "Unauthorized"}, f"{path}: expected generic body")

    res = client.get("/api/maintenance/status", headers={"X-API-Key": "wrong"})
    _assert(res.status_code == 401, "Expected a wrong key to be rejected")

    _login(client, user_id="editor-1", roles=("editor",))
    res = client.get("/api/maintenance/status")
    _assert(res.status_code == 401, "Non-admin sessions must be rejected")
    print("[PASS] generic 401")


def test_api_key_activation_and_interception():
    app, _ = _make_app()
    api_key = _issue_api_key(app)
    tool = app.test_client()
    headers = {"X-API-Key": api_key}

    res = tool.post(
        "/api/maintenance/activate",
        json={"mode": "construction", "message": "New site coming soon"},
        headers=headers,
    )
    _assert(res.status_code == 200, f"Expected activation via API key, got {res.status_code}")
    body = res.get_json()
    _assert(body["success"] is True and body["status"]["enabled"] is True, f"Unexpected body: {body}")
    _assert(body["status"]["mode"] == "construction", "Expected mode applied")

    visitor = app.test_client()
    res = visitor.get("/", environ_base={"REMOTE_ADDR": "198.51.100.1"})
    _assert(res.status_code == 503, f"Expected visitor intercepted, got {res.status_code}")
    _assert("no-store" in res.headers["Cache-Control"], "Expected no-cache headers")
    _assert(res.headers["Content-Type"] == "text/html; charset=utf-8", f"Unexpected type {res.headers['Content-Type']}")
    _assert(b"New site coming soon" in res.data, "Expected the configured message")

    _assert(visitor.get("/health").status_code == 200, "Health check must stay reachable")
    _assert(tool.get("/api/maintenance/status", headers=headers).status_code == 200, "Control API must stay reachable")

    res = tool.post("/api/maintenance/deactivate", headers=headers)
    _assert(res.get_json() == {"success": True, "message": "Maintenance mode deactivated"}, "Unexpected deactivate body")
    _assert(visitor.get("/").status_code == 200, "Expected site back after deactivation")
    print("[PASS] API key activation and interception")


def test_admin_session_bypasses_the_gate():
    app, _ = _make_app()
    admin = _admin_client(app)
    admin.post("/api/maintenance/activate", json={})

    _assert(admin.get("/").status_code == 200, "Administrators see the real site")
    _assert(app.test_client().get("/").status_code == 503, "Anonymous visitors are intercepted")
    print("[PASS] admin bypass")


def test_ip_whitelist_scenario():
    app, _ = _make_app()
    admin = _admin_client(app)

    res = admin.post("/api/maintenance/settings", json={"mg_enabled": True, "mg_bypass_ips": "10.0.0.7"})
    _assert(res.status_code == 200, f"Expected settings saved, got {res.get_json()}")

    client = app.test_client()
    _assert(client.get("/", environ_base={"REMOTE_ADDR": "10.0.0.7"}).status_code == 200, "Listed IP bypasses")
    _assert(client.get("/", environ_base={"REMOTE_ADDR": "10.0.0.8"}).status_code == 503, "Other IPs are intercepted")

    # Forwarded headers are ignored unless explicitly trusted.
    spoofed = client.get("/", headers={"X-Forwarded-For": "10.0.0.7"}, environ_base={"REMOTE_ADDR": "10.0.0.8"})
    _assert(spoofed.status_code == 503, "Untrusted X-Forwarded-For must be ignored")
    print("[PASS] IP whitelist")


def test_host_api_routes_are_gated():
    app, _ = _make_app()

    @app.route("/api/orders")
    def orders():
        return {"orders": []}

    admin = _admin_client(app)
    admin.post("/api/maintenance/activate", json={})

    visitor = app.test_client()
    _assert(visitor.get("/api/orders").status_code == 503, "Host API routes are intercepted while enabled")
    _assert(admin.get("/api/orders").status_code == 200, "Administrators still reach host API routes")
    _assert(admin.get("/api/maintenance/status").status_code == 200, "Control API must stay reachable")

    admin.post("/api/maintenance/deactivate")
    _assert(visitor.get("/api/orders").status_code == 200, "Expected host API back after deactivation")
    print("[PASS] host API routes gated")


def test_bypass_roles_match_regardless_of_case():
    app, _ = _make_app()
    admin = _admin_client(app)
    admin.post("/api/maintenance/settings", json={"mg_enabled": True, "mg_bypass_roles": "Editor"})

    editor = app.test_client()
    _login(editor, user_id="editor-1", roles=("editor",))
    _assert(editor.get("/").status_code == 200, "Expected a role saved as 'Editor' to bypass")

    viewer = app.test_client()
    _login(viewer, user_id="viewer-1", roles=("Viewer",))
    _assert(viewer.get("/").status_code == 503, "Other roles are intercepted")
    print("[PASS] case-insensitive bypass roles")


def test_forwarded_for_used_when_trusted():
    app, _ = _make_app(trust_proxy_headers=True)
    _admin_client(app).post("/api/maintenance/settings", json={"mg_enabled": True, "mg_bypass_ips": ["10.0.0.7"]})

    res = app.test_client().get(
        "/",
        headers={"X-Forwarded-For": "10.0.0.7, 172.16.0.1"},
        environ_base={"REMOTE_ADDR": "172.16.0.1"},
    )
    _assert(res.status_code == 200, "Expected the first forwarded address to be used")
    print("[PASS] trusted proxy headers")


def test_settings_update_reports_applied_and_rejected():
    app, _ = _make_app()
    admin = _admin_client(app)

    res = admin.post(
        "/api/maintenance/settings",
        json={"mg_title": "Back soon", "title": "ignored", "mg_unknown": 1, "mg_accent_color": "bogus"},
    )
    body = res.get_json()
    _assert(res.status_code == 400, f"Expected partial failure status, got {res.status_code}")
    _assert(body["applied"] == ["mg_title"], f"Unexpected applied list: {body['applied']}")
    _assert(body["rejected"] == ["mg_accent_color"], f"Unexpected rejected list: {body['rejected']}")

    status = admin.get("/api/maintenance/status").get_json()
    _assert(status["title"] == "Back soon", "Expected valid field persisted")

    res = admin.post("/api/maintenance/settings", json={"mg_logo_url": "http://[oops"})
    _assert(res.status_code == 400, f"Expected a rejected URL, not a crash, got {res.status_code}")
    _assert(res.get_json()["rejected"] == ["mg_logo_url"], "Expected the malformed URL reported as rejected")

    res = admin.post("/api/maintenance/settings", json=["not", "a", "mapping"])
    _assert(res.status_code == 400, "Expected non-object body rejected")
    _assert(res.get_json()["error"]["code"] == "VALIDATION_ERROR", "Expected structured validation error")
    print("[PASS] settings update")


def test_request_validation_errors():
    app, _ = _make_app()
    admin = _admin_client(app)

    res = admin.post("/api/maintenance/template", json={})
    _assert(res.status_code == 400, f"Expected missing template rejected, got {res.status_code}")
    error = res.get_json()["error"]
    _assert(error["code"] == "VALIDATION_ERROR" and error["field"] == "template", f"Unexpected error: {error}")

    res = admin.post("/api/maintenance/activate", json={"mode": "vacation"})
    _assert(res.status_code == 400, "Expected unknown mode rejected")
    _assert(res.get_json().get("request_id"), "Expected a request id on errors")

    res = admin.post("/api/maintenance/template", json={"template": "minimal"})
    _assert(res.get_json() == {"success": True, "message": "Template updated", "template": "minimal"}, "Unexpected body")
    print("[PASS] request validation")


def test_toggle_reset_and_audit_log():
    from maintenance_gate.models.action_log import ActionLog

    app, session_factory = _make_app()
    admin = _admin_client(app)

    first = admin.post("/api/maintenance/toggle").get_json()
    second = admin.post("/api/maintenance/toggle").get_json()
    _assert(first["enabled"] is True and second["enabled"] is False, "Expected toggle to flip the switch")

    admin.post("/api/maintenance/settings", json={"mg_title": "Custom"})
    res = admin.post("/api/maintenance/reset")
    _assert(res.status_code == 200, "Expected reset to succeed")
    _assert(admin.get("/api/maintenance/status").get_json()["title"] == "Under Maintenance", "Expected default title")

    db = session_factory()
    try:
        actions = [row.action for row in db.query(ActionLog).order_by(ActionLog.id).all()]
    finally:
        db.close()
    _assert(actions == ["activated", "deactivated", "settings_reset"], f"Unexpected audit trail: {actions}")

    api_key = _issue_api_key(app)
    res = app.test_client().post("/api/maintenance/toggle", headers={"X-API-Key": api_key})
    _assert(res.status_code == 401, "Toggle is admin-session only")
    print("[PASS] toggle, reset and audit log")


def test_preview_renders_without_enabling():
    app, _ = _make_app()
    admin = _admin_client(app)

    res = admin.get("/api/maintenance/preview?template=corporate")
    _assert(res.status_code == 200, f"Expected preview page, got {res.status_code}")
    _assert(b"Maintenance Mode" in res.data, "Expected corporate badge in preview")
    _assert(admin.get("/api/maintenance/status").get_json()["enabled"] is False, "Preview must not enable the gate")
    print("[PASS] preview")


def test_api_key_env_override():
    app, _ = _make_app(maintenance_api_key="env-key-123")
    client = app.test_client()

    res = client.get("/api/maintenance/status", headers={"X-API-Key": "env-key-123"})
    _assert(res.status_code == 200, "Expected env key accepted")

    res = _admin_client(app).post("/api/maintenance/api-key")
    _assert(res.status_code == 400, "Env-managed keys cannot be regenerated")
    print("[PASS] API key override")


def test_license_endpoints():
    app, _ = _make_app()
    admin = _admin_client(app)

    res = admin.post("/api/license/activate", json={"license_key": "BAD-KEY", "email": "owner@example.com"})
    _assert(res.status_code == 400, "Expected rejected key")
    _assert(res.get_json()["message"] == "Invalid license key", "Expected remote message")

    res = admin.post("/api/license/activate", json={"license_key": "GOOD-KEY-0001", "email": "owner@example.com"})
    _assert(res.status_code == 200, f"Expected activation, got {res.get_json()}")

    info = admin.get("/api/license").get_json()
    _assert(info["key"] == "GOOD-KEY...", f"Expected redacted key, got {info['key']}")
    _assert(info["active"] is True and info["effective_plan"] == "business", f"Unexpected info: {info}")

    res = admin.post("/api/license/check").get_json()
    _assert(res["active"] is True, "Expected verification to succeed")

    res = admin.post("/api/license/deactivate")
    _assert(res.get_json()["message"] == "License deactivated successfully", "Expected deactivation")
    _assert(admin.get("/api/license").get_json()["status"] == "unset", "Expected license cleared")
    print("[PASS] license endpoints")


if __name__ == "__main__":
    print("Running control API tests...")
    print()

    test_unauthenticated_requests_are_rejected_generically()
    test_api_key_activation_and_interception()
    test_admin_session_bypasses_the_gate()
    test_ip_whitelist_scenario()
    test_host_api_routes_are_gated()
    test_bypass_roles_match_regardless_of_case()
    test_forwarded_for_used_when_trusted()
    test_settings_update_reports_applied_and_rejected()
    test_request_validation_errors()
    test_toggle_reset_and_audit_log()
    test_preview_renders_without_enabling()
    test_api_key_env_override()
    test_license_endpoints()

    print()
    print("[SUCCESS] All tests passed!")
