"""
Authentication middleware.

Loads the signed-session identity into the request context and guards the
control API. Failures are always a generic 401 so callers cannot tell a
missing session from a wrong API key.
"""

import logging
from functools import wraps
from typing import Optional

from flask import request, g, jsonify, session

from maintenance_gate.api.dependencies import get_services
from maintenance_gate.services.license_tick_service import schedule_license_check_if_needed

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"

STATIC_ROUTE_PREFIXES = (
    "/assets/",
    "/static/",
)

STATIC_ROUTE_EXACT = {
    "/favicon.ico",
    "/robots.txt",
    "/apple-touch-icon.png",
}


def is_static_asset_request(path: str) -> bool:
    if path.startswith("/api/"):
        return False
    if path in STATIC_ROUTE_EXACT:
        return True
    return path.startswith(STATIC_ROUTE_PREFIXES)


def _session_roles() -> frozenset:
    raw = session.get("roles") or []
    if isinstance(raw, str):
        raw = raw.split(",")
    return frozenset(str(role).strip().lower() for role in raw if str(role).strip())


def init_auth_middleware(app):
    """
    Initialize authentication middleware for the Flask app.

    Runs before every request and attaches ``g.user_id``/``g.user_roles``
    from the signed session cookie. Admin API traffic also schedules the
    opportunistic license re-check.
    """

    @app.before_request
    def authenticate_request():
        g.user_id = None
        g.user_roles = frozenset()
        g.api_key_authenticated = False

        path = request.path
        if is_static_asset_request(path):
            return None

        user_id = session.get("user_id")
        if user_id:
            g.user_id = str(user_id)
            g.user_roles = _session_roles()

        if path.startswith("/api/") and is_current_user_admin():
            services = get_services()
            if services.settings.license_check_on_admin_requests:
                schedule_license_check_if_needed(
                    services.license_manager,
                    min_interval_seconds=services.settings.license_check_min_interval_seconds,
                )

        return None


def is_current_user_admin() -> bool:
    """Return True if the signed-in user holds one of the configured admin roles."""
    if not getattr(g, "user_id", None):
        return False

    admin_roles = set(get_services().settings.get_admin_roles())
    if not admin_roles:
        return False
    return bool(admin_roles.intersection(getattr(g, "user_roles", frozenset())))


def _unauthorized():
    return jsonify({"error": "Unauthorized"}), 401


def require_admin(f):
    """Decorator to require an admin session for a route."""

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not is_current_user_admin():
            return _unauthorized()
        return f(*args, **kwargs)

    return decorated_function


def require_api_access(f):
    """
    Decorator for routes usable by admins and external tools.

    Accepts an admin session or an ``X-API-Key`` header matching the
    configured key.

    Usage:
        @bp.route("/status")
        @require_api_access
        def status():
            ...
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        if is_current_user_admin():
            return f(*args, **kwargs)

        candidate = request.headers.get(API_KEY_HEADER)
        if candidate and get_services().control.verify_api_key(candidate):
            g.api_key_authenticated = True
            return f(*args, **kwargs)

        logger.info(f"Rejected control API request to {request.path}")
        return _unauthorized()

    return decorated_function


def get_current_actor() -> Optional[str]:
    """
    Who to record in audit entries.

    The session user id, "api" for API key callers, None otherwise.
    """
    user_id = getattr(g, "user_id", None)
    if user_id:
        return str(user_id)
    if getattr(g, "api_key_authenticated", False):
        return "api"
    return None
