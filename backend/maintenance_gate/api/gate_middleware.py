"""
Maintenance gate middleware.

Runs after the auth middleware so the session identity is already on ``g``.
Intercepted requests are answered with the maintenance page and never reach
the view.
"""

import logging

from flask import Response, g, request

from maintenance_gate.api.auth_middleware import is_static_asset_request
from maintenance_gate.api.dependencies import get_services
from maintenance_gate.api.routes import license as license_routes, maintenance as maintenance_routes
from maintenance_gate.services.gate_service import RequestContext

logger = logging.getLogger(__name__)

# The control API must stay reachable so the site can be switched back on.
# Other /api/ routes of the host site are gated like any page.
EXEMPT_PREFIXES = (
    maintenance_routes.bp.url_prefix,
    license_routes.bp.url_prefix,
)

EXEMPT_EXACT = {
    "/health",
}


def is_exempt_path(path: str) -> bool:
    if path in EXEMPT_EXACT:
        return True
    for prefix in EXEMPT_PREFIXES:
        if path == prefix or path.startswith(prefix + "/"):
            return True
    return is_static_asset_request(path)


def get_client_ip(trust_proxy_headers: bool = False) -> str:
    if trust_proxy_headers:
        forwarded = request.headers.get("X-Forwarded-For", "")
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.remote_addr or ""


def build_request_context() -> RequestContext:
    services = get_services()
    user_id = getattr(g, "user_id", None)
    return RequestContext(
        ip=get_client_ip(services.settings.trust_proxy_headers),
        roles=frozenset(getattr(g, "user_roles", frozenset())),
        authenticated=bool(user_id),
        user_id=user_id,
    )


def init_gate_middleware(app):
    """Register the per-request maintenance gate."""

    @app.before_request
    def maintenance_gate():
        if is_exempt_path(request.path):
            return None

        page = get_services().gate.handle(build_request_context())
        if page is None:
            return None

        return Response(page.body, status=page.status, headers=page.headers, mimetype="text/html")
