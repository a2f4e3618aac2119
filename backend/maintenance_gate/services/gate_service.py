"""
Per-request maintenance gate.

Decides whether a request sees the real site (BYPASS) or the maintenance
page (INTERCEPT) and renders the page for intercepted requests.
"""

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Optional

from maintenance_gate.services.license_service import LicenseManager
from maintenance_gate.services.settings_store import SettingsSnapshot, SettingsStore
from maintenance_gate.services.template_service import (
    TemplateRegistry,
    build_render_context,
    restrict_to_plan,
)

logger = logging.getLogger(__name__)


class GateDecision(str, enum.Enum):
    BYPASS = "bypass"
    INTERCEPT = "intercept"


@dataclass(frozen=True)
class RequestContext:
    """What the gate knows about the requester."""
    ip: str = ""
    roles: frozenset = field(default_factory=frozenset)
    authenticated: bool = False
    user_id: Optional[str] = None


BypassPredicate = Callable[[RequestContext], bool]

NO_CACHE_HEADERS: Dict[str, str] = {
    "Cache-Control": "no-cache, must-revalidate, max-age=0, no-store, private",
    "Expires": "Wed, 11 Jan 1984 05:00:00 GMT",
    "Pragma": "no-cache",
}

INTERCEPT_STATUS = 503


@dataclass(frozen=True)
class InterceptionPage:
    body: str
    template_id: str
    status: int = INTERCEPT_STATUS
    headers: Dict[str, str] = field(default_factory=lambda: dict(NO_CACHE_HEADERS))


class GateEngine:
    """Bypass/intercept decision plus maintenance page rendering.

    Extra bypass rules are injected as predicates; they run after the role
    and IP checks and any one returning True grants BYPASS.
    """

    def __init__(
        self,
        store: SettingsStore,
        templates: TemplateRegistry,
        license_manager: Optional[LicenseManager] = None,
        bypass_predicates: Iterable[BypassPredicate] = (),
        site_name: str = "",
        admin_email: str = "",
    ):
        self.store = store
        self.templates = templates
        self.license_manager = license_manager
        self.bypass_predicates = list(bypass_predicates)
        self.site_name = site_name
        self.admin_email = admin_email

    def add_bypass_predicate(self, predicate: BypassPredicate) -> None:
        self.bypass_predicates.append(predicate)

    def evaluate(self, snapshot: SettingsSnapshot, context: RequestContext) -> GateDecision:
        """Pure decision for one request against one settings snapshot."""
        if not snapshot.enabled:
            return GateDecision.BYPASS

        if context.authenticated and snapshot.bypass_roles.intersection(context.roles):
            return GateDecision.BYPASS

        if context.ip and context.ip in snapshot.bypass_ips:
            return GateDecision.BYPASS

        for predicate in self.bypass_predicates:
            try:
                if predicate(context):
                    return GateDecision.BYPASS
            except Exception:
                logger.exception(f"Bypass predicate {getattr(predicate, '__name__', predicate)!r} failed")

        return GateDecision.INTERCEPT

    def _feature_enabled(self, feature_name: str) -> bool:
        if self.license_manager is None:
            return True
        return self.license_manager.feature_enabled(feature_name)

    def render_interception(self, snapshot: SettingsSnapshot, template_id: Optional[str] = None) -> InterceptionPage:
        """Render the maintenance page for ``snapshot`` (503, no-cache headers)."""
        context = build_render_context(snapshot, site_name=self.site_name, admin_email=self.admin_email)
        context = restrict_to_plan(context, self._feature_enabled)

        template = self.templates.resolve(template_id or snapshot.template)
        body = self.templates.render(template.id, context)
        return InterceptionPage(body=body, template_id=template.id)

    def handle(self, context: RequestContext) -> Optional[InterceptionPage]:
        """Evaluate a request; returns the page to serve, or None to let it through."""
        snapshot = self.store.snapshot()
        decision = self.evaluate(snapshot, context)
        if decision is GateDecision.BYPASS:
            return None

        logger.debug(f"Intercepting request from {context.ip or 'unknown'}")
        return self.render_interception(snapshot)
