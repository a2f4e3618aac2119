"""
License management.

Activates, deactivates and verifies the installation's license key against
the remote licensing service, caches the result in the settings table and
answers plan-gated feature checks.

State machine: unset -> active -> (invalid | unset). A cached ``active`` is
trusted for a grace window after the last successful verification; once the
window has passed without a successful re-verification the effective status
is inactive.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from maintenance_gate.services.audit_service import (
    AuditService,
    ACTION_LICENSE_ACTIVATED,
    ACTION_LICENSE_DEACTIVATED,
)
from maintenance_gate.services.license_client import LicenseApiClient
from maintenance_gate.services.settings_store import SettingsStore
from maintenance_gate.utils.exceptions import LicenseTransportError
from maintenance_gate.utils.sanitize import redact_key, sanitize_email, sanitize_text

logger = logging.getLogger(__name__)

SETTING_LICENSE_KEY = "__license.key"
SETTING_LICENSE_EMAIL = "__license.email"
SETTING_LICENSE_STATUS = "__license.status"
SETTING_LICENSE_PLAN = "__license.plan"
SETTING_LICENSE_EXPIRES_AT = "__license.expires_at"
SETTING_LICENSE_LAST_VERIFIED_AT = "__license.last_verified_at"
SETTING_LICENSE_LAST_CHECK = "__license.last_check"

LICENSE_RECORD_KEYS = (
    SETTING_LICENSE_KEY,
    SETTING_LICENSE_EMAIL,
    SETTING_LICENSE_STATUS,
    SETTING_LICENSE_PLAN,
    SETTING_LICENSE_EXPIRES_AT,
    SETTING_LICENSE_LAST_VERIFIED_AT,
)

STATUS_ACTIVE = "active"
STATUS_INVALID = "invalid"
STATUS_UNSET = "unset"

PLAN_FREE = "free"
PLAN_PRO = "pro"
PLAN_BUSINESS = "business"

_FREE_FEATURES = ("basic_templates", "color_customization", "basic_access_control")
_PRO_FEATURES = _FREE_FEATURES + (
    "premium_templates",
    "countdown_timer",
    "social_links",
    "custom_css",
    "api_access",
)
_BUSINESS_FEATURES = _PRO_FEATURES + ("white_label", "priority_support", "multisite")

# free ⊂ pro ⊂ business
PLAN_FEATURES: Dict[str, frozenset] = {
    PLAN_FREE: frozenset(_FREE_FEATURES),
    PLAN_PRO: frozenset(_PRO_FEATURES),
    PLAN_BUSINESS: frozenset(_BUSINESS_FEATURES),
}

DEFAULT_GRACE_PERIOD = timedelta(days=7)
DEFAULT_CHECK_INTERVAL = timedelta(days=1)


def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _normalize_plan(value: Any) -> str:
    plan = str(value or "").strip().lower()
    return plan if plan in PLAN_FEATURES else PLAN_FREE


@dataclass(frozen=True)
class LicenseInfo:
    key: str = ""
    email: str = ""
    status: str = STATUS_UNSET
    plan: str = PLAN_FREE
    expires_at: Optional[str] = None
    last_verified_at: Optional[datetime] = None

    def to_dict(self, redact: bool = True) -> Dict[str, Any]:
        return {
            "key": redact_key(self.key) if (redact and self.key) else self.key,
            "email": self.email,
            "status": self.status,
            "plan": self.plan,
            "expires_at": self.expires_at,
            "last_verified_at": self.last_verified_at.isoformat() if self.last_verified_at else None,
        }


@dataclass(frozen=True)
class LicenseResult:
    success: bool
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message, "data": self.data}


class LicenseManager:
    """License state for one installation.

    Network I/O happens only in activate/deactivate/verify. Every transport
    failure is converted to a LicenseResult or a boolean; nothing raises to
    the caller.
    """

    def __init__(
        self,
        store: SettingsStore,
        audit: AuditService,
        client: LicenseApiClient,
        grace_period: timedelta = DEFAULT_GRACE_PERIOD,
        check_interval: timedelta = DEFAULT_CHECK_INTERVAL,
        now: Optional[Callable[[], datetime]] = None,
    ):
        self.store = store
        self.audit = audit
        self.client = client
        self.grace_period = grace_period
        self.check_interval = check_interval
        self._now = now or (lambda: datetime.now(timezone.utc))

    # ---- reads ----

    def get_license_info(self) -> LicenseInfo:
        key = self.store.get_internal(SETTING_LICENSE_KEY) or ""
        status = self.store.get_internal(SETTING_LICENSE_STATUS) or (STATUS_INVALID if key else STATUS_UNSET)
        return LicenseInfo(
            key=key,
            email=self.store.get_internal(SETTING_LICENSE_EMAIL) or "",
            status=status,
            plan=_normalize_plan(self.store.get_internal(SETTING_LICENSE_PLAN)),
            expires_at=self.store.get_internal(SETTING_LICENSE_EXPIRES_AT) or None,
            last_verified_at=_parse_timestamp(self.store.get_internal(SETTING_LICENSE_LAST_VERIFIED_AT)),
        )

    def _within_grace(self, last_verified_at: Optional[datetime]) -> bool:
        if last_verified_at is None:
            return False
        return (self._now() - last_verified_at) < self.grace_period

    def is_active(self) -> bool:
        """Cached status is active and was confirmed within the grace window. No I/O."""
        info = self.get_license_info()
        return info.status == STATUS_ACTIVE and self._within_grace(info.last_verified_at)

    def get_plan(self) -> str:
        """Effective plan tier: the stored plan while active, otherwise free."""
        if not self.is_active():
            return PLAN_FREE
        return self.get_license_info().plan

    @staticmethod
    def has_feature(plan_tier: str, feature_name: str) -> bool:
        features = PLAN_FEATURES.get(plan_tier)
        if features is None:
            return False
        return feature_name in features

    def feature_enabled(self, feature_name: str) -> bool:
        """Check a feature against the current effective plan."""
        return self.has_feature(self.get_plan(), feature_name)

    # ---- remote operations ----

    def activate(self, license_key: str, email: str = "", actor: Optional[str] = None) -> LicenseResult:
        """Activate ``license_key`` remotely and persist the license on success."""
        license_key = sanitize_text(license_key)
        if not license_key:
            return LicenseResult(False, "License key is required")

        clean_email = sanitize_email(email)
        if clean_email is None:
            return LicenseResult(False, "Invalid email address")

        try:
            body = self.client.activate(license_key, clean_email)
        except LicenseTransportError as e:
            return LicenseResult(False, f"Connection error: {e.reason}")

        if not body.get("success"):
            message = body.get("message") or "License activation failed"
            logger.info(f"License activation rejected for {redact_key(license_key)}: {message}")
            return LicenseResult(False, str(message))

        plan = _normalize_plan(body.get("plan"))
        self.store.set_internal_many({
            SETTING_LICENSE_KEY: license_key,
            SETTING_LICENSE_EMAIL: clean_email,
            SETTING_LICENSE_STATUS: STATUS_ACTIVE,
            SETTING_LICENSE_PLAN: plan,
            SETTING_LICENSE_EXPIRES_AT: body.get("expires_at") or "",
            SETTING_LICENSE_LAST_VERIFIED_AT: self._now().isoformat(),
        }, updated_by=actor)

        self.audit.log_license_action(
            ACTION_LICENSE_ACTIVATED,
            user_id=actor,
            license_key=redact_key(license_key),
            plan=plan,
        )
        logger.info(f"License {redact_key(license_key)} activated on plan {plan}")
        return LicenseResult(True, "License activated successfully!", data=body)

    def deactivate(self, actor: Optional[str] = None) -> LicenseResult:
        """Release the license remotely (best effort) and always clear it locally."""
        license_key = self.store.get_internal(SETTING_LICENSE_KEY) or ""
        if not license_key:
            return LicenseResult(False, "No license key found")

        try:
            self.client.deactivate(license_key)
        except LicenseTransportError as e:
            logger.warning(f"Remote license deactivation failed, clearing locally anyway: {e.reason}")

        self.store.delete_internal(*LICENSE_RECORD_KEYS)
        self.audit.log_license_action(ACTION_LICENSE_DEACTIVATED, user_id=actor)
        logger.info(f"License {redact_key(license_key)} deactivated")
        return LicenseResult(True, "License deactivated successfully")

    def verify(self) -> bool:
        """Re-check the stored license with the licensing service.

        Safe to run repeatedly or concurrently: every outcome overwrites the
        same fields.
        """
        license_key = self.store.get_internal(SETTING_LICENSE_KEY) or ""
        if not license_key:
            return False

        try:
            body = self.client.verify(license_key)
        except LicenseTransportError as e:
            info = self.get_license_info()
            if self._within_grace(info.last_verified_at):
                logger.warning(f"License server unreachable, using cached status '{info.status}': {e.reason}")
                return info.status == STATUS_ACTIVE
            logger.warning(f"License server unreachable and grace period expired: {e.reason}")
            self.store.set_internal(SETTING_LICENSE_STATUS, STATUS_INVALID)
            return False

        if body.get("success"):
            status = STATUS_ACTIVE if str(body.get("status") or STATUS_ACTIVE).lower() == STATUS_ACTIVE else STATUS_INVALID
            self.store.set_internal_many({
                SETTING_LICENSE_STATUS: status,
                SETTING_LICENSE_EXPIRES_AT: body.get("expires_at") or "",
                SETTING_LICENSE_PLAN: _normalize_plan(body.get("plan")),
                SETTING_LICENSE_LAST_VERIFIED_AT: self._now().isoformat(),
            })
            return status == STATUS_ACTIVE

        logger.info(f"License {redact_key(license_key)} reported invalid by license server")
        self.store.set_internal(SETTING_LICENSE_STATUS, STATUS_INVALID)
        return False

    def check_license_status(self, force: bool = False) -> Optional[bool]:
        """Run verify() at most once per check interval.

        Returns None when the check is not due yet.
        """
        now = self._now()
        last_check = _parse_timestamp(self.store.get_internal(SETTING_LICENSE_LAST_CHECK))
        if not force and last_check is not None and (now - last_check) < self.check_interval:
            return None

        result = self.verify()
        self.store.set_internal(SETTING_LICENSE_LAST_CHECK, now.isoformat())
        return result
