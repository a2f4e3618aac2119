import hmac
import logging
import secrets
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from maintenance_gate.services.audit_service import (
    AuditService,
    ACTION_API_KEY_REGENERATED,
    ACTION_SETTINGS_RESET,
)
from maintenance_gate.services.gate_service import GateEngine, InterceptionPage
from maintenance_gate.services.settings_store import (
    FIELDS_BY_NAME,
    MODES,
    SETTING_PREFIX,
    SettingsStore,
)
from maintenance_gate.utils.sanitize import sanitize_text

logger = logging.getLogger(__name__)

SETTING_API_KEY = "__api.key"


@dataclass(frozen=True)
class ControlResult:
    success: bool
    message: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        payload = {"success": self.success, "message": self.message}
        payload.update(self.data)
        return payload


class MaintenanceControlService:
    """Entry points used by the admin UI and external management tools.

    Thin wrappers over the settings store, the gate and the audit log. Input
    shape is validated by the HTTP layer; value validation is the store's.
    """

    def __init__(
        self,
        store: SettingsStore,
        audit: AuditService,
        gate: GateEngine,
        api_key_override: Optional[str] = None,
    ):
        self.store = store
        self.audit = audit
        self.gate = gate
        self.api_key_override = api_key_override or None

    def get_status(self) -> Dict[str, Any]:
        snapshot = self.store.snapshot()
        return {
            "enabled": snapshot.enabled,
            "mode": snapshot.mode,
            "template": snapshot.template,
            "title": snapshot.title,
            "message": snapshot.message,
        }

    def activate(
        self,
        mode: Optional[str] = None,
        template: Optional[str] = None,
        message: Optional[str] = None,
        actor: Optional[str] = None,
    ) -> ControlResult:
        """Apply the optional fields, then force maintenance mode on."""
        updates: Dict[str, Any] = {}
        if mode is not None:
            if mode not in MODES:
                return ControlResult(False, f"Invalid mode: {mode}")
            updates["mode"] = mode
        if template is not None:
            updates["template"] = template
        if message is not None:
            updates["message"] = message
        updates["enabled"] = True

        rejected = [r.name for r in self.store.set_many(updates, updated_by=actor) if not r.saved]
        if "enabled" in rejected:
            return ControlResult(False, "Could not save settings")

        self.audit.log_mode_change(True, user_id=actor, source="api", **{k: v for k, v in updates.items() if k != "enabled"})
        return ControlResult(
            True,
            "Maintenance mode activated",
            {"status": self.get_status(), "rejected": rejected} if rejected else {"status": self.get_status()},
        )

    def deactivate(self, actor: Optional[str] = None) -> ControlResult:
        self.store.set("enabled", False, updated_by=actor)
        self.audit.log_mode_change(False, user_id=actor, source="api")
        return ControlResult(True, "Maintenance mode deactivated")

    def toggle(self, actor: Optional[str] = None) -> ControlResult:
        """Flip maintenance mode (admin quick toggle)."""
        new_status = not self.store.get("enabled")
        self.store.set("enabled", new_status, updated_by=actor)
        self.audit.log_mode_change(new_status, user_id=actor, source="toggle")
        message = "Maintenance mode activated" if new_status else "Maintenance mode deactivated"
        return ControlResult(True, message, {"enabled": new_status})

    def update_template(self, template: str, actor: Optional[str] = None) -> ControlResult:
        result = self.store.set("template", template, updated_by=actor)
        if not result.saved or not result.value:
            return ControlResult(False, "Could not save template")
        return ControlResult(True, "Template updated", {"template": result.value})

    def update_settings(self, values: Mapping[str, Any], actor: Optional[str] = None) -> ControlResult:
        """Bulk update. Only ``mg_``-prefixed keys naming a known setting are applied."""
        recognized: Dict[str, Any] = {}
        ignored = []
        for key, value in values.items():
            if not isinstance(key, str) or not key.startswith(SETTING_PREFIX):
                ignored.append(key)
                continue
            if key[len(SETTING_PREFIX):] not in FIELDS_BY_NAME:
                ignored.append(key)
                continue
            recognized[key] = value

        results = self.store.set_many(recognized, updated_by=actor)
        applied = [f"{SETTING_PREFIX}{r.name}" for r in results if r.saved]
        rejected = [f"{SETTING_PREFIX}{r.name}" for r in results if not r.saved]
        if ignored:
            logger.debug(f"Ignored unrecognized settings keys: {ignored}")

        if rejected:
            return ControlResult(False, "Some settings could not be saved", {"applied": applied, "rejected": rejected})
        return ControlResult(True, "Settings updated", {"applied": applied, "rejected": []})

    def reset_settings(self, actor: Optional[str] = None) -> ControlResult:
        self.store.reset(updated_by=actor)
        self.audit.log_action(ACTION_SETTINGS_RESET, user_id=actor)
        return ControlResult(True, "Settings reset to defaults")

    def preview(self, template: Optional[str] = None) -> InterceptionPage:
        """Render the maintenance page as visitors would see it, enabled or not."""
        snapshot = self.store.snapshot()
        return self.gate.render_interception(snapshot, template_id=sanitize_text(template) or None)

    # ---- external API key ----

    def get_api_key(self) -> str:
        if self.api_key_override:
            return self.api_key_override
        return self.store.get_internal(SETTING_API_KEY) or ""

    def regenerate_api_key(self, actor: Optional[str] = None) -> ControlResult:
        if self.api_key_override:
            return ControlResult(False, "API key is set by the MAINTENANCE_API_KEY environment variable")
        new_key = secrets.token_urlsafe(32)
        self.store.set_internal(SETTING_API_KEY, new_key, updated_by=actor)
        self.audit.log_action(ACTION_API_KEY_REGENERATED, user_id=actor)
        return ControlResult(True, "API key regenerated", {"api_key": new_key})

    def verify_api_key(self, candidate: Optional[str]) -> bool:
        """Constant-time comparison against the configured key."""
        stored = self.get_api_key()
        if not candidate or not stored:
            return False
        return hmac.compare_digest(stored.encode("utf-8"), candidate.encode("utf-8"))
