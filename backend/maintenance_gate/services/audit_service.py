import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union

from sqlalchemy.orm import sessionmaker

from maintenance_gate.models.action_log import ActionLog

logger = logging.getLogger(__name__)

ACTION_ACTIVATED = "activated"
ACTION_DEACTIVATED = "deactivated"
ACTION_SETTINGS_RESET = "settings_reset"
ACTION_API_KEY_REGENERATED = "api_key_regenerated"
ACTION_LICENSE_ACTIVATED = "license_activated"
ACTION_LICENSE_DEACTIVATED = "license_deactivated"


class AuditService:
    """Append-only action log for mode toggles and license events"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def log_action(self,
                   action: str,
                   details: Optional[Union[Dict[str, Any], str]] = None,
                   user_id: Optional[str] = None) -> ActionLog:
        """
        Append an entry to the action log

        Args:
            action: Action performed ("activated", "license_activated", ...)
            details: Additional context; dicts are stored as JSON
            user_id: Who performed the action (None for system jobs)

        Returns:
            The created log entry
        """
        if isinstance(details, dict):
            encoded = json.dumps(details, default=str)
        else:
            encoded = details

        entry = ActionLog(
            action=action,
            details=encoded,
            user_id=user_id,
            created_at=datetime.utcnow()
        )

        db = self._session_factory()
        try:
            db.add(entry)
            db.commit()
            db.refresh(entry)
            db.expunge(entry)
        finally:
            db.close()

        logger.info(f"Action logged: {action} by {user_id or 'system'}")
        return entry

    # Convenience methods for common events

    def log_mode_change(self, enabled: bool, user_id: Optional[str] = None, **details) -> ActionLog:
        """Log maintenance mode being switched on or off"""
        action = ACTION_ACTIVATED if enabled else ACTION_DEACTIVATED
        return self.log_action(action, details or None, user_id)

    def log_license_action(self, action: str, user_id: Optional[str] = None, **details) -> ActionLog:
        """Log a license-related event"""
        return self.log_action(action, details, user_id)
