from maintenance_gate.models.setting import Setting
from maintenance_gate.models.action_log import ActionLog

__all__ = [
    "Setting",
    "ActionLog",
]
