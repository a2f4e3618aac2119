from datetime import datetime
from sqlalchemy import Column, Integer, String, Text, DateTime

from maintenance_gate.database import Base


class ActionLog(Base):
    """Append-only log of maintenance toggles and license events"""
    __tablename__ = "mg_action_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    action = Column(String(50), nullable=False, index=True)  # "activated", "license_activated", ...
    details = Column(Text, nullable=True)                     # JSON-encoded context
    user_id = Column(String(255), nullable=True)              # Who performed the action
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
