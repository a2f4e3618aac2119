"""
Setting model for the maintenance gate key/value store.

One row per option. Public options carry the ``mg_`` prefix; internal
state (license cache, API key, job bookkeeping) uses ``__namespace.key``.
"""

import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text

from maintenance_gate.database import Base


class Setting(Base):
    """Key-value row. ``value`` holds JSON text, decoded by SettingsStore."""

    __tablename__ = "mg_settings"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    key = Column(String(100), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=True)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)
    updated_by = Column(String(255), nullable=True)
