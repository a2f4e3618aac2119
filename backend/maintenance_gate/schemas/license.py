from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator


class LicenseActivateRequest(BaseModel):
    license_key: str
    email: Optional[str] = None

    @field_validator("license_key")
    @classmethod
    def validate_license_key(cls, v: str) -> str:
        # Blank keys are reported by the license manager with its own message.
        return (v or "").strip()


class LicenseInfoResponse(BaseModel):
    key: str
    email: str
    status: str
    plan: str
    effective_plan: str
    active: bool
    expires_at: Optional[str] = None
    last_verified_at: Optional[datetime] = None
