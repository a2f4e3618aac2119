from __future__ import annotations

from typing import Literal, Optional

from pydantic import BaseModel, field_validator


class ActivateRequest(BaseModel):
    mode: Optional[Literal["maintenance", "construction", "payment_overdue"]] = None
    template: Optional[str] = None
    message: Optional[str] = None


class TemplateUpdateRequest(BaseModel):
    template: str

    @field_validator("template")
    @classmethod
    def validate_template(cls, v: str) -> str:
        normalized = (v or "").strip()
        if not normalized:
            raise ValueError("Template is required")
        return normalized


class MaintenanceStatusResponse(BaseModel):
    enabled: bool
    mode: str
    template: str
    title: str
    message: str
