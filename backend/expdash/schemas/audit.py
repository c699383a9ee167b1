"""Audit log and go-live check schemas."""
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Optional
from datetime import datetime
from uuid import UUID

from expdash.models.audit_log import AuditAction


class AuditActor(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: Optional[str] = None
    email: str


class AuditLogResponse(BaseModel):
    """One entry of an experiment's audit trail."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    experiment_id: UUID
    action: AuditAction
    changes: Dict[str, Any]
    user: AuditActor
    created_at: datetime


class AuditLogListResponse(BaseModel):
    entries: List[AuditLogResponse]
    count: int


class ValidationResponse(BaseModel):
    """Outcome of a go-live pre-flight check."""

    valid: bool
    errors: List[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "valid": False,
                "errors": [
                    "Traffic allocation must sum to 100% (currently 97%)",
                    "Primary KPI must be selected"
                ]
            }
        }
