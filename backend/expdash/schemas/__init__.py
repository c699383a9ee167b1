"""Pydantic schemas for request/response validation."""
from expdash.schemas.targeting import TargetingRules
from expdash.schemas.experiment import (
    VariantIn,
    ExperimentCreate,
    ExperimentUpdate,
    StatusChangeRequest,
    ExperimentResponse,
)
from expdash.schemas.audit import AuditLogResponse, AuditLogListResponse, ValidationResponse
from expdash.schemas.feed import LiveExperiment, LiveFeedResponse

__all__ = [
    "TargetingRules",
    "VariantIn",
    "ExperimentCreate",
    "ExperimentUpdate",
    "StatusChangeRequest",
    "ExperimentResponse",
    "AuditLogResponse",
    "AuditLogListResponse",
    "ValidationResponse",
    "LiveExperiment",
    "LiveFeedResponse",
]
