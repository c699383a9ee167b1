"""Database models."""
from expdash.models.user import User
from expdash.models.experiment import Experiment, ExperimentStatus
from expdash.models.variant import Variant
from expdash.models.audit_log import AuditLog, AuditAction

__all__ = ["User", "Experiment", "ExperimentStatus", "Variant", "AuditLog", "AuditAction"]
