"""Audit log model."""
from sqlalchemy import Column, DateTime, ForeignKey, Uuid, Enum as SQLEnum, event
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from expdash.database import Base, JSONType


class AuditAction(str, enum.Enum):
    """Audit action vocabulary shared with downstream consumers."""
    CREATED = "created"
    UPDATED = "updated"
    WENT_LIVE = "went_live"
    PAUSED = "paused"
    RESUMED = "resumed"
    ENDED = "ended"
    DELETED = "deleted"


class AuditLog(Base):
    """Append-only record of one state-changing action on an experiment."""

    __tablename__ = "audit_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    experiment_id = Column(Uuid, ForeignKey("experiments.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id"), nullable=False)
    action = Column(SQLEnum(AuditAction, values_callable=lambda e: [m.value for m in e]), nullable=False)
    changes = Column(JSONType, default=dict, nullable=False)  # {"status": {"from": "DRAFT", "to": "LIVE"}}
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    # Relationships
    experiment = relationship("Experiment", back_populates="audit_logs")
    user = relationship("User")

    def __repr__(self):
        return f"<AuditLog {self.action.value} experiment={self.experiment_id}>"


@event.listens_for(AuditLog, "before_update")
def _refuse_audit_update(mapper, connection, target):
    raise ValueError("Audit log entries are immutable")
