"""Experiment model."""
from sqlalchemy import Column, String, Text, DateTime, ForeignKey, Uuid, Enum as SQLEnum
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid
import enum

from expdash.database import Base, JSONType


class ExperimentStatus(str, enum.Enum):
    """Experiment lifecycle status."""
    DRAFT = "DRAFT"
    LIVE = "LIVE"
    PAUSED = "PAUSED"
    ENDED = "ENDED"


class Experiment(Base):
    """A/B experiment record: variants, targeting, KPIs and lifecycle status."""

    __tablename__ = "experiments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    name = Column(String(255), nullable=False)
    description = Column(Text)
    hypothesis = Column(Text)

    # Metrics
    primary_kpi = Column(String(100))
    secondary_kpis = Column(JSONType, default=list, nullable=False)  # ["bounce_rate", ...]

    # Serialized TargetingRules: {"device": ["mobile"], "country": [], ...}
    targeting = Column(JSONType, default=dict, nullable=False)

    status = Column(SQLEnum(ExperimentStatus), default=ExperimentStatus.DRAFT, nullable=False, index=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    go_live_at = Column(DateTime)

    # Relationships
    owner = relationship("User", back_populates="experiments")
    variants = relationship(
        "Variant",
        back_populates="experiment",
        cascade="all, delete-orphan",
        order_by="Variant.position"
    )
    audit_logs = relationship(
        "AuditLog",
        back_populates="experiment",
        cascade="all, delete-orphan",
        order_by="AuditLog.created_at"
    )

    def __repr__(self):
        return f"<Experiment {self.name} status={self.status.value}>"
