"""Variant model."""
from sqlalchemy import Column, String, Integer, Text, Boolean, ForeignKey, Uuid
from sqlalchemy.orm import relationship
import uuid

from expdash.database import Base


class Variant(Base):
    """One traffic bucket of an experiment."""

    __tablename__ = "variants"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    experiment_id = Column(Uuid, ForeignKey("experiments.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(100), nullable=False)
    description = Column(Text)
    traffic_percentage = Column(Integer, nullable=False)  # 0-100
    is_control = Column(Boolean, default=False, nullable=False)
    position = Column(Integer, default=0, nullable=False)

    # Relationships
    experiment = relationship("Experiment", back_populates="variants")

    def __repr__(self):
        return f"<Variant {self.name} traffic={self.traffic_percentage}%>"
