"""User model."""
from sqlalchemy import Column, String, DateTime, Uuid
from sqlalchemy.orm import relationship
from datetime import datetime
import uuid

from expdash.database import Base


class User(Base):
    """Dashboard user with API key authentication."""

    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, nullable=False, index=True)
    name = Column(String(255))
    api_key_hash = Column(String(255), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    experiments = relationship("Experiment", back_populates="owner")

    def __repr__(self):
        return f"<User {self.email}>"
