"""Patient model definitions."""

import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, func
from backend.database import Base


class Patient(Base):
    """Represents a patient registered with an organization."""
    __tablename__ = "patients"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), ForeignKey("organizations.id"), index=True, nullable=False)
    name = Column(String, nullable=False)
    email = Column(String, index=True)
    phone = Column(String)
    created_at = Column(DateTime, server_default=func.now())
