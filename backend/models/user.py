"""User model definitions."""

import uuid

from sqlalchemy import Boolean, Column, ForeignKey, String
from backend.database import Base


class User(Base):
    """Represents a staff member of an organization."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), ForeignKey("organizations.id"), index=True, nullable=False)
    name = Column(String)
    email = Column(String, unique=True, index=True)
    hashed_password = Column(String)
    role = Column(String)  # admin/professional/receptionist
    is_active = Column(Boolean, default=True)
