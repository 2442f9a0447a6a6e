"""Organization (tenant) model definitions."""

import uuid

from sqlalchemy import Column, DateTime, JSON, String, func
from backend.database import Base


class Organization(Base):
    """Represents a clinic tenant.

    ``settings`` holds the scheduling configuration, e.g.::

        {
            "working_hours": {"monday": {"start": "08:00", "end": "18:00"}, "sunday": {"start": None, "end": None}},
            "breaks": [{"start": "12:00", "end": "13:30"}],
            "slot_minutes": 30,
        }
    """
    __tablename__ = "organizations"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    settings = Column(JSON, default=dict)
    created_at = Column(DateTime, server_default=func.now())
