"""Appointment model definitions."""

import uuid
from datetime import timedelta

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Integer, String, Text, func
from backend.database import Base
from backend.scheduling.intervals import TimeInterval
from backend.scheduling.status import AppointmentStatus


class Appointment(Base):
    """Represents a booked appointment between a professional and a patient."""
    __tablename__ = "appointments"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    organization_id = Column(String(36), ForeignKey("organizations.id"), nullable=False)
    professional_id = Column(String(36), ForeignKey("users.id"), nullable=False)
    patient_id = Column(String(36), ForeignKey("patients.id"), nullable=False)
    scheduled_date = Column(DateTime, nullable=False)
    duration = Column(Integer, nullable=False, default=30)
    status = Column(
        Enum(AppointmentStatus, native_enum=False, length=16),
        nullable=False,
        default=AppointmentStatus.SCHEDULED,
    )
    type = Column(String)
    notes = Column(Text)
    medical_record_id = Column(String(36))
    created_via = Column(String, default="dashboard")
    verification_code = Column(String(16))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    @property
    def end_date(self):
        return self.scheduled_date + timedelta(minutes=self.duration)

    @property
    def interval(self) -> TimeInterval:
        return TimeInterval(self.scheduled_date, self.end_date)
