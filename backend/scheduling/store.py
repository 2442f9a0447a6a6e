"""Persistence port of the scheduling engine and its SQLAlchemy adapter."""

import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator, Protocol

from sqlalchemy.orm import Session

from backend.models.appointment import Appointment
from backend.models.organization import Organization
from backend.models.patient import Patient
from backend.models.user import User
from backend.scheduling.status import ACTIVE_STATUSES

logger = logging.getLogger(__name__)


class AppointmentStore(Protocol):
    def get(self, tenant_id: str, appointment_id: str) -> Appointment | None: ...

    def list_active(
        self,
        tenant_id: str,
        professional_id: str,
        range_start: datetime | None = None,
        range_end: datetime | None = None,
        exclude_appointment_id: str | None = None,
    ) -> list[Appointment]: ...

    def add(self, appointment: Appointment) -> Appointment: ...

    def save(self, appointment: Appointment) -> Appointment: ...

    def professional_exists(self, tenant_id: str, professional_id: str) -> bool: ...

    def patient_exists(self, tenant_id: str, patient_id: str) -> bool: ...

    def organization_settings(self, tenant_id: str) -> dict | None: ...

    def booking_guard(self, tenant_id: str, professional_id: str): ...


class SqlAlchemyAppointmentStore:
    """Tenant-scoped appointment persistence on top of a request session."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, tenant_id: str, appointment_id: str) -> Appointment | None:
        return self.db.query(Appointment).filter(
            Appointment.id == appointment_id,
            Appointment.organization_id == tenant_id,
        ).first()

    def list_active(
        self,
        tenant_id: str,
        professional_id: str,
        range_start: datetime | None = None,
        range_end: datetime | None = None,
        exclude_appointment_id: str | None = None,
    ) -> list[Appointment]:
        query = self.db.query(Appointment).filter(
            Appointment.organization_id == tenant_id,
            Appointment.professional_id == professional_id,
            Appointment.status.in_(list(ACTIVE_STATUSES)),
        )
        if range_start is not None:
            query = query.filter(Appointment.scheduled_date >= range_start)
        if range_end is not None:
            query = query.filter(Appointment.scheduled_date < range_end)
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)

        return query.order_by(Appointment.scheduled_date.asc()).all()

    def add(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def save(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self.db.commit()
        self.db.refresh(appointment)
        return appointment

    def professional_exists(self, tenant_id: str, professional_id: str) -> bool:
        return self.db.query(User.id).filter(
            User.id == professional_id,
            User.organization_id == tenant_id,
        ).first() is not None

    def patient_exists(self, tenant_id: str, patient_id: str) -> bool:
        return self.db.query(Patient.id).filter(
            Patient.id == patient_id,
            Patient.organization_id == tenant_id,
        ).first() is not None

    def organization_settings(self, tenant_id: str) -> dict | None:
        organization = self.db.query(Organization).filter(Organization.id == tenant_id).first()
        if organization is None:
            return None
        return organization.settings or {}

    @contextmanager
    def booking_guard(self, tenant_id: str, professional_id: str) -> Iterator[None]:
        """Serialize calendar writes for one professional until commit.

        Locks the professional's row so a concurrent booking for the same
        calendar waits here and then re-reads the committed state. SQLite has
        no row locks and ignores ``FOR UPDATE``, so there two requests can both
        pass the re-check before either inserts. The guarantee needs Postgres.
        """
        try:
            self.db.query(User.id).filter(
                User.id == professional_id,
                User.organization_id == tenant_id,
            ).with_for_update().first()
            yield
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
