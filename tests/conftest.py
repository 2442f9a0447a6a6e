import os
import uuid
from contextlib import contextmanager
from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

os.environ.setdefault('DATABASE_URL', 'sqlite:///./test.db')

from backend.database import Base  # noqa: E402
from backend.models.appointment import Appointment  # noqa: E402
from backend.models.organization import Organization  # noqa: E402
from backend.models.patient import Patient  # noqa: E402
from backend.models.user import User  # noqa: E402
from backend.scheduling.status import ACTIVE_STATUSES  # noqa: E402


class InMemoryAppointmentStore:
    """Store double keeping appointments in a list, for engine-level tests."""

    def __init__(self, tenant_id='org-1', professionals=('pro-1', 'pro-2'), patients=('pat-1',), settings=None):
        self.tenant_id = tenant_id
        self.professionals = set(professionals)
        self.patients = set(patients)
        self.settings = settings if settings is not None else {}
        self.appointments: list[Appointment] = []
        self.commits = 0

    def get(self, tenant_id, appointment_id):
        for appointment in self.appointments:
            if appointment.id == appointment_id and appointment.organization_id == tenant_id:
                return appointment
        return None

    def list_active(self, tenant_id, professional_id, range_start=None, range_end=None, exclude_appointment_id=None):
        return [
            appointment
            for appointment in self.appointments
            if appointment.organization_id == tenant_id
            and appointment.professional_id == professional_id
            and appointment.status in ACTIVE_STATUSES
            and (range_start is None or appointment.scheduled_date >= range_start)
            and (range_end is None or appointment.scheduled_date < range_end)
            and appointment.id != exclude_appointment_id
        ]

    def add(self, appointment):
        if appointment.id is None:
            appointment.id = str(uuid.uuid4())
        self.appointments.append(appointment)
        return appointment

    def save(self, appointment):
        self.commits += 1
        return appointment

    def professional_exists(self, tenant_id, professional_id):
        return tenant_id == self.tenant_id and professional_id in self.professionals

    def patient_exists(self, tenant_id, patient_id):
        return tenant_id == self.tenant_id and patient_id in self.patients

    def organization_settings(self, tenant_id):
        return self.settings if tenant_id == self.tenant_id else None

    @contextmanager
    def booking_guard(self, tenant_id, professional_id):
        yield
        self.commits += 1


@pytest.fixture
def memory_store():
    return InMemoryAppointmentStore()


@pytest.fixture
def db_session():
    engine = create_engine('sqlite:///:memory:')
    testing_session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    db = testing_session_local()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def clinic(db_session):
    organization = Organization(
        name='Lumina Clinic',
        settings={
            'working_hours': {
                'monday': {'start': '08:00', 'end': '18:00'},
                'tuesday': {'start': '08:00', 'end': '18:00'},
                'wednesday': {'start': '08:00', 'end': '18:00'},
                'thursday': {'start': '08:00', 'end': '18:00'},
                'friday': {'start': '08:00', 'end': '18:00'},
                'saturday': {'start': '08:00', 'end': '12:00'},
                'sunday': {'start': None, 'end': None},
            },
            'breaks': [],
            'slot_minutes': 30,
        },
    )
    other_organization = Organization(name='Other Clinic', settings={})
    db_session.add_all([organization, other_organization])
    db_session.flush()

    professional = User(
        organization_id=organization.id,
        name='Dr. Ana Souza',
        email='ana@lumina.example',
        role='professional',
    )
    second_professional = User(
        organization_id=organization.id,
        name='Dr. Bruno Lima',
        email='bruno@lumina.example',
        role='professional',
    )
    receptionist = User(
        organization_id=organization.id,
        name='Carla Reis',
        email='carla@lumina.example',
        role='receptionist',
    )
    outsider = User(
        organization_id=other_organization.id,
        name='Dr. Outsider',
        email='outsider@other.example',
        role='professional',
    )
    patient = Patient(organization_id=organization.id, name='Maria Silva', email='maria@example.com')
    db_session.add_all([professional, second_professional, receptionist, outsider, patient])
    db_session.commit()

    return SimpleNamespace(
        organization=organization,
        other_organization=other_organization,
        professional=professional,
        second_professional=second_professional,
        receptionist=receptionist,
        outsider=outsider,
        patient=patient,
    )
