import hmac
import secrets
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.database import get_db
from backend.models.appointment import Appointment
from backend.models.patient import Patient
from backend.models.user import User
from backend.routes.appointment_routes import (
    AppointmentResponse,
    TimeSlotResponse,
    build_scheduling_service,
    database_unavailable,
    ensure_database_ready,
    normalize_duration,
    normalize_notes,
    normalize_scheduled_date,
    to_http_exception,
)
from backend.scheduling.errors import NotFoundError, SchedulingError
from backend.scheduling.status import AppointmentStatus

router = APIRouter(tags=['public'])

PROFESSIONAL_ROLE = 'professional'
VERIFICATION_CODE_BYTES = 4


class PatientInfo(BaseModel):
    name: str
    email: str
    phone: str | None = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Patient name is required.')
        return normalized

    @field_validator('email')
    @classmethod
    def validate_email(cls, value: str) -> str:
        normalized = value.strip().lower()
        if '@' not in normalized:
            raise ValueError('A valid e-mail address is required.')
        return normalized


class PublicBookingRequest(BaseModel):
    organization_id: str
    professional_id: str
    scheduled_date: datetime
    duration: int | None = None
    type: str | None = None
    notes: str | None = None
    patient_info: PatientInfo

    @field_validator('scheduled_date')
    @classmethod
    def validate_scheduled_date(cls, value: datetime) -> datetime:
        return normalize_scheduled_date(value)

    @field_validator('duration')
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        return normalize_duration(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class PublicProfessionalResponse(BaseModel):
    id: str
    name: str | None = None

    class Config:
        from_attributes = True


class PublicAppointmentResponse(AppointmentResponse):
    verification_code: str | None = None


class PublicAppointmentStatusResponse(BaseModel):
    id: str
    professional_id: str
    scheduled_date: datetime
    end_date: datetime
    duration: int
    status: AppointmentStatus
    type: str | None = None

    class Config:
        from_attributes = True


class PublicCancelRequest(BaseModel):
    code: str
    reason: str | None = None

    @field_validator('code')
    @classmethod
    def validate_code(cls, value: str) -> str:
        normalized = value.strip().upper()
        if not normalized:
            raise ValueError('Verification code is required.')
        return normalized


def generate_verification_code() -> str:
    return secrets.token_hex(VERIFICATION_CODE_BYTES).upper()


def find_public_appointment(db: Session, appointment_id: str, code: str) -> Appointment:
    """Look up a self-service booking, hiding it unless the verification code matches."""
    appointment = db.query(Appointment).filter(
        Appointment.id == appointment_id,
        Appointment.created_via == 'public',
    ).first()
    expected = appointment.verification_code if appointment is not None else None
    if not expected or not hmac.compare_digest(expected.encode(), code.strip().upper().encode()):
        raise NotFoundError('Appointment not found.')
    return appointment


def find_or_create_patient(db: Session, organization_id: str, info: PatientInfo) -> Patient:
    patient = db.query(Patient).filter(
        Patient.organization_id == organization_id,
        Patient.email == info.email,
    ).first()
    if patient is not None:
        return patient

    patient = Patient(
        organization_id=organization_id,
        name=info.name,
        email=info.email,
        phone=info.phone,
    )
    db.add(patient)
    db.flush()
    return patient


@router.get('/professionals', response_model=list[PublicProfessionalResponse])
def list_public_professionals(
    organization_id: str = Query(...),
    db: Session = Depends(get_db),
):
    try:
        return db.query(User).filter(
            User.organization_id == organization_id,
            User.role == PROFESSIONAL_ROLE,
            User.is_active.is_(True),
        ).order_by(User.name.asc()).all()
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.get('/availability/{professional_id}', response_model=list[TimeSlotResponse])
def list_public_slots(
    professional_id: str,
    organization_id: str = Query(...),
    day: date = Query(..., alias='date'),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        slots = build_scheduling_service(db).list_available_slots(organization_id, professional_id, day)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return [TimeSlotResponse.from_interval(slot) for slot in slots]


@router.post('/appointments', response_model=PublicAppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_public_appointment(data: PublicBookingRequest, db: Session = Depends(get_db)):
    ensure_database_ready()

    service = build_scheduling_service(db)
    if data.scheduled_date <= service.clock():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail='Appointments must be scheduled in the future.',
        )

    try:
        if not service.store.professional_exists(data.organization_id, data.professional_id):
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail='Professional not found.')

        patient = find_or_create_patient(db, data.organization_id, data.patient_info)
        return service.request_booking(
            tenant_id=data.organization_id,
            professional_id=data.professional_id,
            patient_id=patient.id,
            start_time=data.scheduled_date,
            duration_minutes=data.duration,
            type=data.type,
            notes=data.notes,
            created_via='public',
            verification_code=generate_verification_code(),
        )
    except SchedulingError as exc:
        db.rollback()
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.get('/appointments/{appointment_id}/status', response_model=PublicAppointmentStatusResponse)
def get_public_appointment_status(
    appointment_id: str,
    code: str = Query(...),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return find_public_appointment(db, appointment_id, code)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.put('/appointments/{appointment_id}/cancel', response_model=PublicAppointmentStatusResponse)
def cancel_public_appointment(
    appointment_id: str,
    data: PublicCancelRequest,
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        appointment = find_public_appointment(db, appointment_id, data.code)
        return build_scheduling_service(db).cancel(appointment.organization_id, appointment.id, reason=data.reason)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc
