import logging
import math
from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, field_validator
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from backend.auth.dependencies import get_current_user
from backend.core import config
from backend.database import ensure_appointment_schema, get_db
from backend.models.appointment import Appointment
from backend.models.user import User
from backend.scheduling.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    SchedulingError,
)
from backend.scheduling.intervals import TimeInterval
from backend.scheduling.service import SchedulingService
from backend.scheduling.status import AppointmentStatus
from backend.scheduling.store import SqlAlchemyAppointmentStore

router = APIRouter(tags=['appointments'])

logger = logging.getLogger(__name__)

DATABASE_UNAVAILABLE_DETAIL = 'Database unavailable. Verify DATABASE_URL and database credentials.'


def normalize_notes(value: str | None) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


def normalize_scheduled_date(value: datetime | None) -> datetime | None:
    # Appointments are stored as naive datetimes in the clinic's local zone.
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone().replace(tzinfo=None)


def normalize_duration(value: int | None) -> int | None:
    if value is None:
        return None
    if value <= 0:
        raise ValueError('Duration must be a positive number of minutes.')
    return value


class CreateAppointmentRequest(BaseModel):
    professional_id: str
    patient_id: str
    scheduled_date: datetime
    duration: int | None = None
    type: str | None = None
    notes: str | None = None

    @field_validator('scheduled_date')
    @classmethod
    def validate_scheduled_date(cls, value: datetime) -> datetime:
        return normalize_scheduled_date(value)

    @field_validator('professional_id', 'patient_id')
    @classmethod
    def validate_identifier(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError('Professional and patient are required.')
        return normalized

    @field_validator('duration')
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        return normalize_duration(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        return normalize_notes(value)


class UpdateAppointmentRequest(BaseModel):
    professional_id: str | None = None
    scheduled_date: datetime | None = None
    duration: int | None = None
    status: AppointmentStatus | None = None
    type: str | None = None
    notes: str | None = None

    @field_validator('scheduled_date')
    @classmethod
    def validate_scheduled_date(cls, value: datetime | None) -> datetime | None:
        return normalize_scheduled_date(value)

    @field_validator('duration')
    @classmethod
    def validate_duration(cls, value: int | None) -> int | None:
        return normalize_duration(value)

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is not None and len(value.strip()) > config.MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')
        return value


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None


class CompleteAppointmentRequest(BaseModel):
    medical_record_id: str | None = None


class AppointmentResponse(BaseModel):
    id: str
    organization_id: str
    professional_id: str
    patient_id: str
    scheduled_date: datetime
    end_date: datetime
    duration: int
    status: AppointmentStatus
    type: str | None = None
    notes: str | None = None
    medical_record_id: str | None = None
    created_via: str | None = None

    class Config:
        from_attributes = True


class PaginationResponse(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: int


class AppointmentListResponse(BaseModel):
    data: list[AppointmentResponse]
    pagination: PaginationResponse


class TimeSlotResponse(BaseModel):
    start: datetime
    end: datetime

    @classmethod
    def from_interval(cls, interval: TimeInterval) -> 'TimeSlotResponse':
        return cls(start=interval.start, end=interval.end)


class AvailabilityResponse(BaseModel):
    date: date
    professional_id: str
    booked_slots: list[TimeSlotResponse]
    available_slots: list[TimeSlotResponse]


def ensure_database_ready() -> None:
    try:
        ensure_appointment_schema()
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE_DETAIL,
        ) from exc


def notify_appointment_completed(appointment: Appointment) -> None:
    logger.info(
        'Appointment %s completed (medical record: %s)',
        appointment.id,
        appointment.medical_record_id or 'none',
    )


def build_scheduling_service(db: Session) -> SchedulingService:
    return SchedulingService(
        SqlAlchemyAppointmentStore(db),
        on_completed=notify_appointment_completed,
    )


def to_http_exception(exc: SchedulingError) -> HTTPException:
    if isinstance(exc, ConflictError):
        conflicting = exc.conflicting_appointment
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={
                'message': exc.message,
                'conflicting_appointment': {
                    'id': conflicting.id,
                    'scheduled_date': conflicting.scheduled_date.isoformat(),
                    'end_date': conflicting.end_date.isoformat(),
                    'status': conflicting.status.value,
                },
            },
        )
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)
    if isinstance(exc, InvalidTransitionError):
        return HTTPException(status_code=422, detail=exc.message)
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=exc.message)


def database_unavailable(db: Session) -> HTTPException:
    db.rollback()
    logger.exception('Appointment database operation failed')
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=DATABASE_UNAVAILABLE_DETAIL,
    )


@router.get('', response_model=AppointmentListResponse)
def list_appointments(
    start_date: datetime | None = Query(default=None),
    end_date: datetime | None = Query(default=None),
    status_filter: AppointmentStatus | None = Query(default=None, alias='status'),
    professional_id: str | None = Query(default=None),
    patient_id: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        query = db.query(Appointment).filter(Appointment.organization_id == current_user.organization_id)

        if start_date is not None:
            query = query.filter(Appointment.scheduled_date >= start_date)
        if end_date is not None:
            query = query.filter(Appointment.scheduled_date <= end_date)
        if status_filter is not None:
            query = query.filter(Appointment.status == status_filter)
        if professional_id:
            query = query.filter(Appointment.professional_id == professional_id)
        if patient_id:
            query = query.filter(Appointment.patient_id == patient_id)

        total = query.count()
        appointments = query.order_by(Appointment.scheduled_date.asc()).offset((page - 1) * limit).limit(limit).all()

        return AppointmentListResponse(
            data=[AppointmentResponse.model_validate(appointment) for appointment in appointments],
            pagination=PaginationResponse(
                total=total,
                page=page,
                limit=limit,
                total_pages=math.ceil(total / limit),
            ),
        )
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.get('/availability/{professional_id}', response_model=AvailabilityResponse)
def get_professional_availability(
    professional_id: str,
    day: date = Query(..., alias='date'),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    service = build_scheduling_service(db)
    try:
        available = service.list_available_slots(current_user.organization_id, professional_id, day)
        booked = service.booked_intervals(current_user.organization_id, professional_id, day)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc

    return AvailabilityResponse(
        date=day,
        professional_id=professional_id,
        booked_slots=[TimeSlotResponse.from_interval(interval) for interval in booked],
        available_slots=[TimeSlotResponse.from_interval(interval) for interval in available],
    )


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return build_scheduling_service(db).get_appointment(current_user.organization_id, appointment_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return build_scheduling_service(db).request_booking(
            tenant_id=current_user.organization_id,
            professional_id=data.professional_id,
            patient_id=data.patient_id,
            start_time=data.scheduled_date,
            duration_minutes=data.duration,
            type=data.type,
            notes=data.notes,
            created_via='dashboard',
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.put('/{appointment_id}', response_model=AppointmentResponse)
def update_appointment(
    appointment_id: str,
    data: UpdateAppointmentRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return build_scheduling_service(db).update_appointment(
            current_user.organization_id,
            appointment_id,
            new_start_time=data.scheduled_date,
            new_duration_minutes=data.duration,
            new_professional_id=data.professional_id,
            type=data.type,
            notes=data.notes,
            target_status=data.status,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.put('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_appointment(
    appointment_id: str,
    data: CancelAppointmentRequest | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    reason = data.reason if data is not None else None
    try:
        return build_scheduling_service(db).cancel(current_user.organization_id, appointment_id, reason=reason)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.put('/{appointment_id}/confirm', response_model=AppointmentResponse)
def confirm_appointment(
    appointment_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    try:
        return build_scheduling_service(db).confirm(current_user.organization_id, appointment_id)
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc


@router.put('/{appointment_id}/complete', response_model=AppointmentResponse)
def complete_appointment(
    appointment_id: str,
    data: CompleteAppointmentRequest | None = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    ensure_database_ready()

    medical_record_id = data.medical_record_id if data is not None else None
    try:
        return build_scheduling_service(db).complete(
            current_user.organization_id,
            appointment_id,
            medical_record_id=medical_record_id,
        )
    except SchedulingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise database_unavailable(db) from exc
