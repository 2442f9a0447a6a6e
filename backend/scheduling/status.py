"""Appointment status state machine."""

import enum

from backend.scheduling.errors import InvalidTransitionError


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = 'SCHEDULED'
    CONFIRMED = 'CONFIRMED'
    CANCELED = 'CANCELED'
    COMPLETED = 'COMPLETED'


ACTIVE_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})
TERMINAL_STATUSES = frozenset({AppointmentStatus.CANCELED, AppointmentStatus.COMPLETED})

# Re-confirming a confirmed appointment is accepted; nothing leaves a terminal status.
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELED,
        AppointmentStatus.COMPLETED,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELED,
        AppointmentStatus.COMPLETED,
    }),
    AppointmentStatus.CANCELED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
}

_REJECTION_MESSAGES = {
    (AppointmentStatus.CANCELED, AppointmentStatus.CANCELED): 'This appointment has already been canceled.',
    (AppointmentStatus.COMPLETED, AppointmentStatus.CANCELED): 'A completed appointment cannot be canceled.',
    (AppointmentStatus.CANCELED, AppointmentStatus.CONFIRMED): 'A canceled appointment cannot be confirmed.',
    (AppointmentStatus.COMPLETED, AppointmentStatus.CONFIRMED): 'This appointment has already been completed.',
    (AppointmentStatus.COMPLETED, AppointmentStatus.COMPLETED): 'This appointment has already been completed.',
    (AppointmentStatus.CANCELED, AppointmentStatus.COMPLETED): 'A canceled appointment cannot be completed.',
}


def parse_status(value) -> AppointmentStatus:
    if isinstance(value, AppointmentStatus):
        return value
    try:
        return AppointmentStatus(str(value).strip().upper())
    except ValueError as exc:
        raise ValueError(f'Unknown appointment status: {value!r}.') from exc


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    return target in ALLOWED_TRANSITIONS[current]


def ensure_transition(current: AppointmentStatus, target: AppointmentStatus) -> None:
    if can_transition(current, target):
        return
    message = _REJECTION_MESSAGES.get(
        (current, target),
        f'Cannot change an appointment from {current.value} to {target.value}.',
    )
    raise InvalidTransitionError(message, current, target)


def confirm(appointment) -> None:
    ensure_transition(appointment.status, AppointmentStatus.CONFIRMED)
    appointment.status = AppointmentStatus.CONFIRMED


def cancel(appointment, reason: str | None = None) -> None:
    ensure_transition(appointment.status, AppointmentStatus.CANCELED)
    appointment.status = AppointmentStatus.CANCELED
    reason = (reason or '').strip()
    if reason:
        annotation = f'Cancellation reason: {reason}'
        appointment.notes = f'{appointment.notes}\n{annotation}' if appointment.notes else annotation


def complete(appointment, medical_record_id: str | None = None) -> None:
    ensure_transition(appointment.status, AppointmentStatus.COMPLETED)
    appointment.status = AppointmentStatus.COMPLETED
    if medical_record_id:
        appointment.medical_record_id = medical_record_id
