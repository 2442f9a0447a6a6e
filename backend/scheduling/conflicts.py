"""Booking admissibility checks against a professional's active appointments."""

from datetime import timedelta

from backend.core import config
from backend.scheduling.errors import ConflictError
from backend.scheduling.intervals import TimeInterval, overlaps


def find_conflict(store, tenant_id: str, professional_id: str, candidate: TimeInterval, exclude_appointment_id: str | None = None):
    """Return the earliest active appointment overlapping ``candidate``, or ``None``.

    Only appointments that are still SCHEDULED or CONFIRMED occupy the calendar.
    The store is queried by start time; an appointment starting before the
    candidate can still reach into it, so the lookup window reaches back by the
    longest allowed appointment.
    """
    lookback = timedelta(minutes=config.MAX_APPOINTMENT_DURATION_MINUTES)
    appointments = store.list_active(
        tenant_id,
        professional_id,
        range_start=candidate.start - lookback,
        range_end=candidate.end,
        exclude_appointment_id=exclude_appointment_id,
    )
    for appointment in sorted(appointments, key=lambda item: item.scheduled_date):
        if overlaps(appointment.interval, candidate):
            return appointment
    return None


def ensure_no_conflict(store, tenant_id: str, professional_id: str, candidate: TimeInterval, exclude_appointment_id: str | None = None) -> None:
    conflicting = find_conflict(store, tenant_id, professional_id, candidate, exclude_appointment_id)
    if conflicting is not None:
        raise ConflictError('This time is no longer available for the selected professional.', conflicting)
