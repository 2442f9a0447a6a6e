"""Inbound operations of the appointment scheduling engine."""

import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta

from backend.core import config
from backend.models.appointment import Appointment
from backend.scheduling import status as state_machine
from backend.scheduling.conflicts import ensure_no_conflict
from backend.scheduling.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from backend.scheduling.intervals import TimeInterval
from backend.scheduling.slots import day_schedule_from_settings, generate_slots
from backend.scheduling.status import AppointmentStatus, parse_status
from backend.scheduling.store import AppointmentStore

logger = logging.getLogger(__name__)

CompletionListener = Callable[[Appointment], None]


class SchedulingService:
    """Books, reschedules and transitions appointments for one tenant-scoped store.

    Conflicts are checked twice: once before opening the write transaction so
    callers get a precise error cheaply, and again inside the store's booking
    guard, which is the check that actually prevents double booking.
    """

    def __init__(
        self,
        store: AppointmentStore,
        clock: Callable[[], datetime] = datetime.now,
        on_completed: CompletionListener | None = None,
    ):
        self.store = store
        self.clock = clock
        self.on_completed = on_completed

    def get_appointment(self, tenant_id: str, appointment_id: str) -> Appointment:
        appointment = self.store.get(tenant_id, appointment_id)
        if appointment is None:
            raise NotFoundError('Appointment not found.')
        return appointment

    def request_booking(
        self,
        tenant_id: str,
        professional_id: str,
        patient_id: str,
        start_time: datetime,
        duration_minutes: int | None = None,
        type: str | None = None,
        notes: str | None = None,
        created_via: str = 'dashboard',
        verification_code: str | None = None,
    ) -> Appointment:
        if not tenant_id or not professional_id or not patient_id or start_time is None:
            raise ValidationError('Professional, patient and date are required.')

        duration_minutes = config.DEFAULT_APPOINTMENT_DURATION_MINUTES if duration_minutes is None else duration_minutes
        candidate = _candidate_interval(start_time, duration_minutes)

        if not self.store.patient_exists(tenant_id, patient_id):
            raise NotFoundError('Patient not found.')
        if not self.store.professional_exists(tenant_id, professional_id):
            raise NotFoundError('Professional not found.')

        ensure_no_conflict(self.store, tenant_id, professional_id, candidate)

        appointment = Appointment(
            organization_id=tenant_id,
            professional_id=professional_id,
            patient_id=patient_id,
            scheduled_date=candidate.start,
            duration=duration_minutes,
            status=AppointmentStatus.SCHEDULED,
            type=type,
            notes=notes,
            created_via=created_via,
            verification_code=verification_code,
        )
        with self.store.booking_guard(tenant_id, professional_id):
            self._recheck(tenant_id, professional_id, candidate)
            self.store.add(appointment)

        logger.info(
            'Booked appointment %s for professional %s at %s (%s min)',
            appointment.id, professional_id, candidate.start.isoformat(), duration_minutes,
        )
        return appointment

    def reschedule_appointment(
        self,
        tenant_id: str,
        appointment_id: str,
        new_start_time: datetime | None = None,
        new_duration_minutes: int | None = None,
        new_professional_id: str | None = None,
    ) -> Appointment:
        return self.update_appointment(
            tenant_id,
            appointment_id,
            new_start_time=new_start_time,
            new_duration_minutes=new_duration_minutes,
            new_professional_id=new_professional_id,
        )

    def update_details(self, tenant_id: str, appointment_id: str, type: str | None = None, notes: str | None = None) -> Appointment:
        return self.update_appointment(tenant_id, appointment_id, type=type, notes=notes)

    def update_appointment(
        self,
        tenant_id: str,
        appointment_id: str,
        new_start_time: datetime | None = None,
        new_duration_minutes: int | None = None,
        new_professional_id: str | None = None,
        type: str | None = None,
        notes: str | None = None,
        target_status=None,
    ) -> Appointment:
        """Apply a reschedule, detail edits and a status change as one write.

        Every check runs before the appointment is touched, and the changes are
        committed together by the booking guard, so a rejected update leaves
        the stored appointment as it was.
        """
        appointment = self.get_appointment(tenant_id, appointment_id)
        current = appointment.status

        target = None
        if target_status is not None:
            target = _parse_target(target_status)
            if target is current:
                target = None
            else:
                state_machine.ensure_transition(current, target)

        start_time = new_start_time if new_start_time is not None else appointment.scheduled_date
        duration_minutes = new_duration_minutes if new_duration_minutes is not None else appointment.duration
        professional_id = new_professional_id or appointment.professional_id
        candidate = _candidate_interval(start_time, duration_minutes)

        changed = (
            candidate.start != appointment.scheduled_date
            or duration_minutes != appointment.duration
            or professional_id != appointment.professional_id
        )
        if changed and current in state_machine.TERMINAL_STATUSES:
            raise InvalidTransitionError(
                f'A {current.value.lower()} appointment cannot be rescheduled.',
                current,
                current,
            )
        if professional_id != appointment.professional_id and not self.store.professional_exists(tenant_id, professional_id):
            raise NotFoundError('Professional not found.')

        # Edits that leave the interval and professional untouched, or that end
        # in a terminal status, skip the calendar check.
        check_calendar = changed and (target or current) in state_machine.ACTIVE_STATUSES
        if check_calendar:
            ensure_no_conflict(self.store, tenant_id, professional_id, candidate, exclude_appointment_id=appointment.id)

        with self.store.booking_guard(tenant_id, professional_id):
            if check_calendar:
                self._recheck(tenant_id, professional_id, candidate, exclude_appointment_id=appointment.id)
            appointment.scheduled_date = candidate.start
            appointment.duration = duration_minutes
            appointment.professional_id = professional_id
            if type is not None:
                appointment.type = type
            if notes is not None:
                appointment.notes = notes
            if target is not None:
                _apply_transition(appointment, target)

        if changed:
            logger.info(
                'Rescheduled appointment %s to %s with professional %s',
                appointment.id, candidate.start.isoformat(), professional_id,
            )
        if target is not None:
            self._after_transition(appointment, current, target)
        return appointment

    def transition_status(
        self,
        tenant_id: str,
        appointment_id: str,
        target_status,
        reason: str | None = None,
        medical_record_id: str | None = None,
    ) -> Appointment:
        target = _parse_target(target_status)
        appointment = self.get_appointment(tenant_id, appointment_id)
        current = appointment.status

        _apply_transition(appointment, target, reason=reason, medical_record_id=medical_record_id)
        self.store.save(appointment)
        self._after_transition(appointment, current, target)
        return appointment

    def confirm(self, tenant_id: str, appointment_id: str) -> Appointment:
        return self.transition_status(tenant_id, appointment_id, AppointmentStatus.CONFIRMED)

    def cancel(self, tenant_id: str, appointment_id: str, reason: str | None = None) -> Appointment:
        return self.transition_status(tenant_id, appointment_id, AppointmentStatus.CANCELED, reason=reason)

    def complete(self, tenant_id: str, appointment_id: str, medical_record_id: str | None = None) -> Appointment:
        return self.transition_status(
            tenant_id, appointment_id, AppointmentStatus.COMPLETED, medical_record_id=medical_record_id,
        )

    def booked_intervals(self, tenant_id: str, professional_id: str, day: date) -> list[TimeInterval]:
        day_start = datetime.combine(day, datetime.min.time())
        lookback = timedelta(minutes=config.MAX_APPOINTMENT_DURATION_MINUTES)
        appointments = self.store.list_active(
            tenant_id,
            professional_id,
            range_start=day_start - lookback,
            range_end=day_start + timedelta(days=1),
        )
        return [
            appointment.interval
            for appointment in appointments
            if appointment.end_date > day_start
        ]

    def list_available_slots(self, tenant_id: str, professional_id: str, day: date) -> list[TimeInterval]:
        settings = self.store.organization_settings(tenant_id)
        if settings is None:
            raise NotFoundError('Organization not found.')
        if not self.store.professional_exists(tenant_id, professional_id):
            raise NotFoundError('Professional not found.')

        schedule = day_schedule_from_settings(settings, day)
        if schedule.is_closed:
            return []

        return list(
            generate_slots(
                day,
                schedule.working_hours,
                schedule.granularity_minutes,
                self.booked_intervals(tenant_id, professional_id, day),
                self.clock(),
                breaks=schedule.break_intervals(),
            )
        )

    def _after_transition(self, appointment: Appointment, current: AppointmentStatus, target: AppointmentStatus) -> None:
        logger.info('Appointment %s changed from %s to %s', appointment.id, current.value, target.value)
        if target is not AppointmentStatus.COMPLETED or self.on_completed is None:
            return
        # The completion is already committed; a failing listener must not turn it into an error.
        try:
            self.on_completed(appointment)
        except Exception:
            logger.exception('Completion listener failed for appointment %s', appointment.id)

    def _recheck(self, tenant_id: str, professional_id: str, candidate: TimeInterval, exclude_appointment_id: str | None = None) -> None:
        try:
            ensure_no_conflict(self.store, tenant_id, professional_id, candidate, exclude_appointment_id)
        except ConflictError as exc:
            logger.warning(
                'Concurrent booking for professional %s at %s lost the race against appointment %s',
                professional_id, candidate.start.isoformat(), exc.conflicting_appointment.id,
            )
            raise


def _candidate_interval(start_time: datetime, duration_minutes: int) -> TimeInterval:
    if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
        raise ValidationError('Duration must be a positive number of minutes.')
    if duration_minutes > config.MAX_APPOINTMENT_DURATION_MINUTES:
        raise ValidationError(
            f'Duration must be {config.MAX_APPOINTMENT_DURATION_MINUTES} minutes or fewer.'
        )
    return TimeInterval.from_duration(start_time.replace(second=0, microsecond=0), duration_minutes)


def _parse_target(target_status) -> AppointmentStatus:
    try:
        return parse_status(target_status)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def _apply_transition(
    appointment: Appointment,
    target: AppointmentStatus,
    reason: str | None = None,
    medical_record_id: str | None = None,
) -> None:
    # Rejects every target outside the transition table, SCHEDULED included.
    state_machine.ensure_transition(appointment.status, target)

    if target is AppointmentStatus.CANCELED:
        state_machine.cancel(appointment, reason)
    elif target is AppointmentStatus.COMPLETED:
        state_machine.complete(appointment, medical_record_id)
    else:
        state_machine.confirm(appointment)
