"""Bookable slot generation for a professional's working day."""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta

from backend.core import config
from backend.scheduling.intervals import TimeInterval, overlaps

WEEKDAY_NAMES = ('monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday')


@dataclass(frozen=True)
class WorkingHours:
    start: time
    end: time

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError('Working hours must start before they end.')

    def on(self, day: date) -> TimeInterval:
        return TimeInterval(datetime.combine(day, self.start), datetime.combine(day, self.end))


@dataclass(frozen=True)
class DaySchedule:
    """Everything the slot generator needs to know about one calendar day."""

    day: date
    working_hours: WorkingHours | None
    breaks: tuple[tuple[time, time], ...] = ()
    granularity_minutes: int = 30

    @property
    def is_closed(self) -> bool:
        return self.working_hours is None

    def break_intervals(self) -> list[TimeInterval]:
        return [
            TimeInterval(datetime.combine(self.day, start), datetime.combine(self.day, end))
            for start, end in self.breaks
            if start < end
        ]


def generate_slots(
    day: date,
    working_hours: WorkingHours,
    granularity_minutes: int,
    booked: Iterable[TimeInterval],
    now: datetime,
    breaks: Iterable[TimeInterval] = (),
) -> Iterator[TimeInterval]:
    """Yield the free ``[t, t + granularity)`` slots of ``day`` in chronological order.

    Break periods are folded into the booked set so both are excluded by the
    same overlap scan. Slots starting before ``now`` are never offered.
    """
    if granularity_minutes <= 0:
        raise ValueError('Slot granularity must be a positive number of minutes.')

    occupied = [*booked, *breaks]
    step = timedelta(minutes=granularity_minutes)
    window = working_hours.on(day)
    current = window.start

    while current + step <= window.end:
        candidate = TimeInterval(current, current + step)
        if current >= now and not any(overlaps(candidate, interval) for interval in occupied):
            yield candidate
        current += step


def _parse_clock(value) -> time | None:
    if value in (None, ''):
        return None
    if isinstance(value, time):
        return value
    hours, minutes = str(value).split(':', 1)
    return time(int(hours), int(minutes))


def day_schedule_from_settings(settings: dict | None, day: date) -> DaySchedule:
    """Build the schedule of ``day`` from an organization's ``settings`` JSON.

    Missing keys fall back to the application defaults; a weekday whose start
    or end is null is a closed day.
    """
    settings = settings or {}
    granularity = int(settings.get('slot_minutes') or config.DEFAULT_SLOT_MINUTES)

    configured_hours = settings.get('working_hours')
    if configured_hours:
        day_config = configured_hours.get(WEEKDAY_NAMES[day.weekday()]) or {}
        start = _parse_clock(day_config.get('start'))
        end = _parse_clock(day_config.get('end'))
        working_hours = WorkingHours(start, end) if start and end and start < end else None
    else:
        working_hours = WorkingHours(config.DEFAULT_WORKDAY_START, config.DEFAULT_WORKDAY_END)

    if 'breaks' in settings:
        breaks = tuple(
            (_parse_clock(item.get('start')), _parse_clock(item.get('end')))
            for item in settings.get('breaks') or []
            if item.get('start') and item.get('end')
        )
    else:
        breaks = tuple(config.DEFAULT_BREAKS)

    return DaySchedule(day=day, working_hours=working_hours, breaks=breaks, granularity_minutes=granularity)
