from datetime import date, datetime, time

import pytest

from backend.core import config
from backend.scheduling.intervals import TimeInterval
from backend.scheduling.slots import DaySchedule, WorkingHours, day_schedule_from_settings, generate_slots

MONDAY = date(2026, 1, 5)
BUSINESS_HOURS = WorkingHours(time(8, 0), time(18, 0))
EARLY_MORNING = datetime(2026, 1, 5, 6, 0)


def at(hour: int, minute: int = 0) -> datetime:
    return datetime.combine(MONDAY, time(hour, minute))


def starts(slots) -> list[time]:
    return [slot.start.time() for slot in slots]


def half_hours(start_hour: int, end_hour: int) -> list[time]:
    return [time(hour, minute) for hour in range(start_hour, end_hour) for minute in (0, 30)]


def test_generate_slots_covers_working_day_in_order() -> None:
    slots = list(generate_slots(MONDAY, BUSINESS_HOURS, 30, booked=[], now=EARLY_MORNING))

    assert len(slots) == 20
    assert starts(slots) == half_hours(8, 18)
    assert slots[-1].end == at(18)


def test_generate_slots_excludes_booked_time() -> None:
    booked = [TimeInterval(at(10), at(10, 30))]

    slots = list(generate_slots(MONDAY, BUSINESS_HOURS, 30, booked=booked, now=EARLY_MORNING))

    expected = [slot for slot in half_hours(8, 18) if slot != time(10, 0)]
    assert starts(slots) == expected


def test_generate_slots_keeps_slots_touching_a_booking() -> None:
    booked = [TimeInterval(at(10, 15), at(10, 45))]

    slots = starts(generate_slots(MONDAY, BUSINESS_HOURS, 15, booked=booked, now=EARLY_MORNING))

    assert time(10, 0) in slots
    assert time(10, 15) not in slots
    assert time(10, 30) not in slots
    assert time(10, 45) in slots


def test_generate_slots_excludes_past_starts() -> None:
    slots = list(generate_slots(MONDAY, BUSINESS_HOURS, 30, booked=[], now=at(14, 5)))

    assert all(slot.start > at(14) for slot in slots)
    assert starts(slots)[0] == time(14, 30)


def test_generate_slots_offers_slot_starting_exactly_now() -> None:
    slots = starts(generate_slots(MONDAY, BUSINESS_HOURS, 30, booked=[], now=at(14)))

    assert slots[0] == time(14, 0)


def test_generate_slots_treats_breaks_like_bookings() -> None:
    lunch = [TimeInterval(at(12), at(13, 30))]

    slots = starts(generate_slots(MONDAY, BUSINESS_HOURS, 30, booked=[], now=EARLY_MORNING, breaks=lunch))

    assert time(11, 30) in slots
    assert time(12, 0) not in slots
    assert time(12, 30) not in slots
    assert time(13, 0) not in slots
    assert time(13, 30) in slots


def test_generate_slots_drops_partial_slot_at_end_of_day() -> None:
    hours = WorkingHours(time(8, 0), time(9, 50))

    slots = list(generate_slots(MONDAY, hours, 30, booked=[], now=EARLY_MORNING))

    assert starts(slots) == [time(8, 0), time(8, 30), time(9, 0)]


def test_generate_slots_is_restartable() -> None:
    booked = [TimeInterval(at(9), at(10))]

    first = list(generate_slots(MONDAY, BUSINESS_HOURS, 20, booked=booked, now=at(8, 10)))
    second = list(generate_slots(MONDAY, BUSINESS_HOURS, 20, booked=booked, now=at(8, 10)))

    assert first == second
    assert first == sorted(first)


def test_generate_slots_rejects_non_positive_granularity() -> None:
    with pytest.raises(ValueError):
        list(generate_slots(MONDAY, BUSINESS_HOURS, 0, booked=[], now=EARLY_MORNING))


def test_working_hours_must_start_before_end() -> None:
    with pytest.raises(ValueError):
        WorkingHours(time(18, 0), time(8, 0))


def test_day_schedule_reads_weekday_hours_and_breaks() -> None:
    settings = {
        'working_hours': {'saturday': {'start': '08:00', 'end': '12:00'}},
        'breaks': [{'start': '10:00', 'end': '10:15'}],
        'slot_minutes': 15,
    }

    schedule = day_schedule_from_settings(settings, date(2026, 1, 10))

    assert schedule.working_hours == WorkingHours(time(8, 0), time(12, 0))
    assert schedule.granularity_minutes == 15
    assert schedule.break_intervals() == [
        TimeInterval(datetime(2026, 1, 10, 10, 0), datetime(2026, 1, 10, 10, 15)),
    ]


@pytest.mark.parametrize(
    'day_config',
    [None, {'start': None, 'end': None}, {'start': '10:00', 'end': '09:00'}],
)
def test_day_schedule_marks_unconfigured_or_null_days_closed(day_config) -> None:
    working_hours = {'monday': {'start': '08:00', 'end': '18:00'}}
    if day_config is not None:
        working_hours['sunday'] = day_config

    schedule = day_schedule_from_settings({'working_hours': working_hours}, date(2026, 1, 11))

    assert schedule.is_closed


def test_day_schedule_falls_back_to_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(config, 'DEFAULT_BREAKS', [(time(12, 0), time(13, 0))])

    schedule = day_schedule_from_settings(None, MONDAY)

    assert schedule == DaySchedule(
        day=MONDAY,
        working_hours=WorkingHours(config.DEFAULT_WORKDAY_START, config.DEFAULT_WORKDAY_END),
        breaks=((time(12, 0), time(13, 0)),),
        granularity_minutes=config.DEFAULT_SLOT_MINUTES,
    )
