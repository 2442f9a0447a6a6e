from datetime import datetime

import pytest

from backend.scheduling.intervals import TimeInterval, contains, overlaps


def at(hour: int, minute: int = 0) -> datetime:
    return datetime(2026, 1, 5, hour, minute)


def test_interval_rejects_empty_or_inverted_range() -> None:
    with pytest.raises(ValueError):
        TimeInterval(at(10), at(10))

    with pytest.raises(ValueError):
        TimeInterval(at(11), at(10))


def test_from_duration_builds_end_time() -> None:
    interval = TimeInterval.from_duration(at(10), 45)

    assert interval.end == at(10, 45)
    assert interval.duration_minutes == 45


@pytest.mark.parametrize(
    ('first', 'second', 'expected'),
    [
        ((at(10), at(10, 30)), (at(10, 15), at(10, 45)), True),
        ((at(10), at(11)), (at(10, 15), at(10, 30)), True),
        ((at(10), at(10, 30)), (at(10), at(10, 30)), True),
        ((at(10), at(10, 30)), (at(10, 30), at(11)), False),
        ((at(10, 30), at(11)), (at(10), at(10, 30)), False),
        ((at(9), at(9, 30)), (at(14), at(15)), False),
    ],
)
def test_overlaps_uses_half_open_bounds(first, second, expected) -> None:
    a = TimeInterval(*first)
    b = TimeInterval(*second)

    assert overlaps(a, b) is expected
    assert overlaps(b, a) is expected
    assert a.overlaps(b) is expected


def test_contains_includes_start_and_excludes_end() -> None:
    interval = TimeInterval(at(10), at(10, 30))

    assert contains(interval, at(10))
    assert contains(interval, at(10, 29))
    assert not contains(interval, at(10, 30))
    assert not interval.contains(at(9, 59))
