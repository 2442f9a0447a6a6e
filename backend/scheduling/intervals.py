"""Half-open time intervals used by the scheduling engine."""

from dataclasses import dataclass
from datetime import datetime, timedelta


@dataclass(frozen=True, order=True)
class TimeInterval:
    """The half-open range ``[start, end)``."""

    start: datetime
    end: datetime

    def __post_init__(self) -> None:
        if self.start >= self.end:
            raise ValueError('Interval start must be earlier than its end.')

    @classmethod
    def from_duration(cls, start: datetime, duration_minutes: int) -> 'TimeInterval':
        return cls(start, start + timedelta(minutes=duration_minutes))

    @property
    def duration_minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    def overlaps(self, other: 'TimeInterval') -> bool:
        return overlaps(self, other)

    def contains(self, instant: datetime) -> bool:
        return contains(self, instant)


def overlaps(a: TimeInterval, b: TimeInterval) -> bool:
    # Touching intervals (a.end == b.start) do not overlap, so back-to-back bookings are allowed.
    return a.start < b.end and b.start < a.end


def contains(interval: TimeInterval, instant: datetime) -> bool:
    return interval.start <= instant < interval.end
