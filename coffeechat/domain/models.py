"""
Domain models for interval and availability calculations.
"""

from dataclasses import dataclass
from datetime import timedelta

from pendulum import DateTime

from .timezones import to_utc


@dataclass(frozen=True)
class TimeRange:
    """
    Represents an immutable half-open time range ``[start, end)``.
    
    Invariant: start must be before end.
    """
    start: DateTime
    end: DateTime
    
    def __post_init__(self):
        if self.start >= self.end:
            raise ValueError(f"Start time {self.start} must be before end time {self.end}")
    
    def duration(self) -> timedelta:
        """Return the length of the range."""
        return self.end - self.start

    def duration_minutes(self) -> int:
        """Return the duration in minutes."""
        return int(self.duration().total_seconds() / 60)
    
    def overlaps(self, other: "TimeRange") -> bool:
        """Check if this range overlaps with another."""
        return self.start < other.end and self.end > other.start

    def contains(self, other: "TimeRange") -> bool:
        """Check if another range lies completely inside this one."""
        return self.start <= other.start and other.end <= self.end
    
    def intersect(self, other: "TimeRange") -> "TimeRange | None":
        """
        Calculate the intersection of two time ranges.
        Returns None if there is no overlap.
        """
        if not self.overlaps(other):
            return None
        
        start = max(self.start, other.start)
        end = min(self.end, other.end)
        
        return TimeRange(start=start, end=end)

    def in_timezone(self, tz) -> "TimeRange":
        """Return the same range expressed in another timezone."""
        return TimeRange(start=self.start.in_timezone(tz), end=self.end.in_timezone(tz))
    
    def __str__(self) -> str:
        return f"{self.start.format('YYYY-MM-DD HH:mm')} - {self.end.format('YYYY-MM-DD HH:mm')}"


@dataclass(frozen=True)
class BusyPeriod:
    """
    A busy interval as reported by the calendar service.

    Either bound may be missing when upstream data is malformed; the
    free-window calculation clamps missing bounds to the search window.
    """
    start: DateTime | None = None
    end: DateTime | None = None

    def __post_init__(self):
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(f"Busy period start {self.start} is after its end {self.end}")

    @classmethod
    def from_range(cls, time_range: TimeRange) -> "BusyPeriod":
        return cls(start=time_range.start, end=time_range.end)

    def is_complete(self) -> bool:
        return self.start is not None and self.end is not None


@dataclass(frozen=True)
class AvailabilitySettings:
    """
    User-tunable parameters for one availability search.
    """
    buffer_minutes: int = 15
    day_start_hour: int = 9
    day_end_hour: int = 21
    min_slot_minutes: int = 30

    @property
    def buffer(self) -> timedelta:
        return timedelta(minutes=self.buffer_minutes)

    @property
    def min_slot_length(self) -> timedelta:
        return timedelta(minutes=self.min_slot_minutes)


def search_window(start: DateTime, days: int = 14) -> TimeRange:
    """
    Build the search window starting at ``start`` and reaching ``days`` ahead.

    Both bounds are normalised to UTC.
    """
    utc_start = to_utc(start)
    return TimeRange(start=utc_start, end=utc_start.add(days=days))
