"""
Helpers for mapping between the UTC timeline and local wall-clock time.

Every function takes the timezone explicitly so the calculations never
depend on the timezone of the running process.
"""

import enum
from dataclasses import dataclass
from datetime import date, datetime, time
from typing import Union

import pendulum
from pendulum import Date, DateTime

TimezoneLike = Union[str, pendulum.Timezone, pendulum.FixedTimezone]


class LocalTimeKind(enum.Enum):
    """How a local wall-clock time maps onto the UTC timeline."""
    UNIQUE = "unique"
    AMBIGUOUS = "ambiguous"
    NONEXISTENT = "nonexistent"


@dataclass(frozen=True)
class LocalTimeResolution:
    """
    Result of resolving a local wall-clock time.

    ``instant`` is None only for NONEXISTENT times. For AMBIGUOUS times it
    holds the earliest of the candidate instants.
    """
    kind: LocalTimeKind
    instant: DateTime | None


def get_timezone(tz: TimezoneLike) -> pendulum.Timezone | pendulum.FixedTimezone:
    """Return a pendulum timezone for a name or an existing timezone object."""
    if isinstance(tz, str):
        return pendulum.timezone(tz)
    return tz


def to_utc(dt: datetime) -> DateTime:
    """Normalise an aware (or UTC-naive) datetime to a pendulum UTC instant."""
    return pendulum.instance(dt).in_timezone("UTC")


def local_date(instant: DateTime, tz: TimezoneLike) -> Date:
    """Return the calendar date of ``instant`` as seen in ``tz``."""
    return instant.in_timezone(get_timezone(tz)).date()


def resolve_local_time(day: date, at: time, tz: TimezoneLike) -> LocalTimeResolution:
    """
    Resolve the wall-clock time ``at`` on ``day`` in ``tz`` to a UTC instant.

    Daylight-saving transitions make some wall-clock times occur twice
    (AMBIGUOUS, the earliest instant is returned) and some not at all
    (NONEXISTENT, no instant is returned).
    """
    zone = get_timezone(tz)
    wall = datetime(day.year, day.month, day.day, at.hour, at.minute, at.second)

    offset_before = zone.utcoffset(wall.replace(fold=0))
    offset_after = zone.utcoffset(wall.replace(fold=1))

    if offset_after > offset_before:
        # Clocks jumped forward over this wall time
        return LocalTimeResolution(kind=LocalTimeKind.NONEXISTENT, instant=None)

    kind = LocalTimeKind.AMBIGUOUS if offset_before > offset_after else LocalTimeKind.UNIQUE
    instant = to_utc(wall - offset_before)

    return LocalTimeResolution(kind=kind, instant=instant)


def resolve_local_midnight(day: date, tz: TimezoneLike) -> LocalTimeResolution:
    """Resolve the local midnight that starts ``day``."""
    return resolve_local_time(day, time(0, 0), tz)


def resolve_local_time_forward(day: date, at: time, tz: TimezoneLike) -> DateTime:
    """
    Resolve ``at`` on ``day`` in ``tz``, moving skipped wall times forward.

    A wall time inside a spring-forward gap maps to the instant the same
    distance past the start of the gap, so the start of the gap itself maps
    to the first instant after it. Ambiguous times resolve to the earliest
    instant, as in ``resolve_local_time``.
    """
    resolution = resolve_local_time(day, at, tz)
    if resolution.instant is not None:
        return resolution.instant

    zone = get_timezone(tz)
    wall = datetime(day.year, day.month, day.day, at.hour, at.minute, at.second)
    return to_utc(wall - zone.utcoffset(wall.replace(fold=0)))
