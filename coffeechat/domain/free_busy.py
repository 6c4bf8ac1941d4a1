"""
Core free/busy interval arithmetic.

This is the heart of the application - pure domain logic without any
external dependencies (no API calls, no database, no I/O). Every stage
returns a new list and never mutates its input.

Pipeline:
1. compute_free_windows: complement of the buffered busy periods
2. split_at_local_midnight: no interval crosses a local day boundary
3. filter_by_time_of_day: keep only the configured hours of each day
"""

import logging
from datetime import time, timedelta
from typing import Callable, List, Sequence

from pendulum import DateTime

from .models import BusyPeriod, TimeRange
from .timezones import LocalTimeKind, TimezoneLike, local_date, resolve_local_midnight, resolve_local_time_forward

logger = logging.getLogger(__name__)

DefaultHook = Callable[[str, BusyPeriod], None]


def compute_free_windows(
    busy: Sequence[BusyPeriod],
    window: TimeRange,
    buffer: timedelta = timedelta(0),
    on_default: DefaultHook | None = None,
) -> List[TimeRange]:
    """
    Compute the free windows left in ``window`` once every busy period,
    padded by ``buffer`` on both sides, is removed.

    Busy periods may be unordered, overlapping or duplicated; zero-length
    periods are ignored. A missing start is replaced by ``window.start``
    and a missing end by ``window.end``; ``on_default`` is called with the
    field name and the period whenever that happens.

    Example:
    Window: 09:00 - 12:00, buffer 15 min
    Busy: [10:00-11:00]
    Result: [09:00-09:45, 11:15-12:00]

    Args:
        busy: Busy periods reported by the calendar
        window: Outer bound of the search
        buffer: Padding applied before and after each busy period
        on_default: Optional hook notified when a missing bound is defaulted

    Returns:
        Sorted, non-overlapping free ranges inside the window
    """
    def start_of(period: BusyPeriod) -> DateTime:
        return period.start if period.start is not None else window.start

    windows: List[TimeRange] = []
    cursor = window.start

    for period in sorted(busy, key=start_of):
        if period.is_complete() and period.start == period.end:
            continue

        busy_start = period.start
        busy_end = period.end

        if busy_start is None:
            _report_default("start", period, on_default)
            busy_start = window.start
        if busy_end is None:
            _report_default("end", period, on_default)
            busy_end = window.end

        blocked_start = busy_start - buffer
        blocked_end = busy_end + buffer

        # Gap between the cursor and the next blocked range
        if blocked_start > cursor:
            gap_end = min(blocked_start, window.end)
            if gap_end > cursor:
                windows.append(TimeRange(start=cursor, end=gap_end))

        # Cursor only ever moves forward
        cursor = max(cursor, blocked_end)

        if cursor >= window.end:
            break

    if cursor < window.end:
        windows.append(TimeRange(start=cursor, end=window.end))

    logger.debug("Computed %d free windows (buffer=%s)", len(windows), buffer)
    return windows


def _report_default(field: str, period: BusyPeriod, on_default: DefaultHook | None) -> None:
    logger.debug("Busy period %s has no %s; using the search window bound", period, field)
    if on_default is not None:
        on_default(field, period)


def split_at_local_midnight(
    intervals: Sequence[TimeRange],
    tz: TimezoneLike,
) -> List[TimeRange]:
    """
    Split intervals so that none of them crosses local midnight in ``tz``.

    Order is preserved and the union of the output equals the union of the
    input. When the next local midnight does not exist (a DST jump at
    midnight) splitting of that interval stops and its remainder is kept
    as one segment.
    """
    out: List[TimeRange] = []

    for interval in intervals:
        segment_start = interval.start
        end_date = local_date(interval.end, tz)
        current_date = local_date(segment_start, tz)

        while current_date < end_date:
            next_day = current_date.add(days=1)
            resolution = resolve_local_midnight(next_day, tz)

            if resolution.kind is LocalTimeKind.NONEXISTENT:
                logger.error("Could not resolve local midnight of %s; keeping %s unsplit", next_day, interval)
                break
            if resolution.kind is LocalTimeKind.AMBIGUOUS:
                logger.debug("Local midnight of %s is ambiguous; using %s", next_day, resolution.instant)

            midnight = resolution.instant
            if midnight >= interval.end:
                break

            if midnight > segment_start:
                out.append(TimeRange(start=segment_start, end=midnight))
                segment_start = midnight

            current_date = next_day

        if interval.end > segment_start:
            out.append(TimeRange(start=segment_start, end=interval.end))

    logger.debug("After splitting at midnight: %d intervals", len(out))
    return out


def is_valid_hour_range(start_hour: int, end_hour: int) -> bool:
    """Check that ``start_hour:00 - end_hour:00`` is a usable daily range."""
    return 0 <= start_hour < end_hour <= 23


def filter_by_time_of_day(
    intervals: Sequence[TimeRange],
    start_hour: int,
    end_hour: int,
    tz: TimezoneLike,
) -> List[TimeRange]:
    """
    Trim intervals to ``[start_hour:00, end_hour:00)`` of each local day.

    Intervals normally lie within one local day (see
    ``split_at_local_midnight``); one that spans several days is trimmed
    against the hours of every day it covers. Portions outside the range
    are cut off and intervals left empty are discarded. An hour boundary
    skipped by a daylight-saving jump moves to the first instant after the
    jump. An invalid hour range leaves the input unchanged.
    """
    if not is_valid_hour_range(start_hour, end_hour):
        logger.warning("Invalid start/end hour range %s-%s; slots are not filtered", start_hour, end_hour)
        return list(intervals)

    filtered: List[TimeRange] = []

    for interval in intervals:
        day = local_date(interval.start, tz)
        last_day = local_date(interval.end, tz)
        kept = len(filtered)

        while day <= last_day:
            day_start = resolve_local_time_forward(day, time(start_hour), tz)
            day_end = resolve_local_time_forward(day, time(end_hour), tz)

            effective_start = max(interval.start, day_start)
            effective_end = min(interval.end, day_end)

            if effective_start < effective_end:
                filtered.append(TimeRange(start=effective_start, end=effective_end))

            day = day.add(days=1)

        if len(filtered) == kept:
            logger.debug("Discarded slot outside %02d:00-%02d:00: %s", start_hour, end_hour, interval)

    logger.debug("Filtered slots by time (%d to %d): %d remain", start_hour, end_hour, len(filtered))
    return filtered
