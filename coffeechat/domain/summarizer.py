"""
Collapse free intervals into human-readable availability lines.
"""

import logging
from collections import defaultdict
from datetime import timedelta
from typing import Dict, List, Sequence

from pendulum import Date, DateTime

from .models import TimeRange
from .timezones import TimezoneLike, get_timezone, local_date

logger = logging.getLogger(__name__)

DISPLAY_LOCALE = "en"


def merge_contiguous(ranges: Sequence[TimeRange]) -> List[TimeRange]:
    """
    Merge touching or overlapping time ranges.
    
    Example: [09:00-09:30, 09:30-10:15] -> [09:00-10:15]
    """
    if not ranges:
        return []
    
    sorted_ranges = sorted(ranges, key=lambda r: r.start)
    merged: List[TimeRange] = [sorted_ranges[0]]
    
    for current in sorted_ranges[1:]:
        last = merged[-1]
        
        if current.start <= last.end:
            merged[-1] = TimeRange(
                start=last.start,
                end=max(last.end, current.end)
            )
        else:
            merged.append(current)
    
    return merged


def group_by_local_date(
    intervals: Sequence[TimeRange],
    tz: TimezoneLike,
) -> Dict[Date, List[TimeRange]]:
    """Group intervals by the local date of their start, dates ascending."""
    by_day: Dict[Date, List[TimeRange]] = defaultdict(list)
    for interval in intervals:
        by_day[local_date(interval.start, tz)].append(interval)
    return {day: by_day[day] for day in sorted(by_day)}


def format_clock(dt: DateTime) -> str:
    """
    Format a time on a 12-hour clock, showing minutes only when non-zero.

    Examples: ``9am``, ``9:30am``, ``12pm``
    """
    suffix = "am" if dt.hour < 12 else "pm"
    if dt.minute == 0:
        return f"{dt.format('h')}{suffix}"
    return f"{dt.format('h:mm')}{suffix}"


def format_day(dt: DateTime) -> str:
    """Format the weekday and date, e.g. ``Monday May 5``."""
    return dt.format("dddd MMM D", locale=DISPLAY_LOCALE)


def format_slot(slot: TimeRange, tz: TimezoneLike) -> str:
    """
    Format a slot for display.
    Format: Weekday Mon D: start–end
    """
    local = slot.in_timezone(get_timezone(tz))
    start, end = local.start, local.end

    if start.date() != end.date():
        return f"{format_day(start)}: {format_clock(start)}–{format_day(end)}: {format_clock(end)}"

    return f"{format_day(start)}: {format_clock(start)}–{format_clock(end)}"


def summarize_slots(
    intervals: Sequence[TimeRange],
    min_length: timedelta,
    tz: TimezoneLike,
) -> List[str]:
    """
    Merge contiguous same-day intervals and render them as display strings.

    Args:
        intervals: Free intervals, normally already split per local day
        min_length: Merged slots shorter than this are dropped
        tz: Timezone used for grouping and display

    Returns:
        One line per slot, ordered by local date and start time
    """
    by_day = group_by_local_date(intervals, tz)
    logger.debug("Grouped slots for %d days", len(by_day))

    out: List[str] = []
    for day, day_slots in by_day.items():
        merged = [slot for slot in merge_contiguous(day_slots) if slot.duration() >= min_length]
        logger.debug("Day %s merged into %d slots", day, len(merged))

        out.extend(format_slot(slot, tz) for slot in merged)

    logger.debug("Summarized %d slots", len(out))
    return out
