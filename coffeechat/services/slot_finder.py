"""
Application services for finding coffee chat slots.

The service coordinates fetching busy periods via a calendar client adapter
and delegates the availability calculation to the pure domain functions.
This keeps the CLI thin and improves testability by allowing the calendar
dependency to be stubbed via a simple protocol.
"""

from __future__ import annotations

import logging
from typing import List, Protocol

import pendulum
from pendulum import DateTime

from ..domain.exceptions import CoffeeChatError, SlotSearchError
from ..domain.free_busy import compute_free_windows, filter_by_time_of_day, split_at_local_midnight
from ..domain.models import AvailabilitySettings, BusyPeriod, TimeRange, search_window
from ..domain.summarizer import summarize_slots
from ..domain.timezones import TimezoneLike

logger = logging.getLogger(__name__)

DEFAULT_LOOKAHEAD_DAYS = 14


class CalendarClientProtocol(Protocol):
    """Protocol describing the calendar client behaviour needed by the service."""

    def find_primary_calendar_id(self) -> str:
        """Return the id of the calendar to search."""

    def fetch_busy_periods(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[BusyPeriod]:
        """Return the busy periods of ``calendar_id`` between the two instants."""


def build_free_intervals(
    busy: List[BusyPeriod],
    window: TimeRange,
    settings: AvailabilitySettings,
    tz: TimezoneLike,
) -> List[TimeRange]:
    """Run the free-window, midnight-split and business-hours stages."""
    raw = compute_free_windows(busy, window, settings.buffer)
    logger.info("Found %d raw free windows", len(raw))

    day_bounded = split_at_local_midnight(raw, tz)
    logger.info("Found %d free windows after splitting at midnight", len(day_bounded))

    return filter_by_time_of_day(day_bounded, settings.day_start_hour, settings.day_end_hour, tz)


def build_availability(
    busy: List[BusyPeriod],
    window: TimeRange,
    settings: AvailabilitySettings,
    tz: TimezoneLike,
) -> List[str]:
    """Turn raw busy periods into display lines without any I/O."""
    free = build_free_intervals(busy, window, settings, tz)
    return summarize_slots(free, settings.min_slot_length, tz)


class SlotFinderService:
    """
    Orchestrates busy-period retrieval and slot calculation.

    Dependency inversion toward a protocol makes it easy to plug in the real
    Google Calendar adapter or the mock implementation in tests.
    """

    def __init__(
        self,
        calendar_client: CalendarClientProtocol,
        timezone: TimezoneLike = "UTC",
        lookahead_days: int = DEFAULT_LOOKAHEAD_DAYS,
        calendar_id: str | None = None,
    ) -> None:
        self._calendar_client = calendar_client
        self._timezone = timezone
        self._lookahead_days = lookahead_days
        self._calendar_id = calendar_id

    def find_available_slots(
        self,
        settings: AvailabilitySettings | None = None,
        *,
        now: DateTime | None = None,
    ) -> List[str]:
        """
        Fetch busy data for the next lookahead window and return display lines.

        Raises:
            SlotSearchError: If the calendar could not be queried
        """
        settings = settings or AvailabilitySettings()
        free = self.find_free_intervals(settings, now=now)

        summarized = summarize_slots(free, settings.min_slot_length, self._timezone)
        logger.info("Summarized to %d displayable slots", len(summarized))
        return summarized

    def find_free_intervals(
        self,
        settings: AvailabilitySettings | None = None,
        *,
        now: DateTime | None = None,
    ) -> List[TimeRange]:
        """Fetch busy data and return the filtered free intervals."""
        settings = settings or AvailabilitySettings()
        window = search_window(now or pendulum.now("UTC"), days=self._lookahead_days)

        logger.info(
            "Searching slots with buffer=%d min, hours=%d-%d",
            settings.buffer_minutes,
            settings.day_start_hour,
            settings.day_end_hour,
        )
        busy = self.fetch_busy_periods(window)

        return build_free_intervals(busy, window, settings, self._timezone)

    def fetch_busy_periods(self, window: TimeRange) -> List[BusyPeriod]:
        """
        Fetch busy periods for the search window.

        Any failure of the calendar client is reported as one SlotSearchError.
        """
        try:
            calendar_id = self._calendar_id or self._calendar_client.find_primary_calendar_id()
            logger.info(
                "Fetching busy periods for calendar '%s' between %s and %s",
                calendar_id,
                window.start,
                window.end,
            )
            busy = self._calendar_client.fetch_busy_periods(calendar_id, window.start, window.end)
        except CoffeeChatError as exc:
            raise SlotSearchError(f"Failed to fetch slots: {exc}") from exc

        logger.info("Found %d busy periods", len(busy))
        return list(busy)
