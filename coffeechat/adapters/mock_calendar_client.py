"""
Mock Google Calendar client for running without OAuth or network access.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List

import pendulum
from pendulum import DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import BusyPeriod
from ..domain.timezones import to_utc

logger = logging.getLogger(__name__)


class MockCalendarClient:
    """
    Mock client that serves busy periods from a JSON file.

    Expected format:
    {
        "primary": "me@example.com",
        "events": [
            {"calendarId": "me@example.com", "start": "2024-11-25T10:00:00Z", "end": "2024-11-25T11:00:00Z"}
        ]
    }
    A bare list of events is accepted as well; events without a
    ``calendarId`` belong to the primary calendar.
    """

    DEFAULT_CALENDAR_ID = "primary"
    
    def __init__(self, data_file: Path | None = None, events: List[Dict[str, Any]] | None = None):
        """
        Initialize the mock client.
        
        Args:
            data_file: JSON file with mock events
            events: Events to serve directly (takes precedence over data_file)
        """
        self.primary_calendar_id = self.DEFAULT_CALENDAR_ID
        self.calendar_events: List[Dict[str, Any]] = []

        if events is not None:
            self.calendar_events = list(events)
        elif data_file is not None:
            self._load_calendar_data(Path(data_file))
    
    def _load_calendar_data(self, data_file: Path) -> None:
        """Load mock calendar data from JSON file."""
        if not data_file.exists():
            raise CalendarAPIError(f"Mock calendar data not found: {data_file}")

        try:
            with open(data_file, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise CalendarAPIError(f"Could not read mock calendar data {data_file}: {exc}") from exc

        if isinstance(data, dict):
            self.primary_calendar_id = data.get("primary", self.DEFAULT_CALENDAR_ID)
            self.calendar_events = data.get("events", [])
        else:
            self.calendar_events = data

    def find_primary_calendar_id(self) -> str:
        return self.primary_calendar_id
    
    def fetch_busy_periods(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[BusyPeriod]:
        """
        Load busy periods for ``calendar_id`` that overlap the time window.

        Bounds missing from an event are passed through as None.
        """
        busy_periods: List[BusyPeriod] = []
        
        for event in self.calendar_events:
            if event.get("calendarId", self.primary_calendar_id) != calendar_id:
                continue
            
            try:
                start = self._parse(event.get("start"))
                end = self._parse(event.get("end"))

                if start is not None and start >= time_max:
                    continue
                if end is not None and end <= time_min:
                    continue

                busy_periods.append(BusyPeriod(start=start, end=end))
            except ValueError as exc:
                logger.warning("Skipping invalid mock event %s: %s", event, exc)
                continue
        
        return busy_periods

    @staticmethod
    def _parse(value: str | None) -> DateTime | None:
        if not value:
            return None
        return to_utc(pendulum.parse(value, tz="UTC"))
