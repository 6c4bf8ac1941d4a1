"""
Google Calendar API client for fetching free/busy data.
"""

import logging
from typing import Any, Dict, List

import pendulum
import requests
from pendulum import DateTime

from ..domain.exceptions import CalendarAPIError
from ..domain.models import BusyPeriod
from ..domain.timezones import to_utc

logger = logging.getLogger(__name__)


class GoogleCalendarClient:
    """
    Client for Google Calendar API v3 read operations.
    
    Uses the /freeBusy endpoint to fetch busy periods and the calendar list
    to find the user's primary calendar.
    """
    
    CALENDAR_API_ENDPOINT = "https://www.googleapis.com/calendar/v3"
    
    def __init__(self, access_token: str, timeout: int = 30):
        """
        Initialize the Calendar API client.
        
        Args:
            access_token: Valid Google OAuth access token
            timeout: Request timeout in seconds
        """
        self.access_token = access_token
        self.timeout = timeout
        self.headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json"
        }

    def _request(self, method: str, path: str, **kwargs) -> Dict[str, Any]:
        url = f"{self.CALENDAR_API_ENDPOINT}{path}"
        try:
            response = requests.request(method, url, headers=self.headers, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            raise CalendarAPIError(f"Google Calendar request {method} {path} failed: {e}") from e
        except ValueError as e:
            raise CalendarAPIError(f"Google Calendar returned invalid JSON for {path}: {e}") from e

        if not isinstance(data, dict):
            raise CalendarAPIError(f"Google Calendar returned an unexpected {type(data).__name__} for {path}")
        return data
    
    def find_primary_calendar_id(self) -> str:
        """
        Resolve the id of the user's primary calendar.
        
        Raises:
            CalendarAPIError: If the API call fails or no primary calendar exists
        """
        params: Dict[str, str] = {}

        while True:
            data = self._request("GET", "/users/me/calendarList", params=params)

            for item in data.get("items", []):
                if isinstance(item, dict) and item.get("primary") and item.get("id"):
                    logger.info("Found primary calendar ID: %s", item["id"])
                    return item["id"]

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params = {"pageToken": page_token}

        raise CalendarAPIError("Primary calendar not found")
    
    def fetch_busy_periods(
        self,
        calendar_id: str,
        time_min: DateTime,
        time_max: DateTime,
    ) -> List[BusyPeriod]:
        """
        Get busy periods for one calendar.
        
        Args:
            calendar_id: Calendar to query
            time_min: Start of the time window
            time_max: End of the time window
            
        Returns:
            Busy periods in UTC
            
        Raises:
            CalendarAPIError: If API call fails
        """
        payload = {
            "timeMin": to_utc(time_min).to_iso8601_string(),
            "timeMax": to_utc(time_max).to_iso8601_string(),
            "timeZone": "UTC",
            "items": [{"id": calendar_id}],
        }
        
        logger.debug("Sending FreeBusy query: %s", payload)
        data = self._request("POST", "/freeBusy", json=payload)
        
        return self._parse_free_busy_response(data, calendar_id)
    
    def _parse_free_busy_response(
        self,
        response_data: Dict[str, Any],
        calendar_id: str,
    ) -> List[BusyPeriod]:
        """
        Parse the freeBusy API response into our domain model.
        
        Response format:
        {
            "calendars": {
                "user@example.com": {
                    "busy": [
                        {"start": "2024-11-25T09:00:00Z", "end": "2024-11-25T10:00:00Z"}
                    ],
                    "errors": [{"domain": "global", "reason": "notFound"}]
                }
            }
        }
        """
        calendars = response_data.get("calendars") or {}
        calendar = calendars.get(calendar_id) if isinstance(calendars, dict) else None
        if calendar is None:
            logger.debug("No free/busy entry for %s in response", calendar_id)
            return []
        if not isinstance(calendar, dict):
            raise CalendarAPIError(f"Malformed free/busy entry for calendar {calendar_id}")

        errors = calendar.get("errors") or []
        if errors:
            reasons = ", ".join(
                error.get("reason", "unknown") if isinstance(error, dict) else str(error) for error in errors
            )
            raise CalendarAPIError(f"Calendar {calendar_id} could not be queried: {reasons}")

        busy_periods: List[BusyPeriod] = []

        for item in calendar.get("busy") or []:
            if not isinstance(item, dict):
                logger.warning("Skipping malformed busy period %r", item)
                continue
            try:
                busy_periods.append(
                    BusyPeriod(
                        start=self._parse_datetime(item.get("start")),
                        end=self._parse_datetime(item.get("end")),
                    )
                )
            except ValueError as e:
                logger.warning("Skipping busy period %s: %s", item, e)
                continue

        logger.debug("Busy periods for %s: %s", calendar_id, busy_periods)
        return busy_periods
    
    def _parse_datetime(self, datetime_str: str | None) -> DateTime | None:
        """
        Parse an RFC 3339 timestamp into a UTC pendulum DateTime.

        Missing or unparsable values yield None so the slot search can fall
        back to the search window bounds.
        """
        if not datetime_str:
            return None
        if not isinstance(datetime_str, str):
            logger.warning("Busy period bound %r is not a string", datetime_str)
            return None

        try:
            dt = pendulum.parse(datetime_str)
        except ValueError as e:
            logger.warning("Could not parse busy period bound %r: %s", datetime_str, e)
            return None

        if isinstance(dt, DateTime):
            return to_utc(dt)

        logger.warning("Busy period bound %r is not a date-time", datetime_str)
        return None
