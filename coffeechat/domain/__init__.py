"""
Domain layer - Pure business logic without external dependencies.
"""

from .free_busy import compute_free_windows, filter_by_time_of_day, split_at_local_midnight
from .models import AvailabilitySettings, BusyPeriod, TimeRange
from .summarizer import summarize_slots

__all__ = [
    "AvailabilitySettings",
    "BusyPeriod",
    "TimeRange",
    "compute_free_windows",
    "filter_by_time_of_day",
    "split_at_local_midnight",
    "summarize_slots",
]
