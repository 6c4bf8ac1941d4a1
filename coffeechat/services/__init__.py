"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .slot_finder import CalendarClientProtocol, SlotFinderService, build_availability

__all__ = ["CalendarClientProtocol", "SlotFinderService", "build_availability"]
