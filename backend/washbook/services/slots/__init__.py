# backend/washbook/services/slots/__init__.py
"""
Slot availability & reservation engine.

Level 1: Candidate start times (opening hours, break, lead time)
Level 2: Service availability (bookings, holds, blocks)
Reservation: hold → confirm / release, on top of Level 2
"""

from .config import BookingConfig, get_booking_config
from .calculator import generate_candidates
from .calendar import SqlBusinessCalendar
from .catalog import SqlServiceCatalog
from .ledger import SqlBookingLedger
from .hold_store import InMemoryHoldStore, RedisHoldStore
from .availability import SlotAvailabilityEngine
from .coordinator import ReservationCoordinator

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "generate_candidates",
    "SqlBusinessCalendar",
    "SqlServiceCatalog",
    "SqlBookingLedger",
    "InMemoryHoldStore",
    "RedisHoldStore",
    "SlotAvailabilityEngine",
    "ReservationCoordinator",
]
