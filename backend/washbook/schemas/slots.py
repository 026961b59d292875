# backend/washbook/schemas/slots.py
"""
Pydantic schemas for slots API.
"""

from datetime import date
from pydantic import BaseModel, Field


class SlotConflictInfo(BaseModel):
    """Why a slot cannot be booked."""
    type: str  # hold | holiday | maintenance | capacity
    message: str


class SlotInfo(BaseModel):
    """Information about a single slot."""
    time: str  # "HH:MM"
    end_time: str  # "HH:MM"
    is_available: bool
    max_capacity: int
    current_bookings: int
    available_capacity: int
    conflicts: list[SlotConflictInfo] = []


class SlotsDayResponse(BaseModel):
    """Detailed slots of a day for one service (Level 2)."""
    service_id: int
    date: date
    is_open: bool
    service_duration_min: int
    slots: list[SlotInfo]


class SlotsDayStatus(BaseModel):
    """Status of a single day in calendar."""
    date: date
    has_slots: bool
    open_slots_count: int = 0


class SlotsCalendarResponse(BaseModel):
    """Calendar of bookable days for one service."""
    service_id: int
    start_date: date
    end_date: date
    days: list[SlotsDayStatus]

    # Metadata
    horizon_days: int
    min_advance_minutes: int
    slot_step_minutes: int = Field(description="Grid step in minutes (15/30/60)")
