# backend/washbook/routers/slots.py
"""
Slots API endpoints.

GET /slots/day      - Detailed slots for a service on a day
GET /slots/calendar - Available-slot counts per day within the horizon
GET /slots/first    - First available slot on a day
"""

from datetime import date, datetime, timedelta
from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query

from ..deps import get_clock, get_config, get_engine
from ..errors import InvalidInputError, NotFoundError
from ..schemas.slots import (
    SlotConflictInfo,
    SlotInfo,
    SlotsCalendarResponse,
    SlotsDayResponse,
    SlotsDayStatus,
)
from ..services.slots import BookingConfig, SlotAvailabilityEngine
from ..services.slots.domain import TimeSlot


router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/day", response_model=SlotsDayResponse)
def get_slots_day(
    service_id: int,
    target_date: date = Query(..., alias="date"),
    holder_id: Optional[str] = None,
    engine: SlotAvailabilityEngine = Depends(get_engine),
):
    """Get time slots for a service on a specific day."""
    view = engine.day_view(target_date, service_id, holder_id)

    return SlotsDayResponse(
        service_id=service_id,
        date=target_date,
        is_open=view.is_open,
        service_duration_min=view.service.duration_minutes,
        slots=[_slot_info(s) for s in view.slots],
    )


@router.get("/first", response_model=SlotInfo)
def get_first_slot(
    service_id: int,
    target_date: date = Query(..., alias="date"),
    holder_id: Optional[str] = None,
    engine: SlotAvailabilityEngine = Depends(get_engine),
):
    """First available slot on the day, 404 if there is none."""
    slot = engine.first_available(target_date, service_id, holder_id)
    if slot is None:
        raise NotFoundError(f"No available slots on {target_date}")
    return _slot_info(slot)


@router.get("/calendar", response_model=SlotsCalendarResponse)
def get_slots_calendar(
    service_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    engine: SlotAvailabilityEngine = Depends(get_engine),
    config: BookingConfig = Depends(get_config),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    """Get calendar of bookable days for a service."""
    today = clock().date()
    last_day = today + timedelta(days=config.horizon_days)

    if start_date is None or start_date < today:
        start_date = today
    if end_date is None or end_date > last_day:
        end_date = last_day
    if end_date < start_date:
        raise InvalidInputError("end_date must not be before start_date")

    counts = engine.day_summaries(start_date, end_date, service_id)

    return SlotsCalendarResponse(
        service_id=service_id,
        start_date=start_date,
        end_date=end_date,
        days=[
            SlotsDayStatus(date=dt, has_slots=count > 0, open_slots_count=count)
            for dt, count in counts.items()
        ],
        horizon_days=config.horizon_days,
        min_advance_minutes=config.min_advance_minutes,
        slot_step_minutes=config.slot_step_minutes,
    )


def _slot_info(slot: TimeSlot) -> SlotInfo:
    return SlotInfo(
        time=slot.time,
        end_time=slot.end,
        is_available=slot.is_available,
        max_capacity=slot.max_capacity,
        current_bookings=slot.current_bookings,
        available_capacity=slot.available_capacity,
        conflicts=[SlotConflictInfo(type=c.type, message=c.message) for c in slot.conflicts],
    )
