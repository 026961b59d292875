# backend/washbook/services/slots/availability.py
"""
Level 2: Service availability calculation.

Composes the calendar, service catalog, booking ledger and hold store
into the list of TimeSlots a customer can pick from.

Takes into account:
- Opening hours and break (Level 1 candidates, calculator.py)
- Lead time (min_advance_minutes)
- Existing non-cancelled bookings (capacity)
- Live holds of other holders
- Holiday / maintenance blocks

Failure policy:
- Ledger unreachable → UnavailableError (fail closed)
- Hold store unreachable → warning, no holds shown (fail open for display;
  the claim path and the insert check stay authoritative)
"""

import logging
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from ...errors import InvalidServiceError, NotFoundError, UnavailableError
from .calculator import apply_lead_time, generate_candidates
from .calendar import BusinessCalendar
from .catalog import ServiceCatalog, capacity_for
from .config import BookingConfig, get_booking_config, overlaps
from .domain import (
    Block,
    DayHours,
    DayView,
    Hold,
    Occupancy,
    ServiceDefinition,
    SlotConflict,
    TimeSlot,
)
from .hold_store import HoldStore
from .ledger import BookingLedger

logger = logging.getLogger(__name__)

CONFLICT_HOLD = "hold"
CONFLICT_CAPACITY = "capacity"


class SlotAvailabilityEngine:
    """Single source of truth for which slots can be offered."""

    def __init__(
        self,
        calendar: BusinessCalendar,
        catalog: ServiceCatalog,
        ledger: BookingLedger,
        holds: HoldStore,
        config: BookingConfig | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.calendar = calendar
        self.catalog = catalog
        self.ledger = ledger
        self.holds = holds
        self.config = config or get_booking_config()
        self.clock = clock

    def compute_slots(
        self,
        target_date: date,
        service_id: int,
        holder_id: Optional[str] = None,
    ) -> list[TimeSlot]:
        """
        Calculate slots for a service on a date.

        Args:
            target_date: Day to compute
            service_id: Service being booked
            holder_id: Caller's holder ID; their own holds are not conflicts

        Returns:
            TimeSlots in chronological order. Empty list = closed or
            nothing fits.

        Raises:
            NotFoundError: unknown service
            InvalidServiceError: inactive service
            UnavailableError: ledger or calendar unreachable
        """
        # Step 1: Opening hours
        hours = self.calendar.hours_for(target_date)
        if hours is None:
            return []

        # Step 2: Service
        service = self.get_bookable_service(service_id)

        return self._slots_for(hours, service, target_date, holder_id)

    def day_view(
        self,
        target_date: date,
        service_id: int,
        holder_id: Optional[str] = None,
    ) -> DayView:
        """
        compute_slots plus the hours and service it used.

        The service is validated even on closed days.
        """
        hours = self.calendar.hours_for(target_date)
        service = self.get_bookable_service(service_id)
        slots = []
        if hours is not None:
            slots = self._slots_for(hours, service, target_date, holder_id)
        return DayView(hours=hours, service=service, slots=slots)

    def first_available(
        self,
        target_date: date,
        service_id: int,
        holder_id: Optional[str] = None,
    ) -> Optional[TimeSlot]:
        """Earliest available slot on the date, or None."""
        for slot in self.compute_slots(target_date, service_id, holder_id):
            if slot.is_available:
                return slot
        return None

    def day_summaries(
        self,
        start: date,
        end: date,
        service_id: int,
        holder_id: Optional[str] = None,
    ) -> dict[date, int]:
        """
        Count available slots per day for a calendar view.

        Returns:
            Dict mapping date → available slot count (0 = closed or full).
        """
        result = {}
        day = start
        while day <= end:
            slots = self.compute_slots(day, service_id, holder_id)
            result[day] = sum(1 for s in slots if s.is_available)
            day += timedelta(days=1)
        return result

    def get_bookable_service(self, service_id: int) -> ServiceDefinition:
        """Service by ID, rejecting unknown and inactive ones."""
        service = self.catalog.get_service(service_id)
        if service is None:
            raise NotFoundError(f"Service {service_id} not found")
        if not service.is_active:
            raise InvalidServiceError(f"Service {service_id} is not active")
        return service

    # ── Helpers ──────────────────────────────────────────────────────────

    def _slots_for(
        self,
        hours: DayHours,
        service: ServiceDefinition,
        target_date: date,
        holder_id: Optional[str],
    ) -> list[TimeSlot]:
        # Step 3: Candidate start times
        candidates = generate_candidates(
            hours, service.duration_minutes, self.config.slot_step_minutes
        )
        candidates = apply_lead_time(
            candidates, target_date, self.clock(), self.config.min_advance_minutes
        )
        if not candidates:
            return []

        # Step 4: Capacity and occupancy
        capacity, service_scoped = capacity_for(service, self.catalog)
        occupancy = self.ledger.occupancy_for(
            target_date, service.id if service_scoped else None
        )

        # Step 5: Blocks and holds
        blocks = self.calendar.blocks_for(target_date)
        holds = self._read_holds(target_date, candidates)

        slots = [
            self._build_slot(
                start,
                service.duration_minutes,
                capacity,
                occupancy,
                blocks,
                holds.get(start),
                holder_id,
            )
            for start in candidates
        ]

        # Step 6: Chronological order
        slots.sort(key=lambda s: s.start_time)
        return slots

    def _read_holds(self, target_date: date, candidates: list[int]) -> dict[int, Hold]:
        try:
            return self.holds.get_many(target_date, candidates)
        except UnavailableError as e:
            logger.warning(f"Showing slots for {target_date} without holds: {e}")
            return {}

    def _build_slot(
        self,
        start: int,
        duration: int,
        capacity: int,
        occupancy: list[Occupancy],
        blocks: list[Block],
        hold: Optional[Hold],
        holder_id: Optional[str],
    ) -> TimeSlot:
        end = start + duration
        current = sum(1 for occ in occupancy if overlaps(start, end, occ.start, occ.end))

        conflicts = []
        if hold is not None and hold.holder_id != holder_id:
            conflicts.append(SlotConflict(CONFLICT_HOLD, "Slot is being booked by another customer"))
        for block in blocks:
            if overlaps(start, end, block.start, block.end):
                conflicts.append(SlotConflict(block.kind, block.message))
        if current >= capacity:
            conflicts.append(SlotConflict(CONFLICT_CAPACITY, "Fully booked"))

        return TimeSlot(
            start_time=start,
            end_time=end,
            max_capacity=capacity,
            current_bookings=current,
            conflicts=tuple(conflicts),
        )
