# backend/washbook/services/slots/ledger.py
"""
BookingLedger: read view over persisted bookings, plus the one write path
that is allowed to create them.

insert_if_no_overlap is the final authority against double-booking:
holds only reduce the chance of a late conflict, this check removes it.

Transaction per insert:
1. UPDATE booking_days row for the date (row lock; only writers of the
   same date wait on each other)
2. A booking already made from the same hold is returned as is
3. Count overlapping non-cancelled bookings in the same capacity pool
4. count >= capacity → OverlapConflictError, rollback
5. INSERT booking + status history, commit

Capacity pools: a service with its own capacity counts only its own
bookings; every other service shares the wash bays and counts the
bookings of all services without their own capacity.
"""

import logging
import secrets
import string
from datetime import date
from typing import Optional, Protocol

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...database import db_unavailable_guard
from ...errors import OverlapConflictError
from ...models.generated import (
    BookingDays,
    BookingStatusHistory,
    Bookings,
    Services,
)
from .config import minutes_to_time_str, overlaps, time_str_to_minutes
from .domain import (
    OCCUPYING_STATUSES,
    BookingDraft,
    BookingRecord,
    BookingStatus,
    CustomerDetails,
    Occupancy,
)

logger = logging.getLogger(__name__)

CONFIRMATION_ALPHABET = string.ascii_uppercase + string.digits
CONFIRMATION_LENGTH = 8


class BookingLedger(Protocol):
    def occupancy_for(self, target_date: date, service_id: Optional[int] = None) -> list[Occupancy]:
        ...

    def booking_for_hold(self, hold_id: str) -> Optional[BookingRecord]:
        ...

    def insert_if_no_overlap(
        self,
        draft: BookingDraft,
        capacity: int,
        service_scoped: bool,
    ) -> BookingRecord:
        ...


def generate_confirmation_code() -> str:
    return "".join(secrets.choice(CONFIRMATION_ALPHABET) for _ in range(CONFIRMATION_LENGTH))


class SqlBookingLedger:
    """BookingLedger over the bookings table."""

    def __init__(self, db: Session):
        self.db = db

    # ── Read ─────────────────────────────────────────────────────────────

    def occupancy_for(self, target_date: date, service_id: Optional[int] = None) -> list[Occupancy]:
        """
        Intervals of non-cancelled bookings on target_date.

        service_id given: that service's bookings only. None: bookings of
        the shared wash-bay pool (services without their own capacity).
        """
        with db_unavailable_guard(self.db, "ledger.occupancy_for"):
            rows = self._occupying_bookings(target_date, service_id)
        return [_to_occupancy(row) for row in rows]

    def booking_for_hold(self, hold_id: str) -> Optional[BookingRecord]:
        """Booking made from hold_id, if any."""
        with db_unavailable_guard(self.db, "ledger.booking_for_hold"):
            row = self._booking_for_hold(hold_id)
            return booking_to_record(row) if row is not None else None

    # ── Write ────────────────────────────────────────────────────────────

    def insert_if_no_overlap(
        self,
        draft: BookingDraft,
        capacity: int,
        service_scoped: bool,
    ) -> BookingRecord:
        """
        Insert a booking unless the interval is already at capacity.

        A draft carrying the hold_id of an existing booking returns that
        booking instead of inserting a second one.

        Args:
            draft: Booking to insert
            capacity: Max concurrent bookings for the interval
            service_scoped: Count only bookings of draft.service_id

        Raises:
            OverlapConflictError: interval is full
            UnavailableError: database unreachable (nothing was written)
        """
        with db_unavailable_guard(self.db, "ledger.insert_if_no_overlap"):
            try:
                self._lock_day(draft.date)

                existing = self._booking_for_hold(draft.hold_id)
                if existing is not None:
                    record = booking_to_record(existing)
                    self.db.rollback()
                    logger.info(f"Hold {draft.hold_id} already booked as {record.id}")
                    return record

                filter_service = draft.service_id if service_scoped else None
                overlapping = sum(
                    1
                    for row in self._occupying_bookings(draft.date, filter_service)
                    if _overlaps_row(row, draft.start_time, draft.end_time)
                )
                if overlapping >= capacity:
                    self.db.rollback()
                    logger.info(
                        f"Overlap conflict on {draft.date} "
                        f"{minutes_to_time_str(draft.start_time)}: {overlapping}/{capacity}"
                    )
                    raise OverlapConflictError(
                        "Time slot is not available",
                        date=draft.date.isoformat(),
                        start_time=minutes_to_time_str(draft.start_time),
                    )

                booking = self._insert(draft)
                self.db.commit()
            except OverlapConflictError:
                raise
            except Exception:
                self.db.rollback()
                raise
            self.db.refresh(booking)

        logger.info(
            f"Booking created: id={booking.id} {booking.date} "
            f"{booking.start_time}-{booking.end_time} service={booking.service_id}"
        )
        return booking_to_record(booking)

    # ── Helpers ──────────────────────────────────────────────────────────

    def _occupying_bookings(self, target_date: date, service_id: Optional[int]) -> list[Bookings]:
        query = self.db.query(Bookings).filter(
            Bookings.date == target_date.isoformat(),
            Bookings.status.in_(OCCUPYING_STATUSES),
        )
        if service_id is not None:
            query = query.filter(Bookings.service_id == service_id)
        else:
            query = query.join(Services).filter(Services.capacity.is_(None))
        return query.all()

    def _booking_for_hold(self, hold_id: Optional[str]) -> Optional[Bookings]:
        if not hold_id:
            return None
        return self.db.query(Bookings).filter(Bookings.hold_id == hold_id).first()

    def _ensure_day_row(self, day: str) -> None:
        """Create the booking_days lock row in its own short transaction."""
        if self.db.get(BookingDays, day) is not None:
            return
        try:
            self.db.add(BookingDays(day=day, version=0))
            self.db.commit()
        except IntegrityError:
            # Created concurrently by another writer
            self.db.rollback()

    def _lock_day(self, target_date: date) -> None:
        """Take the per-date write lock (row lock via UPDATE)."""
        day = target_date.isoformat()
        self._ensure_day_row(day)
        result = self.db.execute(
            update(BookingDays)
            .where(BookingDays.day == day)
            .values(version=BookingDays.version + 1)
        )
        if result.rowcount != 1:
            raise RuntimeError(f"booking_days row for {day} is missing")

    def _insert(self, draft: BookingDraft) -> Bookings:
        booking = Bookings(
            service_id=draft.service_id,
            date=draft.date.isoformat(),
            start_time=minutes_to_time_str(draft.start_time),
            end_time=minutes_to_time_str(draft.end_time),
            duration_minutes=draft.duration_minutes,
            status=draft.status.value,
            customer_name=draft.customer.customer_name,
            customer_email=draft.customer.customer_email,
            customer_phone=draft.customer.customer_phone,
            vehicle_type=draft.customer.vehicle_type,
            license_plate=draft.customer.license_plate,
            notes=draft.customer.notes,
            confirmation_code=generate_confirmation_code(),
            hold_id=draft.hold_id,
        )
        self.db.add(booking)
        self.db.flush()

        self.db.add(BookingStatusHistory(
            booking_id=booking.id,
            from_status=None,
            to_status=draft.status.value,
            changed_by=draft.customer.customer_email,
            changed_by_type="customer",
            reason="created from hold" if draft.hold_id else None,
        ))
        return booking


def _to_occupancy(row: Bookings) -> Occupancy:
    return Occupancy(time_str_to_minutes(row.start_time), time_str_to_minutes(row.end_time))


def _overlaps_row(row: Bookings, start: int, end: int) -> bool:
    occ = _to_occupancy(row)
    return overlaps(start, end, occ.start, occ.end)


def booking_to_record(booking: Bookings) -> BookingRecord:
    return BookingRecord(
        id=booking.id,
        service_id=booking.service_id,
        date=date.fromisoformat(booking.date),
        start_time=time_str_to_minutes(booking.start_time),
        end_time=time_str_to_minutes(booking.end_time),
        status=BookingStatus(booking.status),
        confirmation_code=booking.confirmation_code,
        customer=CustomerDetails(
            customer_name=booking.customer_name,
            customer_email=booking.customer_email,
            customer_phone=booking.customer_phone,
            vehicle_type=booking.vehicle_type,
            license_plate=booking.license_plate,
            notes=booking.notes,
        ),
        hold_id=booking.hold_id,
    )
