# backend/washbook/services/slots/coordinator.py
"""
ReservationCoordinator: Free → Held → Booked / Free, per (date, time_slot).

    attempt_hold   re-checks availability at claim time, then claims the
                   key atomically in the hold store
    confirm_hold   converts a live hold into a booking; the ledger's
                   transactional overlap check has the final word
    release_hold   explicit cancel
    (expiry)       store-native TTL, no action needed

Transient failures (UnavailableError) are retried with bounded backoff.
Conflicts, invalid input and expiry are never retried.
"""

import logging
import uuid
from datetime import date, datetime, timedelta
from typing import Callable, Optional

from ...errors import (
    ConflictError,
    ExpiredError,
    InvalidInputError,
    NotFoundError,
    OverlapConflictError,
)
from ..retry import call_with_retry
from .availability import CONFLICT_HOLD, SlotAvailabilityEngine
from .catalog import capacity_for
from .config import minutes_to_time_str
from .domain import (
    BookingDraft,
    BookingRecord,
    BookingStatus,
    CustomerDetails,
    Hold,
    HoldKey,
    SlotConflict,
)

logger = logging.getLogger(__name__)

EventEmitter = Callable[[str, dict], None]


def _no_events(event_type: str, payload: dict) -> None:
    pass


class ReservationCoordinator:
    def __init__(
        self,
        engine: SlotAvailabilityEngine,
        emit: Optional[EventEmitter] = None,
    ):
        self.engine = engine
        self.ledger = engine.ledger
        self.holds = engine.holds
        self.config = engine.config
        self.clock = engine.clock
        self.emit = emit or _no_events

    # ── Hold ─────────────────────────────────────────────────────────────

    def attempt_hold(
        self,
        target_date: date,
        time_slot: int,
        service_id: int,
        holder_id: str,
    ) -> Hold:
        """
        Claim a slot for holder_id for hold_ttl_seconds.

        The same holder claiming the same slot again keeps its hold_id and
        gets a fresh expiry.

        Raises:
            InvalidInputError: date outside the booking window, or time_slot
                is not a start time offered for this service
            NotFoundError / InvalidServiceError: bad service
            ConflictError: slot is held, booked or blocked
            UnavailableError: hold store or ledger unreachable after retries
        """
        if not holder_id:
            raise InvalidInputError("holder_id is required")

        now = self.clock()
        self._check_booking_window(target_date, now)

        slots = self._retry(
            lambda: self.engine.compute_slots(target_date, service_id, holder_id),
            "compute_slots",
        )
        slot = next((s for s in slots if s.start_time == time_slot), None)
        if slot is None:
            raise InvalidInputError(
                f"{minutes_to_time_str(time_slot)} on {target_date} is not a bookable start time"
            )
        if not slot.is_available:
            raise ConflictError(conflicts=list(slot.conflicts))

        key = HoldKey(target_date, time_slot)
        existing = self._retry(lambda: self.holds.get(key), "hold.get")
        if existing is not None and existing.holder_id == holder_id:
            hold_id = existing.hold_id
        else:
            hold_id = uuid.uuid4().hex

        ttl = self.config.hold_ttl_seconds
        hold = Hold(
            hold_id=hold_id,
            date=target_date,
            time_slot=time_slot,
            service_id=service_id,
            holder_id=holder_id,
            expires_at=now + timedelta(seconds=ttl),
        )

        stored = self._retry(lambda: self.holds.put(key, hold, ttl), "hold.put")
        if not stored:
            logger.info(f"Hold conflict on {key} for holder {holder_id}")
            raise ConflictError(
                conflicts=[SlotConflict(CONFLICT_HOLD, "Slot is being booked by another customer")]
            )

        logger.info(f"Hold created: {hold.hold_id} on {key} (service={service_id})")
        self.emit("hold_created", hold_payload(hold))
        return hold

    def get_hold(self, token: str) -> Hold:
        """Hold by token, live or expired (while its tombstone lasts)."""
        hold = self._retry(lambda: self.holds.get_by_token(token), "hold.get_by_token")
        if hold is None:
            raise NotFoundError(f"Hold {token} not found")
        return hold

    def release_hold(self, token: str) -> None:
        """
        Give a live hold back.

        Raises:
            NotFoundError: unknown, already released or already expired
        """
        hold = self.get_hold(token)
        if not hold.is_live(self.clock()):
            raise NotFoundError(f"Hold {token} already expired")

        removed = self._retry(lambda: self.holds.remove(hold.key, hold.hold_id), "hold.remove")
        if not removed:
            raise NotFoundError(f"Hold {token} not found")

        logger.info(f"Hold released: {hold.hold_id} on {hold.key}")
        self.emit("hold_released", hold_payload(hold))

    # ── Confirm ──────────────────────────────────────────────────────────

    def confirm_hold(self, token: str, customer: CustomerDetails) -> BookingRecord:
        """
        Turn a live hold into a persisted booking.

        Persistence failure keeps the hold (the caller may retry);
        after a successful insert the hold is released best-effort.
        Confirming a hold that already became a booking returns that booking.

        Raises:
            NotFoundError: token never existed (or was released)
            ExpiredError: hold expired before confirmation
            OverlapConflictError: interval filled up despite the hold
            UnavailableError: ledger unreachable after retries
        """
        hold = self.get_hold(token)
        if not hold.is_live(self.clock()):
            logger.info(f"Confirm on expired hold {hold.hold_id} ({hold.key})")
            raise ExpiredError(hold_id=hold.hold_id)

        booked = self._retry(
            lambda: self.ledger.booking_for_hold(hold.hold_id),
            "ledger.booking_for_hold",
        )
        if booked is not None:
            logger.info(f"Hold {hold.hold_id} already confirmed as booking {booked.id}")
            self._release_quietly(hold)
            return booked

        service = self._retry(
            lambda: self.engine.get_bookable_service(hold.service_id),
            "catalog.get_service",
        )
        capacity, service_scoped = self._retry(
            lambda: capacity_for(service, self.engine.catalog),
            "catalog.capacity",
        )

        status = (
            BookingStatus.CONFIRMED if self.config.auto_confirm_bookings
            else BookingStatus.PENDING
        )
        draft = BookingDraft(
            service_id=service.id,
            date=hold.date,
            start_time=hold.time_slot,
            end_time=hold.time_slot + service.duration_minutes,
            customer=customer,
            status=status,
            hold_id=hold.hold_id,
        )

        try:
            record = self._retry(
                lambda: self.ledger.insert_if_no_overlap(draft, capacity, service_scoped),
                "ledger.insert_if_no_overlap",
            )
        except OverlapConflictError:
            # Slot is gone for good; the hold is worthless now
            self._release_quietly(hold)
            raise

        self._release_quietly(hold)
        self.emit("booking_created", {
            "booking_id": record.id,
            "confirmation_code": record.confirmation_code,
            "service_id": record.service_id,
            "date": record.date.isoformat(),
            "time": minutes_to_time_str(record.start_time),
            "status": record.status.value,
        })
        return record

    # ── Helpers ──────────────────────────────────────────────────────────

    def _check_booking_window(self, target_date: date, now: datetime) -> None:
        today = now.date()
        if target_date < today:
            raise InvalidInputError(f"Date {target_date} is in the past")
        last_day = today + timedelta(days=self.config.horizon_days)
        if target_date > last_day:
            raise InvalidInputError(
                f"Date {target_date} is more than {self.config.horizon_days} days ahead"
            )

    def _release_quietly(self, hold: Hold) -> None:
        try:
            self.holds.remove(hold.key, hold.hold_id)
        except Exception as e:
            logger.warning(f"Could not release hold {hold.hold_id} after booking: {e}")

    def _retry(self, fn, operation: str):
        return call_with_retry(
            fn,
            operation,
            attempts=self.config.retry_attempts,
            base_delay=self.config.retry_base_delay,
            max_delay=self.config.retry_max_delay,
        )


def hold_payload(hold: Hold) -> dict:
    return {
        "hold_id": hold.hold_id,
        "date": hold.date.isoformat(),
        "time": minutes_to_time_str(hold.time_slot),
        "service_id": hold.service_id,
        "holder_id": hold.holder_id,
        "expires_at": hold.expires_at.isoformat(),
    }
