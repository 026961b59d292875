# backend/washbook/services/status_workflow.py
"""
Booking status transitions after creation.

    pending ──► confirmed ──► in_progress ──► completed
       │            │  └──────────────────────► completed
       │            ├──► no_show ◄── in_progress
       └──► cancelled ◄─┘

completed / cancelled / no_show are terminal. Cancelled and no_show
bookings free their interval (see OCCUPYING_STATUSES).
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ..database import db_unavailable_guard
from ..errors import InvalidInputError, NotFoundError
from ..models.generated import Bookings, BookingStatusHistory
from .slots.config import BookingConfig, get_booking_config, time_str_to_minutes
from .slots.domain import BookingRecord, BookingStatus
from .slots.ledger import booking_to_record

logger = logging.getLogger(__name__)

ACTOR_ROLES = ("customer", "staff", "admin", "system")


@dataclass(frozen=True)
class StatusTransition:
    from_status: BookingStatus
    to_status: BookingStatus
    allowed_by: tuple[str, ...]
    requires_reason: bool = False
    # Customer must give this much notice (cancellation_deadline_hours)
    customer_deadline: bool = False


TRANSITIONS = (
    StatusTransition(BookingStatus.PENDING, BookingStatus.CONFIRMED, ("staff", "admin", "system")),
    StatusTransition(BookingStatus.CONFIRMED, BookingStatus.IN_PROGRESS, ("staff", "admin", "system")),
    StatusTransition(BookingStatus.IN_PROGRESS, BookingStatus.COMPLETED, ("staff", "admin", "system")),
    StatusTransition(BookingStatus.CONFIRMED, BookingStatus.COMPLETED, ("admin", "system")),
    StatusTransition(
        BookingStatus.PENDING, BookingStatus.CANCELLED,
        ("customer", "admin", "system"), requires_reason=True,
    ),
    StatusTransition(
        BookingStatus.CONFIRMED, BookingStatus.CANCELLED,
        ("customer", "admin", "system"), requires_reason=True, customer_deadline=True,
    ),
    StatusTransition(BookingStatus.CONFIRMED, BookingStatus.NO_SHOW, ("staff", "admin", "system")),
    StatusTransition(BookingStatus.IN_PROGRESS, BookingStatus.NO_SHOW, ("staff", "admin", "system")),
)


def find_transition(current: BookingStatus, new: BookingStatus) -> Optional[StatusTransition]:
    for transition in TRANSITIONS:
        if transition.from_status == current and transition.to_status == new:
            return transition
    return None


def is_transition_allowed(
    current: BookingStatus,
    new: BookingStatus,
    actor: str,
    starts_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
    config: BookingConfig | None = None,
) -> bool:
    """Check role and notice rules; reason is checked by the caller."""
    transition = find_transition(current, new)
    if transition is None or actor not in transition.allowed_by:
        return False

    if transition.customer_deadline and actor == "customer" and starts_at is not None:
        config = config or get_booking_config()
        now = now or datetime.now()
        if starts_at - now < timedelta(hours=config.cancellation_deadline_hours):
            return False

    return True


def available_transitions(
    current: BookingStatus,
    actor: str,
    starts_at: Optional[datetime] = None,
    now: Optional[datetime] = None,
    config: BookingConfig | None = None,
) -> list[BookingStatus]:
    return [
        t.to_status
        for t in TRANSITIONS
        if t.from_status == current
        and is_transition_allowed(current, t.to_status, actor, starts_at, now, config)
    ]


def change_booking_status(
    db: Session,
    booking_id: int,
    new_status: BookingStatus,
    actor: str,
    changed_by: Optional[str] = None,
    reason: Optional[str] = None,
    config: BookingConfig | None = None,
    now: Optional[datetime] = None,
) -> BookingRecord:
    """
    Move a booking to new_status and record it in booking_status_history.

    Raises:
        NotFoundError: booking does not exist
        InvalidInputError: unknown actor, transition not allowed for actor,
            cancellation too late, or reason missing
        UnavailableError: database unreachable
    """
    if actor not in ACTOR_ROLES:
        raise InvalidInputError(f"Unknown actor {actor!r}")

    now = now or datetime.now()

    with db_unavailable_guard(db, "status_workflow.change_booking_status"):
        booking = db.get(Bookings, booking_id)
        if booking is None:
            raise NotFoundError(f"Booking {booking_id} not found")

        current = BookingStatus(booking.status)
        starts_at = booking_starts_at(booking)

        if not is_transition_allowed(current, new_status, actor, starts_at, now, config):
            raise InvalidInputError(
                f"Status transition from {current.value} to {new_status.value} "
                f"is not allowed for {actor}"
            )

        transition = find_transition(current, new_status)
        if transition.requires_reason and not (reason and reason.strip()):
            raise InvalidInputError("Reason is required for this status transition")

        booking.status = new_status.value
        booking.updated_at = now.isoformat(timespec="seconds")
        if new_status == BookingStatus.CANCELLED:
            booking.cancel_reason = reason

        db.add(BookingStatusHistory(
            booking_id=booking.id,
            from_status=current.value,
            to_status=new_status.value,
            changed_by=changed_by or actor,
            changed_by_type=actor,
            reason=reason,
        ))
        db.commit()
        db.refresh(booking)

    logger.info(
        f"Booking {booking_id} status: {current.value} → {new_status.value} (by {actor})"
    )
    return booking_to_record(booking)


def booking_starts_at(booking: Bookings) -> datetime:
    day = date.fromisoformat(booking.date)
    return datetime.combine(day, datetime.min.time()) + timedelta(
        minutes=time_str_to_minutes(booking.start_time)
    )
