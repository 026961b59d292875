# backend/washbook/routers/bookings.py
# Bookings are created only through POST /holds/{token}/confirm

from datetime import date, datetime
from typing import Callable, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..database import db_unavailable_guard, get_db
from ..deps import get_clock, get_config, get_emitter
from ..errors import InvalidInputError, NotFoundError
from ..models.generated import Bookings as DBBookings
from ..schemas.bookings import BookingRead, BookingStatusUpdate
from ..services.slots import BookingConfig
from ..services.slots.domain import BookingStatus
from ..services.status_workflow import (
    ACTOR_ROLES,
    available_transitions,
    booking_starts_at,
    change_booking_status,
)

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/", response_model=list[BookingRead])
def list_bookings(
    target_date: Optional[date] = Query(None, alias="date"),
    booking_status: Optional[BookingStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
):
    with db_unavailable_guard(db, "bookings.list"):
        query = db.query(DBBookings)
        if target_date is not None:
            query = query.filter(DBBookings.date == target_date.isoformat())
        if booking_status is not None:
            query = query.filter(DBBookings.status == booking_status.value)
        return query.order_by(DBBookings.date, DBBookings.start_time).all()


@router.get("/{id}", response_model=BookingRead)
def get_booking(id: int, db: Session = Depends(get_db)):
    with db_unavailable_guard(db, "bookings.get"):
        obj = db.get(DBBookings, id)
    if not obj:
        raise NotFoundError(f"Booking {id} not found")
    return obj


@router.get("/{id}/transitions", response_model=list[BookingStatus])
def list_transitions(
    id: int,
    actor: str = Query(...),
    db: Session = Depends(get_db),
    config: BookingConfig = Depends(get_config),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    if actor not in ACTOR_ROLES:
        raise InvalidInputError(f"Unknown actor: {actor}")
    with db_unavailable_guard(db, "bookings.transitions"):
        obj = db.get(DBBookings, id)
    if not obj:
        raise NotFoundError(f"Booking {id} not found")
    return available_transitions(
        BookingStatus(obj.status),
        actor,
        starts_at=booking_starts_at(obj),
        now=clock(),
        config=config,
    )


@router.patch("/{id}/status", response_model=BookingRead)
def update_booking_status(
    id: int,
    data: BookingStatusUpdate,
    db: Session = Depends(get_db),
    config: BookingConfig = Depends(get_config),
    clock: Callable[[], datetime] = Depends(get_clock),
    emit: Callable[[str, dict], None] = Depends(get_emitter),
):
    record = change_booking_status(
        db,
        booking_id=id,
        new_status=data.status,
        actor=data.actor,
        changed_by=data.changed_by,
        reason=data.reason,
        config=config,
        now=clock(),
    )
    emit("booking_status_changed", {
        "booking_id": record.id,
        "status": record.status.value,
        "actor": data.actor,
    })
    return db.get(DBBookings, id)


@router.delete("/{id}")
def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
