# backend/washbook/routers/holds.py
"""
Hold API: reserve a slot while the customer fills in checkout.

POST   /holds                 - Claim a slot (5 minutes by default)
GET    /holds/{token}         - Hold status (polling)
DELETE /holds/{token}         - Give the slot back
POST   /holds/{token}/confirm - Turn the hold into a booking
"""

from datetime import datetime
from typing import Callable

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..deps import get_clock, get_coordinator
from ..models.generated import Bookings as DBBookings
from ..schemas.bookings import BookingRead
from ..schemas.holds import HoldConfirm, HoldCreate, HoldRead
from ..services.slots import ReservationCoordinator
from ..services.slots.config import minutes_to_time_str, time_str_to_minutes
from ..services.slots.domain import CustomerDetails, Hold


router = APIRouter(prefix="/holds", tags=["holds"])


@router.post("", response_model=HoldRead, status_code=status.HTTP_201_CREATED)
def create_hold(
    data: HoldCreate,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    hold = coordinator.attempt_hold(
        target_date=data.date,
        time_slot=time_str_to_minutes(data.time),
        service_id=data.service_id,
        holder_id=data.holder_id,
    )
    return _hold_read(hold, coordinator.clock())


@router.get("/{token}", response_model=HoldRead)
def get_hold(
    token: str,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    return _hold_read(coordinator.get_hold(token), clock())


@router.delete("/{token}", status_code=status.HTTP_204_NO_CONTENT)
def release_hold(
    token: str,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    coordinator.release_hold(token)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{token}/confirm", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def confirm_hold(
    token: str,
    data: HoldConfirm,
    coordinator: ReservationCoordinator = Depends(get_coordinator),
    db: Session = Depends(get_db),
):
    record = coordinator.confirm_hold(
        token,
        CustomerDetails(
            customer_name=data.customer_name,
            customer_email=data.customer_email,
            customer_phone=data.customer_phone,
            vehicle_type=data.vehicle_type,
            license_plate=data.license_plate,
            notes=data.notes,
        ),
    )
    return db.get(DBBookings, record.id)


def _hold_read(hold: Hold, now: datetime) -> HoldRead:
    remaining = int((hold.expires_at - now).total_seconds())
    return HoldRead(
        token=hold.hold_id,
        date=hold.date,
        time=minutes_to_time_str(hold.time_slot),
        service_id=hold.service_id,
        holder_id=hold.holder_id,
        expires_at=hold.expires_at,
        expires_in=max(0, remaining),
        status="active" if hold.is_live(now) else "expired",
    )
