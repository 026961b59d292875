# backend/washbook/schemas/bookings.py

from datetime import date
from typing import Optional
from pydantic import BaseModel, field_validator

from ..services.slots.domain import BookingStatus
from ..services.status_workflow import ACTOR_ROLES


class BookingRead(BaseModel):
    id: int
    service_id: int

    date: date
    start_time: str
    end_time: str
    duration_minutes: int

    status: str
    confirmation_code: str

    customer_name: str
    customer_email: str
    customer_phone: str
    vehicle_type: Optional[str] = None
    license_plate: Optional[str] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class BookingStatusUpdate(BaseModel):
    status: BookingStatus
    actor: str
    changed_by: Optional[str] = None
    reason: Optional[str] = None

    @field_validator("actor")
    @classmethod
    def validate_actor(cls, v: str) -> str:
        if v not in ACTOR_ROLES:
            raise ValueError(f"actor must be one of {', '.join(ACTOR_ROLES)}")
        return v
