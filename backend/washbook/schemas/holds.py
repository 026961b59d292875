# backend/washbook/schemas/holds.py

import re
from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field, field_validator

from ..services.slots.config import is_time_str


class HoldCreate(BaseModel):
    date: date
    time: str  # "HH:MM"
    service_id: int
    holder_id: str = Field(..., min_length=1, max_length=128)

    @field_validator("time")
    @classmethod
    def validate_time(cls, v: str) -> str:
        """Validate time format."""
        if not is_time_str(v):
            raise ValueError("Time must be in HH:MM format")
        return v


class HoldRead(BaseModel):
    token: str
    date: date
    time: str
    service_id: int
    holder_id: str
    expires_at: datetime
    expires_in: int  # seconds, 0 once expired
    status: str  # active | expired


class HoldConfirm(BaseModel):
    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_email: str = Field(..., max_length=320)
    customer_phone: str = Field(..., min_length=5, max_length=32)
    vehicle_type: Optional[str] = None
    license_plate: Optional[str] = None
    notes: Optional[str] = Field(None, max_length=1000)

    @field_validator("customer_email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        v = v.strip()
        if not re.match(r"^[^@\s]+@[^@\s]+\.[^@\s]+$", v):
            raise ValueError("Invalid email address")
        return v.lower()

    @field_validator("customer_phone")
    @classmethod
    def normalize_phone(cls, v: str) -> str:
        """Keep digits and a leading +."""
        v = v.strip()
        if v.startswith("+"):
            return "+" + re.sub(r"\D", "", v[1:])
        return re.sub(r"\D", "", v)
