# backend/washbook/services/slots/domain.py
"""
Value objects passed between calendar, ledger, hold store and engine.

All times are minutes of day; dates are datetime.date.
"""

import json
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Optional

from .config import minutes_to_time_str


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


# Statuses that free their interval
RELEASING_STATUSES = frozenset({BookingStatus.CANCELLED, BookingStatus.NO_SHOW})
OCCUPYING_STATUSES = tuple(s.value for s in BookingStatus if s not in RELEASING_STATUSES)


@dataclass(frozen=True)
class DayHours:
    """Opening hours resolved for one date."""
    open_time: int
    close_time: int
    break_start: Optional[int] = None
    break_end: Optional[int] = None

    def __post_init__(self):
        if not 0 <= self.open_time < self.close_time <= 24 * 60:
            raise ValueError(
                f"open_time must be before close_time, got {self.open_time}-{self.close_time}"
            )
        if (self.break_start is None) != (self.break_end is None):
            raise ValueError("break_start and break_end must be set together")
        if self.break_start is not None and not (
            self.break_start < self.break_end <= self.close_time
        ):
            raise ValueError(
                f"break must satisfy break_start < break_end <= close_time, "
                f"got {self.break_start}-{self.break_end} (close {self.close_time})"
            )

    @property
    def has_break(self) -> bool:
        return self.break_start is not None


@dataclass(frozen=True)
class Block:
    """Maintenance (or other) block on a date; start/end in minutes."""
    kind: str
    start: int
    end: int
    message: str


@dataclass(frozen=True)
class ServiceDefinition:
    id: int
    name: str
    duration_minutes: int
    is_active: bool = True
    capacity: Optional[int] = None  # dedicated bays, None = shared

    def __post_init__(self):
        if self.duration_minutes <= 0:
            raise ValueError(f"duration_minutes must be > 0, got {self.duration_minutes}")


@dataclass(frozen=True)
class Occupancy:
    start: int
    end: int


@dataclass(frozen=True)
class SlotConflict:
    type: str  # hold | holiday | maintenance | capacity
    message: str


@dataclass(frozen=True)
class TimeSlot:
    start_time: int
    end_time: int
    max_capacity: int
    current_bookings: int
    conflicts: tuple[SlotConflict, ...] = ()

    @property
    def available_capacity(self) -> int:
        return max(0, self.max_capacity - self.current_bookings)

    @property
    def is_available(self) -> bool:
        return self.available_capacity > 0 and not self.conflicts

    @property
    def time(self) -> str:
        return minutes_to_time_str(self.start_time)

    @property
    def end(self) -> str:
        return minutes_to_time_str(self.end_time)


@dataclass(frozen=True)
class DayView:
    """A day's slots together with the hours and service they came from."""
    hours: Optional[DayHours]
    service: ServiceDefinition
    slots: list[TimeSlot]

    @property
    def is_open(self) -> bool:
        return self.hours is not None


@dataclass(frozen=True)
class HoldKey:
    date: date
    time_slot: int

    def __str__(self) -> str:
        return f"{self.date.isoformat()}:{minutes_to_time_str(self.time_slot)}"


@dataclass(frozen=True)
class Hold:
    hold_id: str
    date: date
    time_slot: int
    service_id: int
    holder_id: str
    expires_at: datetime

    @property
    def key(self) -> HoldKey:
        return HoldKey(self.date, self.time_slot)

    def is_live(self, now: datetime) -> bool:
        return self.expires_at > now

    def to_json(self) -> str:
        return json.dumps({
            "hold_id": self.hold_id,
            "date": self.date.isoformat(),
            "time_slot": self.time_slot,
            "service_id": self.service_id,
            "holder_id": self.holder_id,
            "expires_at": self.expires_at.isoformat(),
        })

    @classmethod
    def from_json(cls, raw: str) -> "Hold":
        data = json.loads(raw)
        return cls(
            hold_id=data["hold_id"],
            date=date.fromisoformat(data["date"]),
            time_slot=int(data["time_slot"]),
            service_id=int(data["service_id"]),
            holder_id=data["holder_id"],
            expires_at=datetime.fromisoformat(data["expires_at"]),
        )


@dataclass(frozen=True)
class CustomerDetails:
    customer_name: str
    customer_email: str
    customer_phone: str
    vehicle_type: Optional[str] = None
    license_plate: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class BookingDraft:
    service_id: int
    date: date
    start_time: int
    end_time: int
    customer: CustomerDetails
    status: BookingStatus = BookingStatus.PENDING
    hold_id: Optional[str] = None

    @property
    def duration_minutes(self) -> int:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class BookingRecord:
    id: int
    service_id: int
    date: date
    start_time: int
    end_time: int
    status: BookingStatus
    confirmation_code: str
    customer: CustomerDetails
    hold_id: Optional[str] = None
