# backend/washbook/services/slots/config.py
"""
Booking configuration for slots calculation, plus the time helpers
shared by every module of the engine.
"""

import re
from dataclasses import dataclass
from functools import lru_cache

from ...config import settings

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for booking/slots system.

    Attributes:
        slot_step_minutes: Candidate grid step in minutes (15/30/60)
        hold_ttl_seconds: Lifetime of a slot hold
        hold_tombstone_seconds: How long an expired hold token stays
            recognisable (expired vs unknown)
        min_advance_minutes: Lead time before a slot can be booked
        horizon_days: How many days ahead slots can be held
        cancellation_deadline_hours: Notice required for customer cancellation
        auto_confirm_bookings: New bookings start CONFIRMED instead of PENDING
        retry_attempts: Attempts for transient store/ledger failures
        retry_base_delay: First backoff delay in seconds
        retry_max_delay: Backoff cap in seconds
    """
    slot_step_minutes: int = 30  # 15 / 30 / 60
    hold_ttl_seconds: int = 300  # 5 minutes
    hold_tombstone_seconds: int = 3600
    min_advance_minutes: int = 0
    horizon_days: int = 30
    cancellation_deadline_hours: int = 24
    auto_confirm_bookings: bool = False
    retry_attempts: int = 3
    retry_base_delay: float = 0.05
    retry_max_delay: float = 1.0

    def __post_init__(self):
        """Validate configuration."""
        if self.slot_step_minutes not in (15, 30, 60):
            raise ValueError(f"slot_step_minutes must be 15, 30, or 60, got {self.slot_step_minutes}")
        if self.hold_ttl_seconds <= 0:
            raise ValueError(f"hold_ttl_seconds must be > 0, got {self.hold_ttl_seconds}")
        if self.hold_tombstone_seconds < 0:
            raise ValueError(f"hold_tombstone_seconds must be >= 0, got {self.hold_tombstone_seconds}")
        if self.min_advance_minutes < 0:
            raise ValueError(f"min_advance_minutes must be >= 0, got {self.min_advance_minutes}")
        if self.horizon_days < 1:
            raise ValueError(f"horizon_days must be >= 1, got {self.horizon_days}")
        if self.retry_attempts < 1:
            raise ValueError(f"retry_attempts must be >= 1, got {self.retry_attempts}")


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton) from settings."""
    return BookingConfig(
        slot_step_minutes=settings.slot_step_minutes,
        hold_ttl_seconds=settings.hold_ttl_seconds,
        hold_tombstone_seconds=settings.hold_tombstone_seconds,
        min_advance_minutes=settings.min_advance_minutes,
        horizon_days=settings.horizon_days,
        cancellation_deadline_hours=settings.cancellation_deadline_hours,
        auto_confirm_bookings=settings.auto_confirm_bookings,
        retry_attempts=settings.retry_attempts,
        retry_base_delay=settings.retry_base_delay,
        retry_max_delay=settings.retry_max_delay,
    )


# ── Time helpers ─────────────────────────────────────────────────────────


def is_time_str(value: str) -> bool:
    return bool(_TIME_RE.match(value or ""))


def time_str_to_minutes(value: str) -> int:
    """Convert "HH:MM" to minute of day. "24:00" is accepted as end of day."""
    if value == "24:00":
        return 24 * 60
    match = _TIME_RE.match(value or "")
    if not match:
        raise ValueError(f"Time must be in HH:MM format, got {value!r}")
    return int(match.group(1)) * 60 + int(match.group(2))


def minutes_to_time_str(minutes: int) -> str:
    """Convert minute of day to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def overlaps(a_start: int, a_end: int, b_start: int, b_end: int) -> bool:
    """
    Half-open interval overlap: [a_start, a_end) ∩ [b_start, b_end) ≠ ∅.

    The only overlap test used by the engine. Touching intervals
    (a_end == b_start) do not overlap.
    """
    return a_start < b_end and a_end > b_start
