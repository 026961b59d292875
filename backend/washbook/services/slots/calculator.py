# backend/washbook/services/slots/calculator.py
"""
Level 1: candidate start times for one service on one day.

Produces minutes of day on a fixed grid (slot_step_minutes) starting
at open_time.

Contains:
✓ opening / closing time (start + duration <= close)
✓ break ([start, start + duration) must not overlap the break)
✓ lead time (min_advance_minutes, relative to now)

Does NOT contain:
✗ Bookings (counted at Level 2, availability.py)
✗ Holds (checked at Level 2)
✗ Holiday / maintenance blocks (reported as conflicts at Level 2)
"""

from datetime import date, datetime, timedelta

from .config import overlaps
from .domain import DayHours


def generate_candidates(hours: DayHours, duration: int, step: int) -> list[int]:
    """
    Start times (minutes) whose whole interval fits inside opening hours.

    Args:
        hours: Opening hours of the day
        duration: Service duration in minutes
        step: Grid step in minutes

    Returns:
        Ascending list of start minutes. Empty list = nothing fits.
    """
    if duration <= 0 or step <= 0:
        return []

    candidates = []
    t = hours.open_time
    while t + duration <= hours.close_time:
        if not (hours.has_break and overlaps(t, t + duration, hours.break_start, hours.break_end)):
            candidates.append(t)
        t += step

    return candidates


def apply_lead_time(
    candidates: list[int],
    target_date: date,
    now: datetime,
    min_advance_minutes: int,
) -> list[int]:
    """Drop candidates that start before now + min_advance_minutes."""
    cutoff = now + timedelta(minutes=min_advance_minutes)
    day_start = datetime.combine(target_date, datetime.min.time())
    return [t for t in candidates if day_start + timedelta(minutes=t) >= cutoff]
