# backend/washbook/services/slots/calendar.py
"""
BusinessCalendar: opening hours, breaks, holidays and maintenance blocks.

Read-only. "Not configured" means closed, never an exception.

Sources:
✓ business_hours (one row per weekday)
✓ calendar_overrides covering the date
    holiday without times    → closed
    holiday with times       → Block(kind="holiday")
    maintenance with times   → Block(kind="maintenance")
    maintenance without times→ Block over the whole day
"""

import logging
from datetime import date
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from ...database import db_unavailable_guard
from ...models.generated import BusinessHours, CalendarOverrides
from .config import time_str_to_minutes
from .domain import Block, DayHours

logger = logging.getLogger(__name__)

OVERRIDE_HOLIDAY = "holiday"
OVERRIDE_MAINTENANCE = "maintenance"

WHOLE_DAY = (0, 24 * 60)


class BusinessCalendar(Protocol):
    def hours_for(self, target_date: date) -> Optional[DayHours]:
        ...

    def blocks_for(self, target_date: date) -> list[Block]:
        ...


class SqlBusinessCalendar:
    """BusinessCalendar backed by business_hours / calendar_overrides."""

    def __init__(self, db: Session):
        self.db = db

    def hours_for(self, target_date: date) -> Optional[DayHours]:
        with db_unavailable_guard(self.db, "calendar.hours_for"):
            row = self.db.get(BusinessHours, target_date.weekday())
            overrides = self._overrides(target_date)

        if row is None or not row.is_open:
            return None

        for ovr in overrides:
            if ovr.override_kind == OVERRIDE_HOLIDAY and not (ovr.start_time and ovr.end_time):
                return None

        return _row_to_hours(row)

    def blocks_for(self, target_date: date) -> list[Block]:
        with db_unavailable_guard(self.db, "calendar.blocks_for"):
            overrides = self._overrides(target_date)

        blocks = []
        for ovr in overrides:
            if ovr.override_kind == OVERRIDE_HOLIDAY:
                if not (ovr.start_time and ovr.end_time):
                    continue  # whole-day holiday is handled by hours_for
                span = _parse_span(ovr)
                message = ovr.reason or "Closed for holiday"
            elif ovr.override_kind == OVERRIDE_MAINTENANCE:
                span = _parse_span(ovr) if ovr.start_time and ovr.end_time else WHOLE_DAY
                message = ovr.reason or "Closed for maintenance"
            else:
                logger.warning(f"Unknown override kind {ovr.override_kind!r} (id={ovr.id})")
                continue

            if span is None:
                continue
            blocks.append(Block(ovr.override_kind, span[0], span[1], message))

        return sorted(blocks, key=lambda b: (b.start, b.end))

    def _overrides(self, target_date: date) -> list:
        date_str = target_date.isoformat()
        return (
            self.db.query(CalendarOverrides)
            .filter(
                CalendarOverrides.date_start <= date_str,
                CalendarOverrides.date_end >= date_str,
            )
            .all()
        )


# ── Helpers ──────────────────────────────────────────────────────────────


def _row_to_hours(row: BusinessHours) -> Optional[DayHours]:
    """Convert a business_hours row; misconfigured rows count as closed."""
    try:
        has_break = bool(row.break_start and row.break_end)
        return DayHours(
            open_time=time_str_to_minutes(row.open_time),
            close_time=time_str_to_minutes(row.close_time),
            break_start=time_str_to_minutes(row.break_start) if has_break else None,
            break_end=time_str_to_minutes(row.break_end) if has_break else None,
        )
    except ValueError as e:
        logger.warning(f"Invalid business hours for weekday {row.weekday}: {e}")
        return None


def _parse_span(ovr: CalendarOverrides) -> Optional[tuple[int, int]]:
    try:
        start = time_str_to_minutes(ovr.start_time)
        end = time_str_to_minutes(ovr.end_time)
    except ValueError as e:
        logger.warning(f"Invalid override times (id={ovr.id}): {e}")
        return None
    if start >= end:
        logger.warning(f"Empty override range {ovr.start_time}-{ovr.end_time} (id={ovr.id})")
        return None
    return start, end
