# backend/washbook/deps.py
"""
FastAPI dependencies: one engine/coordinator per request over the
request's DB session and the process-wide hold store.
"""

from datetime import datetime
from functools import lru_cache
from typing import Callable

from fastapi import Depends
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .redis_client import redis_client
from .services.events import emit_event
from .services.slots import (
    BookingConfig,
    InMemoryHoldStore,
    RedisHoldStore,
    ReservationCoordinator,
    SlotAvailabilityEngine,
    SqlBookingLedger,
    SqlBusinessCalendar,
    SqlServiceCatalog,
    get_booking_config,
)
from .services.slots.coordinator import hold_payload
from .services.slots.domain import Hold
from .services.slots.hold_store import HoldStore


def get_clock() -> Callable[[], datetime]:
    return datetime.now


def get_config() -> BookingConfig:
    return get_booking_config()


def get_emitter() -> Callable[[str, dict], None]:
    return emit_event


@lru_cache
def get_hold_store() -> HoldStore:
    config = get_booking_config()
    if settings.hold_backend == "memory":
        return InMemoryHoldStore(
            on_expire=_emit_hold_expired,
            tombstone_seconds=config.hold_tombstone_seconds,
        )
    return RedisHoldStore(redis_client, config)


def _emit_hold_expired(hold: Hold) -> None:
    emit_event("hold_expired", hold_payload(hold))


def get_engine(
    db: Session = Depends(get_db),
    holds: HoldStore = Depends(get_hold_store),
    config: BookingConfig = Depends(get_config),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> SlotAvailabilityEngine:
    return SlotAvailabilityEngine(
        calendar=SqlBusinessCalendar(db),
        catalog=SqlServiceCatalog(db),
        ledger=SqlBookingLedger(db),
        holds=holds,
        config=config,
        clock=clock,
    )


def get_coordinator(
    engine: SlotAvailabilityEngine = Depends(get_engine),
    emit: Callable[[str, dict], None] = Depends(get_emitter),
) -> ReservationCoordinator:
    return ReservationCoordinator(engine, emit=emit)
