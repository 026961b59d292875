"""Shared fixtures: in-memory SQLite, seeded calendar/services, fixed clock."""

from datetime import date, datetime, timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from washbook.database import enable_sqlite_fk, get_db
from washbook.deps import get_clock, get_config, get_emitter, get_hold_store
from washbook.main import app
from washbook.models.generated import Base, BusinessHours, Services, WashBays
from washbook.services.slots import (
    BookingConfig,
    InMemoryHoldStore,
    ReservationCoordinator,
    SlotAvailabilityEngine,
    SqlBookingLedger,
    SqlBusinessCalendar,
    SqlServiceCatalog,
)
from washbook.services.slots.domain import CustomerDetails

MONDAY = date(2026, 11, 2)
TUESDAY = date(2026, 11, 3)
SATURDAY = date(2026, 11, 7)
SUNDAY = date(2026, 11, 8)

# Sunday morning before the test week
NOW = datetime(2026, 11, 1, 9, 0)

EXTERIOR = 1  # 45 min, shared bays
DETAIL = 2  # 90 min, one dedicated bay
RETIRED = 3  # inactive


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class EventRecorder:
    def __init__(self):
        self.events = []

    def __call__(self, event_type: str, payload: dict) -> None:
        self.events.append((event_type, payload))

    def types(self) -> list[str]:
        return [event_type for event_type, _ in self.events]


def seed(db) -> None:
    # Monday 08:00-17:00 with lunch break, Tue-Fri without break,
    # Saturday explicitly closed, Sunday not configured
    db.add(BusinessHours(
        weekday=0, is_open=1, open_time="08:00", close_time="17:00",
        break_start="12:00", break_end="13:00",
    ))
    for weekday in range(1, 5):
        db.add(BusinessHours(weekday=weekday, is_open=1, open_time="08:00", close_time="17:00"))
    db.add(BusinessHours(weekday=5, is_open=0, open_time="08:00", close_time="17:00"))

    db.add(Services(id=EXTERIOR, name="Exterior wash", duration_min=45, price=25.0))
    db.add(Services(id=DETAIL, name="Interior detail", duration_min=90, price=80.0, capacity=1))
    db.add(Services(id=RETIRED, name="Wax (retired)", duration_min=30, price=15.0, is_active=0))

    db.add(WashBays(id=1, name="Bay 1", is_enabled=1))
    db.add(WashBays(id=2, name="Bay 2 (closed)", is_enabled=0))
    db.commit()


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", enable_sqlite_fk)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(db_engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
    seed(session)
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def config():
    return BookingConfig(retry_base_delay=0, retry_max_delay=0)


@pytest.fixture
def expired_holds():
    return []


@pytest.fixture
def holds(clock, expired_holds):
    return InMemoryHoldStore(clock=clock, on_expire=expired_holds.append)


@pytest.fixture
def events():
    return EventRecorder()


@pytest.fixture
def slot_engine(db, holds, config, clock):
    return SlotAvailabilityEngine(
        calendar=SqlBusinessCalendar(db),
        catalog=SqlServiceCatalog(db),
        ledger=SqlBookingLedger(db),
        holds=holds,
        config=config,
        clock=clock,
    )


@pytest.fixture
def coordinator(slot_engine, events):
    return ReservationCoordinator(slot_engine, emit=events)


@pytest.fixture
def customer():
    return CustomerDetails(
        customer_name="Dana Example",
        customer_email="dana@example.com",
        customer_phone="+15550100",
        vehicle_type="sedan",
        license_plate="ABC-123",
    )


@pytest.fixture
def client(db, holds, config, clock, events):
    def override_db():
        yield db

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_hold_store] = lambda: holds
    app.dependency_overrides[get_config] = lambda: config
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_emitter] = lambda: events
    yield TestClient(app)
    app.dependency_overrides.clear()
