import os

from dotenv import load_dotenv


# ======================================================
# ENV
# ======================================================

load_dotenv()

WASH_BAYS = int(os.getenv("WASH_BAYS", "2"))

if WASH_BAYS < 1:
    raise RuntimeError("WASH_BAYS must be at least 1")

# settings are read on import, after .env is loaded
from washbook.database import SessionLocal, init_db  # noqa: E402
from washbook.models.generated import BusinessHours, Services, WashBays  # noqa: E402


# ======================================================
# DEFAULT SITE
# ======================================================

# weekday: 0 = Monday
BUSINESS_HOURS = [
    (0, True, "08:00", "17:00", "12:00", "13:00"),
    (1, True, "08:00", "17:00", "12:00", "13:00"),
    (2, True, "08:00", "17:00", "12:00", "13:00"),
    (3, True, "08:00", "17:00", "12:00", "13:00"),
    (4, True, "08:00", "17:00", "12:00", "13:00"),
    (5, True, "10:00", "16:00", None, None),
    (6, False, "00:00", "00:00", None, None),
]

# (name, duration_min, price, dedicated capacity or None = shared bays)
SERVICES = [
    ("Hand Wash", 30, 25.0, None),
    ("Hand Wash + Quick Wax", 40, 30.0, None),
    ("Hand Wash + Interior Cleaning", 60, 55.0, None),
    ("Hand Wash + Normal Wax", 90, 70.0, None),
    ("Hand Wash + Hard Wax", 120, 110.0, 1),
    ("Paint Surface Polishing", 240, 350.0, 1),
    ("Tire Change", 30, 20.0, None),
    ("Engine Wash", 30, 20.0, None),
    ("Odor Removal with Ozone", 60, 50.0, 1),
]


# ======================================================
# INIT
# ======================================================

def init_site():
    init_db()
    db = SessionLocal()

    try:
        for weekday, is_open, open_time, close_time, break_start, break_end in BUSINESS_HOURS:
            db.merge(BusinessHours(
                weekday=weekday,
                is_open=int(is_open),
                open_time=open_time,
                close_time=close_time,
                break_start=break_start,
                break_end=break_end,
            ))
        print("✔ Business hours set")

        existing = {name for (name,) in db.query(Services.name).all()}
        created = 0
        for name, duration, price, capacity in SERVICES:
            if name in existing:
                continue
            db.add(Services(name=name, duration_min=duration, price=price, capacity=capacity))
            created += 1
        print(f"✔ Services created: {created} (existing kept: {len(existing)})")

        bays = db.query(WashBays).count()
        for i in range(bays, WASH_BAYS):
            db.add(WashBays(name=f"Bay {i + 1}"))
        print(f"✔ Wash bays: {max(bays, WASH_BAYS)}")

        db.commit()
    finally:
        db.close()


if __name__ == "__main__":
    init_site()
    print("✔ Site initialized")
