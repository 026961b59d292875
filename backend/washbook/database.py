import logging
from contextlib import contextmanager
from pathlib import Path

from sqlalchemy import create_engine, event
from sqlalchemy.exc import DisconnectionError, InterfaceError, OperationalError
from sqlalchemy.orm import sessionmaker

from .config import settings
from .errors import UnavailableError

logger = logging.getLogger(__name__)

# Connection-class failures; everything else is a bug or a client error
TRANSIENT_DB_ERRORS = (OperationalError, InterfaceError, DisconnectionError)

DATABASE_URL = settings.resolved_database_url
IS_SQLITE = DATABASE_URL.startswith("sqlite")

# check_same_thread=False is required for SQLite under FastAPI's threadpool
engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False} if IS_SQLITE else {},
    pool_pre_ping=not IS_SQLITE,
)


def enable_sqlite_fk(dbapi_connection, _):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


if IS_SQLITE:
    event.listen(engine, "connect", enable_sqlite_fk)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


def init_db() -> None:
    """Create tables that do not exist yet."""
    from .models.generated import Base

    if IS_SQLITE and DATABASE_URL.startswith("sqlite:///"):
        db_path = DATABASE_URL.replace("sqlite:///", "", 1)
        if db_path and db_path != ":memory:":
            Path(db_path).parent.mkdir(parents=True, exist_ok=True)

    Base.metadata.create_all(bind=engine)


@contextmanager
def db_unavailable_guard(db, operation: str):
    """Re-raise connection-class database errors as UnavailableError."""
    try:
        yield
    except TRANSIENT_DB_ERRORS as e:
        logger.warning(f"Database unavailable during {operation}: {e}")
        try:
            db.rollback()
        except TRANSIENT_DB_ERRORS:
            logger.debug(f"Rollback after failed {operation} also failed")
        raise UnavailableError(f"database unavailable: {operation}") from e


# FastAPI dependency
def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
