import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db, init_db
from .errors import ConflictError, EngineError, UnavailableError
from .redis_client import redis_client
from .routers import bookings, holds, slots

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield


app = FastAPI(title="Wash-bay Booking API", lifespan=lifespan)


@app.exception_handler(EngineError)
async def engine_error_handler(request: Request, exc: EngineError):
    if isinstance(exc, ConflictError):
        logger.info(f"{request.method} {request.url.path}: conflict ({exc})")
    elif isinstance(exc, UnavailableError):
        logger.warning(f"{request.method} {request.url.path}: unavailable ({exc})")
    elif exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


@app.get("/health")
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        database_ok = True
    except SQLAlchemyError as e:
        logger.warning(f"Health check: database unreachable: {e}")
        database_ok = False

    try:
        redis_ok = bool(redis_client.ping())
    except RedisError as e:
        logger.warning(f"Health check: redis unreachable: {e}")
        redis_ok = False

    status_code = 200 if database_ok and redis_ok else 503
    return JSONResponse(
        status_code=status_code,
        content={"database": database_ok, "redis": redis_ok},
    )


app.include_router(slots.router)
app.include_router(holds.router)
app.include_router(bookings.router)
