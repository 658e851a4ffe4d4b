import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import BASE_DIR, settings
from .database import engine
from .models.generated import Base
from .redis_client import redis_client
from .routers import (
    admin_bookings,
    admin_holidays,
    admin_rules,
    admin_schedule,
    audit_log,
    availability,
    bookings,
)
from .services.errors import BookingServiceError
from .services.horizon_checker import horizon_checker_loop

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if settings.create_tables_on_startup:
        if settings.database_url.startswith("sqlite:///./"):
            (BASE_DIR / "data").mkdir(exist_ok=True)
        Base.metadata.create_all(bind=engine, checkfirst=True)
        logger.info("Database tables created")

    horizon_task = None
    if settings.horizon_check_enabled:
        horizon_task = asyncio.create_task(
            horizon_checker_loop(settings.horizon_check_interval_seconds)
        )

    yield

    if horizon_task is not None:
        horizon_task.cancel()
        await asyncio.gather(horizon_task, return_exceptions=True)


app = FastAPI(title="Garden Booking API", lifespan=lifespan)


# ===== Domain errors =====
@app.exception_handler(BookingServiceError)
async def booking_error_handler(request: Request, exc: BookingServiceError):
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


# ===== Routers =====
app.include_router(availability.router)
app.include_router(bookings.router)
app.include_router(admin_rules.router)
app.include_router(admin_holidays.router)
app.include_router(admin_schedule.router)
app.include_router(admin_bookings.router)
app.include_router(audit_log.router)


@app.get("/health")
def health():
    try:
        redis_ok = bool(redis_client.ping())
    except Exception as e:
        logger.warning(f"Redis ping failed: {e}")
        redis_ok = False
    return {"status": "ok", "redis": redis_ok}
