# backend/reservations/main.py

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from .config import settings
from .database import engine
from .dependencies import get_coordinator
from .errors import ReservationError
from .models import Base
from .redis_client import redis_client
from .routers import bookings, units, windows

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    Base.metadata.create_all(bind=engine)
    # counters are derived state: reload them from the active bookings
    total = get_coordinator().rebuild_ledger()
    logger.info(f"Reservations API started, {total} active bookings loaded ({settings.ledger_backend} ledger)")
    yield


app = FastAPI(title="Reservations API", lifespan=lifespan)


@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError):
    if exc.status_code >= 500:
        logger.warning(f"{request.method} {request.url.path}: {exc.code} {exc}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


app.include_router(windows.router)
app.include_router(bookings.router)
app.include_router(units.router)


@app.get("/health")
def health():
    return {
        "status": "ok",
        "ledger": settings.ledger_backend,
        "redis": redis_client.ping() if redis_client is not None else None,
    }
