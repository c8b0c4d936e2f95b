# backend/reservations/dependencies.py

import logging
from functools import lru_cache

from .config import settings
from .database import SessionLocal
from .redis_client import redis_client
from .services.booking_coordinator import BookingCoordinator
from .services.slots import CapacityLedger, MemoryCapacityLedger, RedisCapacityLedger, get_booking_config

logger = logging.getLogger(__name__)


def build_ledger() -> CapacityLedger:
    backend = settings.ledger_backend.lower()
    if backend == "redis":
        if redis_client is None:
            raise ValueError("LEDGER_BACKEND=redis requires REDIS_URL")
        logger.info("Using RedisCapacityLedger")
        return RedisCapacityLedger(redis_client, get_booking_config())
    if backend != "memory":
        raise ValueError(f"Unknown ledger backend: {settings.ledger_backend}")
    logger.info("Using MemoryCapacityLedger")
    return MemoryCapacityLedger(get_booking_config())


@lru_cache
def get_coordinator() -> BookingCoordinator:
    """Process-wide coordinator; its locks must be shared by every request."""
    return BookingCoordinator(SessionLocal, build_ledger(), get_booking_config())
