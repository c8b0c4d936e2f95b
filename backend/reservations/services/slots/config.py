# backend/reservations/services/slots/config.py
"""
Engine configuration and time helpers for slot calculation.
"""

from dataclasses import dataclass
from datetime import date, datetime, time
from functools import lru_cache


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the booking engine.

    Attributes:
        lock_timeout_seconds: Max wait for a slot lock before BookingConflict
        cas_max_retries: Attempts of the ledger compare-and-increment under contention
        calendar_preview_limit: Bookings shown per calendar cell before "+N"
        key_prefix: Namespace of ledger counters in Redis
    """
    lock_timeout_seconds: float = 5.0
    cas_max_retries: int = 10
    calendar_preview_limit: int = 3
    key_prefix: str = "ledger:slot"

    def __post_init__(self):
        """Validate configuration."""
        if self.lock_timeout_seconds <= 0:
            raise ValueError(f"lock_timeout_seconds must be positive, got {self.lock_timeout_seconds}")
        if self.cas_max_retries < 1:
            raise ValueError(f"cas_max_retries must be at least 1, got {self.cas_max_retries}")
        if self.calendar_preview_limit < 1:
            raise ValueError(f"calendar_preview_limit must be at least 1, got {self.calendar_preview_limit}")


@lru_cache
def get_booking_config() -> BookingConfig:
    """
    Get booking configuration (singleton).
    """
    return BookingConfig()


# ── Time helpers ─────────────────────────────────────────────────────────


def time_str_to_minutes(value: str | time) -> int:
    """
    Convert "HH:MM" (or "HH:MM:SS", or a time) to minutes since midnight.

    Raises ValueError on malformed input.
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    parts = value.strip().split(":")
    if len(parts) not in (2, 3):
        raise ValueError(f"Time must be in HH:MM format, got {value!r}")
    hour, minute = int(parts[0]), int(parts[1])
    seconds = int(parts[2]) if len(parts) == 3 else 0
    if not (0 <= hour <= 23 and 0 <= minute <= 59) or seconds != 0:
        raise ValueError(f"Time out of range: {value!r}")
    return hour * 60 + minute


def minutes_to_time_str(minutes: int) -> str:
    """Convert minutes since midnight to "HH:MM"."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_time_str(value: str | time) -> str:
    """Canonical "HH:MM" form; "10:00:00" → "10:00"."""
    return minutes_to_time_str(time_str_to_minutes(value))


def as_date(value: str | date | datetime) -> date:
    """Parse a date that may come as ISO string, date or datetime."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(value[:10])
