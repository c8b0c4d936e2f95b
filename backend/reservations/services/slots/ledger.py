# backend/reservations/services/slots/ledger.py
"""
CapacityLedger: per-slot count of active bookings.

The ledger is a counter with atomic semantics, not a policy engine.
It never decides whether a booking is allowed; BookingCoordinator does,
through the compare-and-increment primitive `increment_if_below`.

Backends:
- MemoryCapacityLedger: per-key threading locks (single process)
- RedisCapacityLedger: WATCH/MULTI optimistic transactions (see redis_store.py)
"""

from abc import ABC, abstractmethod
from datetime import date
from typing import NamedTuple

from ...errors import LedgerUnderflow
from .config import BookingConfig, as_date, get_booking_config, normalize_time_str
from .locks import KeyedLocks


class SlotKey(NamedTuple):
    window_id: int
    date: date
    time: str  # "HH:MM"

    @classmethod
    def of(cls, window_id: int, slot_date, slot_time) -> "SlotKey":
        """Build a key from loosely typed parts ("2025-01-10", "10:00:00", ...)."""
        return cls(int(window_id), as_date(slot_date), normalize_time_str(slot_time))


class CapacityLedger(ABC):
    """Port for slot occupancy counters."""

    @abstractmethod
    def occupied(self, key: SlotKey) -> int:
        """Active booking count for the slot."""
        raise NotImplementedError

    @abstractmethod
    def increment(self, key: SlotKey) -> int:
        """Unconditionally add one; returns the new count."""
        raise NotImplementedError

    @abstractmethod
    def increment_if_below(self, key: SlotKey, limit: int | None) -> bool:
        """
        Atomically add one if the count is below `limit` (None = unlimited).

        Returns False, leaving the counter untouched, when the slot is full.
        Raises BookingConflict when the atomic step cannot complete in bounded time.
        """
        raise NotImplementedError

    @abstractmethod
    def decrement(self, key: SlotKey) -> int:
        """Remove one; raises LedgerUnderflow instead of going below zero."""
        raise NotImplementedError

    @abstractmethod
    def window_counts(self, window_id: int) -> dict[SlotKey, int]:
        """Non-zero counters of one window."""
        raise NotImplementedError

    @abstractmethod
    def clear_window(self, window_id: int) -> int:
        """Drop every counter of a window; returns the number removed."""
        raise NotImplementedError

    @abstractmethod
    def load(self, counts: dict[SlotKey, int]) -> None:
        """Replace all counters (rebuild from persisted bookings)."""
        raise NotImplementedError

    def available(self, window, key: SlotKey) -> int | None:
        """
        Remaining capacity of the slot, clamped at zero.

        None means unbounded (window without max_limit).
        """
        max_limit = getattr(window, "max_limit", None)
        if max_limit is None:
            return None
        return max(max_limit - self.occupied(key), 0)


class MemoryCapacityLedger(CapacityLedger):
    """In-process ledger; every mutation happens under the slot's own lock."""

    def __init__(self, config: BookingConfig | None = None):
        self.config = config or get_booking_config()
        self._counts: dict[SlotKey, int] = {}
        self._locks = KeyedLocks(self.config.lock_timeout_seconds)

    def occupied(self, key: SlotKey) -> int:
        return self._counts.get(key, 0)

    def increment(self, key: SlotKey) -> int:
        with self._locks.hold(key):
            count = self._counts.get(key, 0) + 1
            self._counts[key] = count
            return count

    def increment_if_below(self, key: SlotKey, limit: int | None) -> bool:
        with self._locks.hold(key):
            current = self._counts.get(key, 0)
            if limit is not None and current >= limit:
                return False
            self._counts[key] = current + 1
            return True

    def decrement(self, key: SlotKey) -> int:
        with self._locks.hold(key):
            current = self._counts.get(key, 0)
            if current <= 0:
                raise LedgerUnderflow(f"Slot {key} has no active bookings to release")
            if current == 1:
                del self._counts[key]
                return 0
            self._counts[key] = current - 1
            return current - 1

    def window_counts(self, window_id: int) -> dict[SlotKey, int]:
        return {k: v for k, v in list(self._counts.items()) if k.window_id == window_id}

    def clear_window(self, window_id: int) -> int:
        keys = [k for k in list(self._counts) if k.window_id == window_id]
        for key in keys:
            with self._locks.hold(key):
                self._counts.pop(key, None)
        return len(keys)

    def load(self, counts: dict[SlotKey, int]) -> None:
        self._counts = {k: v for k, v in counts.items() if v > 0}
