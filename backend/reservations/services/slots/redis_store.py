# backend/reservations/services/slots/redis_store.py
"""
Redis-backed capacity ledger.

Key format: ledger:slot:{window_id}:{date}:{HH:MM}
Value: integer count of active bookings for the slot.

Conditional updates use WATCH/MULTI: read the counter, decide, then
commit only if nobody touched the key in between. A WatchError means
another writer won the race; the step is retried a bounded number of
times before surfacing BookingConflict.
"""

import logging

from redis import Redis
from redis.exceptions import WatchError

from ...errors import BookingConflict, LedgerUnderflow
from .config import BookingConfig, get_booking_config
from .ledger import CapacityLedger, SlotKey

logger = logging.getLogger(__name__)


def _decode(value) -> str:
    return value.decode() if isinstance(value, bytes) else value


class RedisCapacityLedger(CapacityLedger):
    """Redis storage wrapper for slot counters, shared by all API workers."""

    def __init__(self, redis: Redis, config: BookingConfig | None = None):
        self.redis = redis
        self.config = config or get_booking_config()

    def _key(self, key: SlotKey) -> str:
        return f"{self.config.key_prefix}:{key.window_id}:{key.date.isoformat()}:{key.time}"

    def _window_pattern(self, window_id: int) -> str:
        return f"{self.config.key_prefix}:{window_id}:*"

    def _parse_key(self, raw) -> SlotKey:
        # time part contains a colon itself, so split at most twice
        rest = _decode(raw)[len(self.config.key_prefix) + 1:]
        window_id, dt, time_str = rest.split(":", 2)
        return SlotKey.of(window_id, dt, time_str)

    # ── Read ─────────────────────────────────────────────────────────────

    def occupied(self, key: SlotKey) -> int:
        value = self.redis.get(self._key(key))
        return int(value) if value is not None else 0

    def window_counts(self, window_id: int) -> dict[SlotKey, int]:
        keys = self.redis.keys(self._window_pattern(window_id))
        if not keys:
            return {}

        values = self.redis.mget(keys)
        result = {}
        for raw_key, value in zip(keys, values):
            if value is not None and int(value) > 0:
                result[self._parse_key(raw_key)] = int(value)
        return result

    # ── Write ────────────────────────────────────────────────────────────

    def increment(self, key: SlotKey) -> int:
        return int(self.redis.incr(self._key(key)))

    def increment_if_below(self, key: SlotKey, limit: int | None) -> bool:
        if limit is None:
            self.increment(key)
            return True

        redis_key = self._key(key)
        for attempt in range(self.config.cas_max_retries):
            with self.redis.pipeline() as pipe:
                try:
                    pipe.watch(redis_key)
                    current = int(pipe.get(redis_key) or 0)
                    if current >= limit:
                        pipe.unwatch()
                        return False
                    pipe.multi()
                    pipe.incr(redis_key)
                    pipe.execute()
                    return True
                except WatchError:
                    logger.debug(f"Ledger contention on {redis_key}, attempt {attempt + 1}")
                    continue

        raise BookingConflict(
            f"Slot {key.date} {key.time} is under heavy contention, please retry",
            attempts=self.config.cas_max_retries,
        )

    def decrement(self, key: SlotKey) -> int:
        redis_key = self._key(key)
        for attempt in range(self.config.cas_max_retries):
            with self.redis.pipeline() as pipe:
                try:
                    pipe.watch(redis_key)
                    current = int(pipe.get(redis_key) or 0)
                    if current <= 0:
                        pipe.unwatch()
                        raise LedgerUnderflow(f"Slot {key} has no active bookings to release")
                    pipe.multi()
                    if current == 1:
                        pipe.delete(redis_key)
                    else:
                        pipe.decr(redis_key)
                    pipe.execute()
                    return current - 1
                except WatchError:
                    logger.debug(f"Ledger contention on {redis_key}, attempt {attempt + 1}")
                    continue

        raise BookingConflict(
            f"Slot {key.date} {key.time} is under heavy contention, please retry",
            attempts=self.config.cas_max_retries,
        )

    # ── Bulk ─────────────────────────────────────────────────────────────

    def clear_window(self, window_id: int) -> int:
        keys = self.redis.keys(self._window_pattern(window_id))
        if not keys:
            return 0
        return self.redis.delete(*keys)

    def load(self, counts: dict[SlotKey, int]) -> None:
        """Replace every counter under the ledger prefix via one pipeline."""
        existing = self.redis.keys(f"{self.config.key_prefix}:*")

        pipe = self.redis.pipeline()
        if existing:
            pipe.delete(*existing)
        for key, count in counts.items():
            if count > 0:
                pipe.set(self._key(key), count)
        pipe.execute()
