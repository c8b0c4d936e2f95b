# backend/reservations/services/slots/locks.py
"""
In-process locks keyed by slot or window.

All acquisitions are bounded: a waiter that runs out of time gets
BookingConflict (retriable) instead of blocking the request forever.

Lock registries hold weak references: an entry lives only while some
holder or waiter references it, so keys of deleted windows or past
slots do not accumulate.
"""

import threading
import weakref
from contextlib import contextmanager
from typing import Iterator

from ...errors import BookingConflict


class KeyedLocks:
    """One exclusive lock per key, created on first use."""

    def __init__(self, timeout: float):
        self._timeout = timeout
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def _get_lock(self, key) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._locks[key] = lock
            return lock

    @contextmanager
    def hold(self, key) -> Iterator[None]:
        lock = self._get_lock(key)
        if not lock.acquire(timeout=self._timeout):
            raise BookingConflict(
                f"Timed out waiting for {key}, please retry",
                timeout_seconds=self._timeout,
            )
        try:
            yield
        finally:
            lock.release()


class SharedLock:
    """Many shared holders or one exclusive holder."""

    def __init__(self):
        self._cond = threading.Condition()
        self._readers = 0
        self._writer = False

    def acquire_shared(self, timeout: float) -> bool:
        with self._cond:
            if not self._cond.wait_for(lambda: not self._writer, timeout):
                return False
            self._readers += 1
            return True

    def release_shared(self) -> None:
        with self._cond:
            self._readers -= 1
            self._cond.notify_all()

    def acquire_exclusive(self, timeout: float) -> bool:
        with self._cond:
            if not self._cond.wait_for(lambda: not self._writer and self._readers == 0, timeout):
                return False
            self._writer = True
            return True

    def release_exclusive(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()


class WindowGate:
    """
    Per-window shared/exclusive lock.

    Bookings and cancellations hold it shared, so they only contend on
    their slot lock. Window edits and deletes hold it exclusively, so the
    set of active bookings cannot change while an edit is validated.
    """

    def __init__(self, timeout: float):
        self._timeout = timeout
        self._locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()
        self._guard = threading.Lock()

    def _get_lock(self, window_id: int) -> SharedLock:
        with self._guard:
            lock = self._locks.get(window_id)
            if lock is None:
                lock = SharedLock()
                self._locks[window_id] = lock
            return lock

    def _conflict(self, window_id: int) -> BookingConflict:
        return BookingConflict(
            f"Window {window_id} is busy, please retry",
            window_id=window_id,
            timeout_seconds=self._timeout,
        )

    @contextmanager
    def shared(self, window_id: int) -> Iterator[None]:
        lock = self._get_lock(window_id)
        if not lock.acquire_shared(self._timeout):
            raise self._conflict(window_id)
        try:
            yield
        finally:
            lock.release_shared()

    @contextmanager
    def exclusive(self, window_id: int) -> Iterator[None]:
        lock = self._get_lock(window_id)
        if not lock.acquire_exclusive(self._timeout):
            raise self._conflict(window_id)
        try:
            yield
        finally:
            lock.release_exclusive()
