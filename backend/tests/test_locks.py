"""
Tests for the in-process slot locks and window gate.
"""

import gc
import threading

import pytest

from reservations.errors import BookingConflict
from reservations.services.slots.locks import KeyedLocks, WindowGate


def test_keyed_lock_times_out_with_conflict():
    locks = KeyedLocks(timeout=0.05)
    acquired = threading.Event()
    release = threading.Event()

    def holder():
        with locks.hold("slot"):
            acquired.set()
            release.wait(5)

    thread = threading.Thread(target=holder)
    thread.start()
    acquired.wait(5)
    try:
        with pytest.raises(BookingConflict):
            with locks.hold("slot"):
                pass
        # other keys are independent
        with locks.hold("other"):
            pass
    finally:
        release.set()
        thread.join()


def test_keyed_locks_are_dropped_after_use():
    locks = KeyedLocks(timeout=1.0)

    for i in range(100):
        with locks.hold(("window", i)):
            pass

    gc.collect()
    assert len(locks._locks) == 0


def test_window_gate_shared_holders_coexist():
    gate = WindowGate(timeout=0.05)

    with gate.shared(1):
        with gate.shared(1):
            pass
        with pytest.raises(BookingConflict):
            with gate.exclusive(1):
                pass
        with gate.exclusive(2):
            pass


def test_window_gate_exclusive_blocks_shared():
    gate = WindowGate(timeout=0.05)

    with gate.exclusive(1):
        with pytest.raises(BookingConflict) as exc_info:
            with gate.shared(1):
                pass

    assert exc_info.value.context["window_id"] == 1
    with gate.shared(1):
        pass


def test_window_gate_entries_are_dropped_after_use():
    gate = WindowGate(timeout=1.0)

    for window_id in range(50):
        with gate.exclusive(window_id):
            pass
        with gate.shared(window_id):
            pass

    gc.collect()
    assert len(gate._locks) == 0
