"""
Tests for booking admission, cancellation and window lifecycle.
"""

from concurrent.futures import ThreadPoolExecutor
from datetime import date

import pytest

from reservations.errors import (
    AlreadyCancelled,
    BookingConflict,
    BookingNotFound,
    DuplicateBooking,
    InvalidWindow,
    SlotFull,
    SlotOutOfWindow,
    WindowEditConflict,
    WindowNotFound,
)
from reservations.schemas.windows import WindowCreate
from reservations.services.slots import SlotKey

def slot(window, time_str="10:00", dt=date(2025, 1, 10)):
    return SlotKey(window.id, dt, time_str)


# ── Admission ────────────────────────────────────────────────────────────


def test_fill_slot_then_reject(coordinator, make_window, make_request):
    window = make_window()

    assert [s.time for s in coordinator.slots(window.id)] == ["10:00", "10:30", "11:00", "11:30"]

    coordinator.book(make_request(window.id, subject_id=1))
    coordinator.book(make_request(window.id, subject_id=2))

    assert coordinator.ledger.occupied(slot(window)) == 2
    assert coordinator.ledger.available(window, slot(window)) == 0

    with pytest.raises(SlotFull):
        coordinator.book(make_request(window.id, subject_id=3))

    booking = coordinator.book(make_request(window.id, subject_id=3, slot_time="10:30"))
    assert booking.status == "active"
    assert booking.slot_time == "10:30"
    assert coordinator.ledger.occupied(slot(window)) == 2


def test_booking_is_persisted(coordinator, make_window, make_request):
    window = make_window()

    booking = coordinator.book(make_request(
        window.id, subject_id=7, slot_time="11:00:00", memo="key at desk", category="A",
    ))

    stored = coordinator.get_booking(booking.id)
    assert stored.slot_date == "2025-01-10"
    assert stored.slot_time == "11:00"
    assert stored.subject_id == 7
    assert stored.memo == "key at desk"
    assert stored.category == "A"
    assert stored.created_at


def test_concurrent_bookings_never_overfill(coordinator, make_window, make_request):
    window = make_window(max_limit=3)

    def attempt(subject_id):
        try:
            coordinator.book(make_request(window.id, subject_id=subject_id))
            return "ok"
        except SlotFull:
            return "full"

    with ThreadPoolExecutor(max_workers=10) as pool:
        outcomes = list(pool.map(attempt, range(1, 11)))

    assert outcomes.count("ok") == 3
    assert outcomes.count("full") == 7
    assert coordinator.ledger.occupied(slot(window)) == 3
    assert len(coordinator.list_bookings(window_id=window.id, status="active")) == 3


def test_unlimited_window_accepts_everyone(coordinator, make_window, make_request):
    window = make_window(max_limit=None)

    for subject_id in range(1, 21):
        coordinator.book(make_request(window.id, subject_id=subject_id))

    assert coordinator.ledger.occupied(slot(window)) == 20
    assert coordinator.ledger.available(window, slot(window)) is None


def test_duplicate_booking_is_rejected(coordinator, make_window, make_request):
    window = make_window(max_limit=5)
    coordinator.book(make_request(window.id, subject_id=1))

    with pytest.raises(DuplicateBooking):
        coordinator.book(make_request(window.id, subject_id=1))

    assert coordinator.ledger.occupied(slot(window)) == 1

    # same subject, other slot is fine
    coordinator.book(make_request(window.id, subject_id=1, slot_time="10:30"))


@pytest.mark.parametrize("slot_date,slot_time", [
    ("2025-01-10", "10:15"),
    ("2025-01-10", "12:00"),
    ("2025-01-10", "09:30"),
    ("2025-01-11", "10:00"),
    ("2025-01-10", "noon"),
])
def test_slot_outside_window_is_rejected(coordinator, make_window, make_request, slot_date, slot_time):
    window = make_window()

    with pytest.raises(SlotOutOfWindow):
        coordinator.book(make_request(window.id, slot_date=slot_date, slot_time=slot_time))

    assert coordinator.ledger.window_counts(window.id) == {}


def test_unknown_window(coordinator, make_request):
    with pytest.raises(WindowNotFound):
        coordinator.book(make_request(999))

    with pytest.raises(WindowNotFound):
        coordinator.get_window(999)


def test_expired_window_is_not_bookable(coordinator, make_window, make_request):
    window = make_window(date_begin=date(2024, 12, 20), date_end=date(2024, 12, 31))

    with pytest.raises(WindowNotFound):
        coordinator.book(make_request(window.id, slot_date="2024-12-31"))


def test_window_ending_today_is_bookable(coordinator, make_window, make_request):
    window = make_window(date_begin=date(2024, 12, 30), date_end=date(2025, 1, 1))

    booking = coordinator.book(make_request(window.id, slot_date="2025-01-01"))

    assert booking.status == "active"


def test_failed_persist_releases_the_seat(coordinator, make_window, make_request, monkeypatch):
    window = make_window()

    def broken_find(db, key, subject_id):
        return None

    coordinator.book(make_request(window.id, subject_id=1))
    # skip the pre-check so the unique index rejects the row
    monkeypatch.setattr(coordinator, "_find_active", broken_find)

    with pytest.raises(DuplicateBooking):
        coordinator.book(make_request(window.id, subject_id=1))

    assert coordinator.ledger.occupied(slot(window)) == 1


def test_lock_timeout_is_retriable(coordinator, make_window, make_request):
    window = make_window()
    key = slot(window)
    coordinator._slot_locks._timeout = 0.05

    with coordinator._slot_locks.hold(key):
        with ThreadPoolExecutor(max_workers=1) as pool:
            future = pool.submit(coordinator.book, make_request(window.id))
            with pytest.raises(BookingConflict) as exc_info:
                future.result()

    assert exc_info.value.retriable is True
    assert coordinator.ledger.occupied(key) == 0


# ── Cancellation ─────────────────────────────────────────────────────────


def test_cancel_releases_seat_and_allows_rebooking(coordinator, make_window, make_request):
    window = make_window(max_limit=1)
    booking = coordinator.book(make_request(window.id, subject_id=1))

    cancelled = coordinator.cancel(booking.id, reason="moved date")

    assert cancelled.status == "cancelled"
    assert cancelled.cancel_reason == "moved date"
    assert cancelled.cancelled_at
    assert coordinator.ledger.occupied(slot(window)) == 0

    again = coordinator.book(make_request(window.id, subject_id=1))
    assert again.id != booking.id
    assert coordinator.ledger.occupied(slot(window)) == 1


def test_cancel_twice_is_reported(coordinator, make_window, make_request):
    window = make_window()
    booking = coordinator.book(make_request(window.id))
    coordinator.book(make_request(window.id, subject_id=2))
    coordinator.cancel(booking.id)

    with pytest.raises(AlreadyCancelled):
        coordinator.cancel(booking.id)

    assert coordinator.ledger.occupied(slot(window)) == 1


def test_cancel_unknown_booking(coordinator):
    with pytest.raises(BookingNotFound):
        coordinator.cancel(12345)

    with pytest.raises(BookingNotFound):
        coordinator.get_booking(12345)


def test_list_bookings_filters(coordinator, make_window, make_request):
    window = make_window(max_limit=None)
    first = coordinator.book(make_request(window.id, subject_id=1, slot_time="11:00"))
    coordinator.book(make_request(window.id, subject_id=2, slot_time="10:00"))
    coordinator.cancel(first.id)

    assert [b.slot_time for b in coordinator.list_bookings(window_id=window.id)] == ["10:00", "11:00"]
    assert [b.subject_id for b in coordinator.list_bookings(status="active")] == [2]
    assert [b.id for b in coordinator.list_bookings(subject_id=1)] == [first.id]


# ── Windows ──────────────────────────────────────────────────────────────


def test_create_window_normalizes_times(coordinator):
    window = coordinator.create_window(WindowCreate(
        kind="move",
        name="Move-in",
        date_begin=date(2025, 2, 1),
        date_end=date(2025, 2, 28),
        time_first="09:00:00",
        time_last="18:00",
        time_unit=120,
    ))

    assert window.kind == "move"
    assert window.time_first == "09:00"
    assert window.date_begin == "2025-02-01"
    assert window.max_limit is None
    assert [w.id for w in coordinator.list_windows(kind="move")] == [window.id]
    assert coordinator.list_windows(kind="visit") == []


def test_create_invalid_window(coordinator):
    with pytest.raises(InvalidWindow):
        coordinator.create_window(WindowCreate(
            name="Broken",
            date_begin=date(2025, 2, 1),
            date_end=date(2025, 2, 1),
            time_first="10:00",
            time_last="11:00",
            time_unit=0,
        ))

    assert coordinator.list_windows() == []


def test_edit_that_orphans_bookings_is_rejected(coordinator, make_window, make_request):
    window = make_window()
    booking = coordinator.book(make_request(window.id, slot_time="10:00"))

    with pytest.raises(WindowEditConflict) as exc_info:
        coordinator.update_window(window.id, {"time_first": "11:00"})

    assert exc_info.value.context["booking_ids"] == [booking.id]
    assert coordinator.get_window(window.id).time_first == "10:00"


def test_edit_that_changes_time_unit_is_rejected(coordinator, make_window, make_request):
    window = make_window()
    coordinator.book(make_request(window.id, slot_time="10:30"))

    with pytest.raises(WindowEditConflict):
        coordinator.update_window(window.id, {"time_unit": 60})


def test_lowering_limit_below_occupancy_is_rejected(coordinator, make_window, make_request):
    window = make_window(max_limit=3)
    coordinator.book(make_request(window.id, subject_id=1))
    coordinator.book(make_request(window.id, subject_id=2))

    with pytest.raises(WindowEditConflict):
        coordinator.update_window(window.id, {"max_limit": 1})

    updated = coordinator.update_window(window.id, {"max_limit": 2})
    assert updated.max_limit == 2


def test_compatible_edit_is_applied(coordinator, make_window, make_request):
    window = make_window()
    coordinator.book(make_request(window.id, slot_time="11:30"))

    updated = coordinator.update_window(window.id, {
        "name": "Pre-visit (extended)",
        "date_end": date(2025, 1, 12),
        "time_last": "18:00",
    })

    assert updated.name == "Pre-visit (extended)"
    assert updated.date_end == "2025-01-12"
    assert len(coordinator.slots(window.id)) == 3 * 16


def test_invalid_edit_is_rejected(coordinator, make_window):
    window = make_window()

    with pytest.raises(InvalidWindow):
        coordinator.update_window(window.id, {"date_end": date(2025, 1, 1)})


def test_edit_cannot_clear_required_fields(coordinator, make_window):
    window = make_window(kind="move")

    with pytest.raises(InvalidWindow) as exc_info:
        coordinator.update_window(window.id, {"name": None, "kind": None})

    assert exc_info.value.context["fields"] == ["kind", "name"]
    stored = coordinator.get_window(window.id)
    assert stored.kind == "move"
    assert stored.name == "Pre-visit"


def test_edit_can_lift_the_limit(coordinator, make_window):
    window = make_window(kind="visit")

    updated = coordinator.update_window(window.id, {"max_limit": None})

    assert updated.max_limit is None
    assert updated.kind == "visit"


def test_delete_window_removes_bookings_and_counters(coordinator, make_window, make_request):
    window = make_window()
    booking = coordinator.book(make_request(window.id, subject_id=1))
    coordinator.book(make_request(window.id, subject_id=2, slot_time="11:00"))

    assert coordinator.delete_window(window.id) == 2

    with pytest.raises(WindowNotFound):
        coordinator.get_window(window.id)
    with pytest.raises(BookingNotFound):
        coordinator.get_booking(booking.id)
    assert coordinator.ledger.window_counts(window.id) == {}


# ── Read views ───────────────────────────────────────────────────────────


def test_availability_reflects_ledger(coordinator, make_window, make_request):
    window = make_window(date_end=date(2025, 1, 11))
    coordinator.book(make_request(window.id, subject_id=1))

    result = coordinator.availability(window.id, end_date=date(2025, 1, 10))

    assert [d["date"] for d in result["dates"]] == [date(2025, 1, 10)]
    times = result["dates"][0]["times"]
    assert times[0] == {"time": "10:00", "occupied": 1, "available": 1}
    assert times[1] == {"time": "10:30", "occupied": 0, "available": 2}


def test_calendar_projects_active_bookings(coordinator, make_window, make_request):
    window = make_window(max_limit=None)
    for subject_id in range(1, 6):
        coordinator.book(make_request(window.id, subject_id=subject_id))
    cancelled = coordinator.book(make_request(window.id, subject_id=6, slot_time="11:00"))
    coordinator.cancel(cancelled.id)

    grid = coordinator.calendar(window.id, "2025-01")
    cell = grid.cell(date(2025, 1, 10))

    assert cell.count == 5
    assert len(cell.preview) == 3
    assert cell.overflow == 2
    assert grid.cell(date(2025, 1, 1)).is_today


def test_rebuild_ledger_from_database(coordinator, make_window, make_request):
    window = make_window()
    coordinator.book(make_request(window.id, subject_id=1))
    coordinator.book(make_request(window.id, subject_id=2))
    gone = coordinator.book(make_request(window.id, subject_id=3, slot_time="10:30"))
    coordinator.cancel(gone.id)

    coordinator.ledger.load({})
    assert coordinator.ledger.occupied(slot(window)) == 0

    assert coordinator.rebuild_ledger() == 2
    assert coordinator.ledger.occupied(slot(window)) == 2
    assert coordinator.ledger.occupied(slot(window, "10:30")) == 0
