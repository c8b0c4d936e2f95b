# backend/reservations/services/booking_coordinator.py
"""
BookingCoordinator: admission, cancellation and window lifecycle.

Booking lifecycle: requested → active → cancelled (terminal).

book():
  1. window exists and is not expired          → WindowNotFound
  2. (date, time) is a generated slot          → SlotOutOfWindow
  3. no active booking for subject + slot      → DuplicateBooking
  4. atomic check-and-increment on the ledger  → SlotFull (ledger unchanged)
  5. persist the active booking

Steps 3-5 run under the slot's exclusive lock, and the ledger step is
itself a compare-and-increment, so two concurrent requests can never
both take the last seat. If persisting fails after step 4 the increment
is released again: no booking row without a counted seat, and no counted
seat without a booking row.

Window edits follow the "reject" policy: an edit that would leave an
active booking outside the new slot set, or a slot above a lowered
max_limit, fails with WindowEditConflict and changes nothing.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import date, datetime, timezone
from types import SimpleNamespace
from typing import Any, Callable

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from ..errors import (
    AlreadyCancelled,
    BookingNotFound,
    DuplicateBooking,
    InvalidWindow,
    SlotFull,
    SlotOutOfWindow,
    WindowEditConflict,
    WindowNotFound,
)
from ..models.generated import Bookings as DBBooking, ReservationWindows as DBWindow
from .calendar_view import MonthGrid, month_grid
from .slots.availability import calculate_window_availability
from .slots.calculator import Slot, generate_slots, is_valid_slot, validate_window
from .slots.config import BookingConfig, get_booking_config, minutes_to_time_str
from .slots.ledger import CapacityLedger, SlotKey
from .slots.locks import KeyedLocks, WindowGate

logger = logging.getLogger(__name__)

WINDOW_FIELDS = ("kind", "name", "date_begin", "date_end", "time_first", "time_last", "time_unit", "max_limit")

# the only window field a PATCH may set to null (unlimited)
NULLABLE_WINDOW_FIELDS = ("max_limit",)


@dataclass(frozen=True)
class BookingRequest:
    window_id: int
    slot_date: date | str
    slot_time: str
    subject_id: int
    contact_name: str
    contact_phone: str
    memo: str | None = None
    category: str | None = None


def _timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def _window_values(spec, data: Any) -> dict:
    """Column values of a validated window, dates and times in canonical text form."""
    return {
        "kind": getattr(data, "kind", None) or "previsit",
        "name": data.name,
        "date_begin": spec.date_begin.isoformat(),
        "date_end": spec.date_end.isoformat(),
        "time_first": minutes_to_time_str(spec.first_min),
        "time_last": minutes_to_time_str(spec.last_min),
        "time_unit": spec.time_unit,
        "max_limit": spec.max_limit,
    }


class BookingCoordinator:
    def __init__(
        self,
        session_factory: sessionmaker,
        ledger: CapacityLedger,
        config: BookingConfig | None = None,
        clock: Callable[[], date] | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.ledger = ledger
        self.config = config or get_booking_config()
        self._clock = clock or date.today
        self._slot_locks = KeyedLocks(self.config.lock_timeout_seconds)
        self._window_gate = WindowGate(self.config.lock_timeout_seconds)

    def today(self) -> date:
        return self._clock()

    # ── Windows ──────────────────────────────────────────────────────────

    def create_window(self, data: Any) -> DBWindow:
        """Validate and store a window. Raises InvalidWindow."""
        spec = validate_window(data)
        with self._session_factory() as db:
            window = DBWindow(**_window_values(spec, data))
            window.created_at = window.updated_at = _timestamp()
            db.add(window)
            db.commit()
            db.refresh(window)
            logger.info(
                f"Window {window.id} created: {window.date_begin}..{window.date_end} "
                f"{window.time_first}-{window.time_last}/{window.time_unit}m limit={window.max_limit}"
            )
            return window

    def get_window(self, window_id: int) -> DBWindow:
        with self._session_factory() as db:
            return self._load_window(db, window_id)

    def list_windows(self, kind: str | None = None) -> list[DBWindow]:
        with self._session_factory() as db:
            query = db.query(DBWindow)
            if kind:
                query = query.filter(DBWindow.kind == kind)
            return query.order_by(DBWindow.date_begin, DBWindow.id).all()

    def update_window(self, window_id: int, changes: dict) -> DBWindow:
        """
        Apply a partial edit to a window.

        Raises:
            WindowNotFound, InvalidWindow
            WindowEditConflict: the edit would orphan active bookings or
                                put a slot above the new max_limit
        """
        cleared = sorted(
            field for field, value in changes.items()
            if field in WINDOW_FIELDS and value is None and field not in NULLABLE_WINDOW_FIELDS
        )
        if cleared:
            raise InvalidWindow(f"Window fields cannot be cleared: {', '.join(cleared)}", fields=cleared)

        with self._window_gate.exclusive(window_id):
            with self._session_factory() as db:
                window = self._load_window(db, window_id)

                merged = {field: getattr(window, field) for field in WINDOW_FIELDS}
                merged.update({k: v for k, v in changes.items() if k in WINDOW_FIELDS})
                candidate = SimpleNamespace(**merged)
                spec = validate_window(candidate)

                active = self._active_bookings(db, window_id)

                orphaned = [
                    b.id for b in active
                    if not is_valid_slot(spec, b.slot_date, b.slot_time)
                ]
                if orphaned:
                    logger.warning(f"Window {window_id} edit rejected: orphans bookings {orphaned}")
                    raise WindowEditConflict(
                        "Edit would leave active bookings outside the window's slots",
                        booking_ids=orphaned,
                    )

                if spec.max_limit is not None:
                    per_slot = Counter((b.slot_date, b.slot_time) for b in active)
                    over = sorted(
                        f"{slot_date} {slot_time}"
                        for (slot_date, slot_time), count in per_slot.items()
                        if count > spec.max_limit
                    )
                    if over:
                        logger.warning(f"Window {window_id} edit rejected: max_limit below occupancy at {over}")
                        raise WindowEditConflict(
                            "max_limit is below the current occupancy of some slots",
                            slots=over,
                            max_limit=spec.max_limit,
                        )

                for field, value in _window_values(spec, candidate).items():
                    setattr(window, field, value)
                window.updated_at = _timestamp()
                db.commit()
                db.refresh(window)
                logger.info(f"Window {window_id} updated")
                return window

    def delete_window(self, window_id: int) -> int:
        """
        Delete a window together with its bookings.

        Returns the number of bookings removed.
        """
        with self._window_gate.exclusive(window_id):
            with self._session_factory() as db:
                window = self._load_window(db, window_id)
                removed = db.query(DBBooking).filter(DBBooking.window_id == window_id).count()
                db.delete(window)
                db.commit()

            cleared = self.ledger.clear_window(window_id)
            logger.info(f"Window {window_id} deleted with {removed} bookings ({cleared} ledger keys)")
            return removed

    # ── Slots ────────────────────────────────────────────────────────────

    def slots(self, window_id: int) -> list[Slot]:
        return list(generate_slots(self.get_window(window_id)))

    def availability(
        self,
        window_id: int,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> dict:
        window = self.get_window(window_id)
        return calculate_window_availability(window, self.ledger, start_date, end_date)

    def calendar(self, window_id: int, month: str | date, preview_limit: int | None = None) -> MonthGrid:
        window = self.get_window(window_id)
        bookings = self.list_bookings(window_id=window_id, status="active")
        return month_grid(window, bookings, month, preview_limit=preview_limit, today=self.today())

    # ── Bookings ─────────────────────────────────────────────────────────

    def book(self, request: BookingRequest) -> DBBooking:
        """
        Admit a booking request.

        Raises:
            WindowNotFound, SlotOutOfWindow, DuplicateBooking, SlotFull
            BookingConflict: the slot lock or ledger could not be taken in time
        """
        with self._window_gate.shared(request.window_id):
            with self._session_factory() as db:
                window = self._load_window(db, request.window_id)
                if validate_window(window).date_end < self.today():
                    raise WindowNotFound(
                        f"Window {request.window_id} has expired",
                        window_id=request.window_id,
                    )

                if not is_valid_slot(window, request.slot_date, request.slot_time):
                    logger.info(
                        f"Booking rejected: {request.slot_date} {request.slot_time} "
                        f"is not a slot of window {window.id}"
                    )
                    raise SlotOutOfWindow(
                        f"{request.slot_date} {request.slot_time} is not a slot of window {window.id}",
                        window_id=window.id,
                    )

                key = SlotKey.of(window.id, request.slot_date, request.slot_time)

                with self._slot_locks.hold(key):
                    if self._find_active(db, key, request.subject_id) is not None:
                        raise DuplicateBooking(
                            f"Subject {request.subject_id} already holds {key.date} {key.time}",
                            subject_id=request.subject_id,
                        )

                    if not self.ledger.increment_if_below(key, window.max_limit):
                        logger.info(f"Booking rejected: slot {key.date} {key.time} of window {window.id} is full")
                        raise SlotFull(
                            f"Slot {key.date} {key.time} is full",
                            window_id=window.id,
                            date=key.date.isoformat(),
                            time=key.time,
                            max_limit=window.max_limit,
                        )

                    try:
                        booking = DBBooking(
                            window_id=window.id,
                            slot_date=key.date.isoformat(),
                            slot_time=key.time,
                            subject_id=request.subject_id,
                            contact_name=request.contact_name,
                            contact_phone=request.contact_phone,
                            memo=request.memo,
                            category=request.category,
                            status="active",
                            created_at=_timestamp(),
                        )
                        db.add(booking)
                        db.commit()
                        db.refresh(booking)
                    except IntegrityError:
                        # another process committed the same subject + slot first
                        db.rollback()
                        self.ledger.decrement(key)
                        raise DuplicateBooking(
                            f"Subject {request.subject_id} already holds {key.date} {key.time}",
                            subject_id=request.subject_id,
                        ) from None
                    except Exception:
                        db.rollback()
                        self.ledger.decrement(key)
                        raise

                logger.info(
                    f"Booking {booking.id} active: window={window.id} {key.date} {key.time} "
                    f"subject={request.subject_id}"
                )
                return booking

    def cancel(self, booking_id: int, reason: str | None = None) -> DBBooking:
        """
        Cancel an active booking and release its seat.

        Raises:
            BookingNotFound
            AlreadyCancelled: reported, the seat is not released twice
        """
        with self._session_factory() as db:
            booking = db.get(DBBooking, booking_id)
            if not booking:
                raise BookingNotFound(f"Booking {booking_id} not found", booking_id=booking_id)

            key = SlotKey.of(booking.window_id, booking.slot_date, booking.slot_time)

            with self._window_gate.shared(booking.window_id):
                with self._slot_locks.hold(key):
                    db.refresh(booking)
                    if booking.status == "cancelled":
                        raise AlreadyCancelled(
                            f"Booking {booking_id} is already cancelled",
                            booking_id=booking_id,
                        )

                    self.ledger.decrement(key)
                    try:
                        booking.status = "cancelled"
                        booking.cancel_reason = reason
                        booking.cancelled_at = _timestamp()
                        db.commit()
                        db.refresh(booking)
                    except Exception:
                        db.rollback()
                        self.ledger.increment(key)
                        raise

            logger.info(f"Booking {booking_id} cancelled: {key.date} {key.time} reason={reason!r}")
            return booking

    def get_booking(self, booking_id: int) -> DBBooking:
        with self._session_factory() as db:
            booking = db.get(DBBooking, booking_id)
            if not booking:
                raise BookingNotFound(f"Booking {booking_id} not found", booking_id=booking_id)
            return booking

    def list_bookings(
        self,
        window_id: int | None = None,
        status: str | None = None,
        subject_id: int | None = None,
    ) -> list[DBBooking]:
        with self._session_factory() as db:
            query = db.query(DBBooking)
            if window_id is not None:
                query = query.filter(DBBooking.window_id == window_id)
            if status:
                query = query.filter(DBBooking.status == status)
            if subject_id is not None:
                query = query.filter(DBBooking.subject_id == subject_id)
            return query.order_by(DBBooking.slot_date, DBBooking.slot_time, DBBooking.id).all()

    # ── Ledger ───────────────────────────────────────────────────────────

    def rebuild_ledger(self) -> int:
        """
        Reload every counter from the active bookings in the database.

        Returns the number of active bookings counted.
        """
        with self._session_factory() as db:
            rows = (
                db.query(
                    DBBooking.window_id,
                    DBBooking.slot_date,
                    DBBooking.slot_time,
                    func.count(DBBooking.id),
                )
                .filter(DBBooking.status == "active")
                .group_by(DBBooking.window_id, DBBooking.slot_date, DBBooking.slot_time)
                .all()
            )

        counts = {
            SlotKey.of(window_id, slot_date, slot_time): count
            for window_id, slot_date, slot_time, count in rows
        }
        self.ledger.load(counts)
        total = sum(counts.values())
        logger.info(f"Ledger rebuilt: {len(counts)} slots, {total} active bookings")
        return total

    # ── Helpers ──────────────────────────────────────────────────────────

    def _load_window(self, db: Session, window_id: int) -> DBWindow:
        window = db.get(DBWindow, window_id)
        if not window:
            raise WindowNotFound(f"Window {window_id} not found", window_id=window_id)
        return window

    def _active_bookings(self, db: Session, window_id: int) -> list[DBBooking]:
        return (
            db.query(DBBooking)
            .filter(DBBooking.window_id == window_id, DBBooking.status == "active")
            .all()
        )

    def _find_active(self, db: Session, key: SlotKey, subject_id: int) -> DBBooking | None:
        return (
            db.query(DBBooking)
            .filter(
                DBBooking.window_id == key.window_id,
                DBBooking.subject_id == subject_id,
                DBBooking.slot_date == key.date.isoformat(),
                DBBooking.slot_time == key.time,
                DBBooking.status == "active",
            )
            .first()
        )
