# backend/reservations/errors.py
"""
Error taxonomy for the reservation engine.

Every rejected operation raises a distinct subclass so callers can react
by kind (offer another slot, show "already booked", hard failure).
Each error carries a stable `code` and the HTTP status the API maps it to.
"""

from typing import Any


class ReservationError(Exception):
    """Base class for caller-visible reservation outcomes."""

    code = "reservation_error"
    status_code = 400

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict:
        payload = {"detail": self.message, "code": self.code}
        if self.context:
            payload["context"] = self.context
        return payload


# ── Configuration ────────────────────────────────────────────────────────


class InvalidWindow(ReservationError):
    """Malformed window: bad date/time ordering or non-positive time unit."""

    code = "invalid_window"
    status_code = 422


class WindowEditConflict(ReservationError):
    """Window edit would orphan active bookings or undercut current occupancy."""

    code = "window_edit_conflict"
    status_code = 409


# ── Booking ──────────────────────────────────────────────────────────────


class SlotOutOfWindow(ReservationError):
    code = "slot_out_of_window"
    status_code = 422


class SlotFull(ReservationError):
    code = "slot_full"
    status_code = 409


class DuplicateBooking(ReservationError):
    code = "duplicate_booking"
    status_code = 409


class AlreadyCancelled(ReservationError):
    code = "already_cancelled"
    status_code = 409


class BookingConflict(ReservationError):
    """The atomic capacity step could not complete in bounded time. Retriable."""

    code = "booking_conflict"
    status_code = 503
    retriable = True


# ── References ───────────────────────────────────────────────────────────


class WindowNotFound(ReservationError):
    code = "window_not_found"
    status_code = 404


class BookingNotFound(ReservationError):
    code = "booking_not_found"
    status_code = 404


# ── Cascade ──────────────────────────────────────────────────────────────


class CascadeInvalidSelection(ReservationError):
    code = "cascade_invalid_selection"
    status_code = 422


# ── Programming errors ───────────────────────────────────────────────────


class LedgerUnderflow(RuntimeError):
    """Decrement of a slot counter that is already zero."""
