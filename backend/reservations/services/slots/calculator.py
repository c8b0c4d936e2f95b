# backend/reservations/services/slots/calculator.py
"""
Slot generation for a reservation window.

A window yields, for every date in [date_begin, date_end], the times
time_first, time_first + time_unit, ... strictly before time_last.
A trailing partial slot is never emitted, so the per-day count is
floor((time_last - time_first) / time_unit).

Contains:
✓ window validation (InvalidWindow)
✓ lazy, restartable slot sequence
✓ single-slot membership check without materialising the sequence

Does NOT contain:
✗ Occupancy (CapacityLedger)
✗ Bookings (BookingCoordinator)

Slots are never stored. Every query regenerates them from the window,
so an edited window can never serve a stale slot list.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterator, NamedTuple

from ...errors import InvalidWindow
from .config import as_date, minutes_to_time_str, time_str_to_minutes


class Slot(NamedTuple):
    date: date
    time: str  # "HH:MM"


@dataclass(frozen=True)
class WindowSpec:
    """Validated, parsed form of a window definition."""
    date_begin: date
    date_end: date
    first_min: int
    last_min: int
    time_unit: int
    max_limit: int | None = None

    @classmethod
    def from_window(cls, window) -> "WindowSpec":
        """
        Build from any object carrying the window fields (ORM row, schema, spec).

        Raises:
            InvalidWindow: on malformed values or ordering.
        """
        if isinstance(window, WindowSpec):
            return window

        try:
            date_begin = as_date(window.date_begin)
            date_end = as_date(window.date_end)
            first_min = time_str_to_minutes(window.time_first)
            last_min = time_str_to_minutes(window.time_last)
            time_unit = int(window.time_unit)
        except (TypeError, ValueError, AttributeError) as e:
            raise InvalidWindow(f"Malformed window definition: {e}") from e

        max_limit = getattr(window, "max_limit", None)
        spec = cls(
            date_begin=date_begin,
            date_end=date_end,
            first_min=first_min,
            last_min=last_min,
            time_unit=time_unit,
            max_limit=max_limit,
        )
        spec.validate()
        return spec

    def validate(self) -> None:
        if self.date_begin > self.date_end:
            raise InvalidWindow(
                f"date_begin {self.date_begin} is after date_end {self.date_end}",
                date_begin=self.date_begin.isoformat(),
                date_end=self.date_end.isoformat(),
            )
        if self.first_min >= self.last_min:
            raise InvalidWindow(
                f"time_first {minutes_to_time_str(self.first_min)} must be before "
                f"time_last {minutes_to_time_str(self.last_min)}",
            )
        if self.time_unit <= 0:
            raise InvalidWindow(f"time_unit must be positive, got {self.time_unit}")
        if self.max_limit is not None and self.max_limit <= 0:
            raise InvalidWindow(f"max_limit must be positive when set, got {self.max_limit}")

    @property
    def slots_per_day(self) -> int:
        return (self.last_min - self.first_min) // self.time_unit

    @property
    def day_count(self) -> int:
        return (self.date_end - self.date_begin).days + 1


class SlotSequence:
    """
    Lazy slot sequence. Each iteration starts over, so the same object
    can be walked any number of times.
    """

    def __init__(self, spec: WindowSpec):
        self.spec = spec

    def __iter__(self) -> Iterator[Slot]:
        times = day_times(self.spec)
        for dt in window_dates(self.spec):
            for time_str in times:
                yield Slot(dt, time_str)

    def __len__(self) -> int:
        return self.spec.day_count * self.spec.slots_per_day


# ── Public API ───────────────────────────────────────────────────────────


def generate_slots(window) -> SlotSequence:
    """
    Ordered (date, time) slots of a window.

    Raises:
        InvalidWindow: on malformed configuration.
    """
    return SlotSequence(WindowSpec.from_window(window))


def validate_window(window) -> WindowSpec:
    """Validate a window definition, returning its parsed form."""
    return WindowSpec.from_window(window)


def slots_per_day(window) -> int:
    return WindowSpec.from_window(window).slots_per_day


def window_dates(window) -> Iterator[date]:
    """Dates of the window, inclusive on both ends."""
    spec = WindowSpec.from_window(window)
    current = spec.date_begin
    while current <= spec.date_end:
        yield current
        current += timedelta(days=1)


def day_times(window) -> list[str]:
    """"HH:MM" slot start times of a single day."""
    spec = WindowSpec.from_window(window)
    return [
        minutes_to_time_str(spec.first_min + i * spec.time_unit)
        for i in range(spec.slots_per_day)
    ]


def is_valid_slot(window, slot_date, slot_time) -> bool:
    """
    Membership test using the generation rule, without building the sequence.

    Malformed date/time input is simply not a slot.
    """
    spec = WindowSpec.from_window(window)
    try:
        dt = as_date(slot_date)
        minutes = time_str_to_minutes(slot_time)
    except (TypeError, ValueError, AttributeError):
        return False

    if not (spec.date_begin <= dt <= spec.date_end):
        return False

    offset = minutes - spec.first_min
    if offset < 0 or offset % spec.time_unit != 0:
        return False
    return offset // spec.time_unit < spec.slots_per_day
