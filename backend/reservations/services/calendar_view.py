# backend/reservations/services/calendar_view.py
"""
Month calendar projection of bookings.

Builds a Sunday-first month grid where every row has 7 cells, borrowing
leading/trailing days from the adjacent months. Each cell carries the
active bookings of that day; the rendered preview is capped and the rest
is reported as an overflow count ("+N"). The cap only affects the preview,
`DayCell.bookings` always holds every booking of the day.
"""

import zlib
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Iterable

from .slots.calculator import WindowSpec
from .slots.config import as_date, get_booking_config

# Assigned elevator line → display token
LINE_COLORS = {
    "A": "#E63C2E",
    "B": "#2196F3",
    "C": "#4CAF50",
    "D": "#FF9800",
}

FALLBACK_COLORS = (
    "#9C27B0",
    "#009688",
    "#795548",
    "#607D8B",
    "#3F51B5",
    "#CDDC39",
)

DEFAULT_COLOR = "#9E9E9E"


def color_for(category: str | None) -> str:
    """Stable display token for a category; unknown categories hash onto a fallback palette."""
    if category is None or category == "":
        return DEFAULT_COLOR
    if category in LINE_COLORS:
        return LINE_COLORS[category]
    index = zlib.crc32(str(category).encode("utf-8")) % len(FALLBACK_COLORS)
    return FALLBACK_COLORS[index]


@dataclass(frozen=True)
class DayCell:
    date: date
    in_month: bool
    in_window: bool
    is_today: bool
    bookings: tuple[Any, ...]
    preview: tuple[Any, ...]
    overflow: int

    @property
    def count(self) -> int:
        return len(self.bookings)


@dataclass(frozen=True)
class MonthGrid:
    year: int
    month: int
    weeks: tuple[tuple[DayCell, ...], ...]

    def cells(self) -> list[DayCell]:
        return [cell for week in self.weeks for cell in week]

    def cell(self, dt: date) -> DayCell | None:
        for cell in self.cells():
            if cell.date == dt:
                return cell
        return None


def parse_month(value: str | date) -> date:
    """First day of the month from "YYYY-MM", "YYYY-MM-DD" or a date."""
    if isinstance(value, date):
        return value.replace(day=1)
    parts = value.strip().split("-")
    if len(parts) < 2:
        raise ValueError(f"Month must be in YYYY-MM format, got {value!r}")
    year, month = int(parts[0]), int(parts[1])
    if not 1 <= month <= 12:
        raise ValueError(f"Month must be in 1..12, got {value!r}")
    return date(year, month, 1)


def _month_bounds(first: date) -> tuple[date, date]:
    next_month = (first.replace(day=28) + timedelta(days=4)).replace(day=1)
    return first, next_month - timedelta(days=1)


def month_grid(
    window,
    bookings: Iterable[Any],
    reference_month: str | date,
    preview_limit: int | None = None,
    today: date | None = None,
) -> MonthGrid:
    """
    Project bookings onto the calendar grid of `reference_month`.

    Args:
        window: Window row used for the in_window flag and to keep only its
                bookings; None projects every booking given
        bookings: Booking rows (slot_date, slot_time, status, ...)
        reference_month: Month to display
        preview_limit: Bookings shown per cell, defaults to the configured cap
        today: Date highlighted as today
    """
    limit = get_booking_config().calendar_preview_limit if preview_limit is None else preview_limit
    if limit < 0:
        raise ValueError(f"preview_limit must not be negative, got {limit}")
    today = today or date.today()
    first, last = _month_bounds(parse_month(reference_month))

    # Sunday-first rows: weekday() is 0 for Monday, 6 for Sunday
    grid_start = first - timedelta(days=(first.weekday() + 1) % 7)
    grid_end = last + timedelta(days=(5 - last.weekday()) % 7)

    spec = WindowSpec.from_window(window) if window is not None else None
    window_id = getattr(window, "id", None)

    by_date: dict[date, list[Any]] = {}
    for booking in bookings:
        if booking.status != "active":
            continue
        if window_id is not None and booking.window_id != window_id:
            continue
        by_date.setdefault(as_date(booking.slot_date), []).append(booking)

    weeks = []
    week: list[DayCell] = []
    day = grid_start
    while day <= grid_end:
        day_bookings = sorted(
            by_date.get(day, []),
            key=lambda b: (b.slot_time, b.id or 0),
        )
        week.append(DayCell(
            date=day,
            in_month=first <= day <= last,
            in_window=spec is not None and spec.date_begin <= day <= spec.date_end,
            is_today=day == today,
            bookings=tuple(day_bookings),
            preview=tuple(day_bookings[:limit]),
            overflow=max(len(day_bookings) - limit, 0),
        ))
        if len(week) == 7:
            weeks.append(tuple(week))
            week = []
        day += timedelta(days=1)

    return MonthGrid(year=first.year, month=first.month, weeks=tuple(weeks))
