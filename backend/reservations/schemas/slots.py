# backend/reservations/schemas/slots.py
"""
Pydantic schemas for slots, availability and calendar views.
"""

from datetime import date
from pydantic import BaseModel, Field


class SlotRead(BaseModel):
    date: date
    time: str  # "HH:MM"


class WindowSlotsResponse(BaseModel):
    """Generated slot set of a window (admin/debug view)."""
    window_id: int
    slots_per_day: int
    total_slots: int
    slots: list[SlotRead]


class AvailableTime(BaseModel):
    time: str
    occupied: int
    available: int | None = Field(description="Remaining seats, null when the window is unlimited")


class AvailableDate(BaseModel):
    date: date
    times: list[AvailableTime]


class WindowAvailabilityResponse(BaseModel):
    """Advisory availability; the authoritative check happens on booking."""
    window_id: int
    date_begin: date
    date_end: date
    time_first: str
    time_last: str
    time_unit: int
    max_limit: int | None = None
    dates: list[AvailableDate]


class CalendarEntry(BaseModel):
    booking_id: int
    time: str
    subject_id: int
    contact_name: str
    category: str | None = None
    color: str


class CalendarDay(BaseModel):
    date: date
    in_month: bool
    in_window: bool
    is_today: bool
    count: int
    preview: list[CalendarEntry]
    overflow: int = Field(description='Bookings not in the preview, rendered as "+N"')


class CalendarMonthResponse(BaseModel):
    window_id: int
    year: int
    month: int
    weeks: list[list[CalendarDay]]
