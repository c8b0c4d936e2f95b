# backend/reservations/routers/windows.py
"""
Reservation window endpoints.

Slots are computed from the window on each request, never stored.
"""

from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_coordinator
from ..schemas.slots import (
    CalendarDay,
    CalendarEntry,
    CalendarMonthResponse,
    SlotRead,
    WindowAvailabilityResponse,
    WindowSlotsResponse,
)
from ..schemas.windows import WindowCreate, WindowRead, WindowUpdate
from ..services.booking_coordinator import BookingCoordinator
from ..services.calendar_view import color_for
from ..services.slots import WindowSpec

router = APIRouter(prefix="/windows", tags=["windows"])


@router.get("/", response_model=list[WindowRead])
def list_windows(
    kind: str | None = None,
    coordinator: BookingCoordinator = Depends(get_coordinator),
):
    return coordinator.list_windows(kind)


@router.get("/{id}", response_model=WindowRead)
def get_window(id: int, coordinator: BookingCoordinator = Depends(get_coordinator)):
    return coordinator.get_window(id)


@router.post("/", response_model=WindowRead, status_code=status.HTTP_201_CREATED)
def create_window(
    data: WindowCreate,
    coordinator: BookingCoordinator = Depends(get_coordinator),
):
    return coordinator.create_window(data)


@router.patch("/{id}", response_model=WindowRead)
def update_window(
    id: int,
    data: WindowUpdate,
    coordinator: BookingCoordinator = Depends(get_coordinator),
):
    return coordinator.update_window(id, data.model_dump(exclude_unset=True))


@router.delete("/{id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_window(id: int, coordinator: BookingCoordinator = Depends(get_coordinator)):
    coordinator.delete_window(id)


@router.get("/{id}/slots", response_model=WindowSlotsResponse)
def get_window_slots(id: int, coordinator: BookingCoordinator = Depends(get_coordinator)):
    """Generated slot set (admin/debug view)."""
    window = coordinator.get_window(id)
    slots = coordinator.slots(id)
    return WindowSlotsResponse(
        window_id=id,
        slots_per_day=WindowSpec.from_window(window).slots_per_day,
        total_slots=len(slots),
        slots=[SlotRead(date=s.date, time=s.time) for s in slots],
    )


@router.get("/{id}/availability", response_model=WindowAvailabilityResponse)
def get_window_availability(
    id: int,
    start_date: date | None = None,
    end_date: date | None = None,
    coordinator: BookingCoordinator = Depends(get_coordinator),
):
    """Remaining seats per slot. Advisory: booking re-checks atomically."""
    if start_date and end_date and end_date < start_date:
        raise HTTPException(status_code=400, detail="end_date cannot be before start_date")
    return WindowAvailabilityResponse(**coordinator.availability(id, start_date, end_date))


@router.get("/{id}/calendar", response_model=CalendarMonthResponse)
def get_window_calendar(
    id: int,
    month: str = Query(..., pattern=r"^\d{4}-(0[1-9]|1[0-2])$", description="YYYY-MM"),
    preview_limit: int | None = Query(None, ge=1),
    coordinator: BookingCoordinator = Depends(get_coordinator),
):
    grid = coordinator.calendar(id, month, preview_limit)

    weeks = []
    for week in grid.weeks:
        weeks.append([
            CalendarDay(
                date=cell.date,
                in_month=cell.in_month,
                in_window=cell.in_window,
                is_today=cell.is_today,
                count=cell.count,
                preview=[
                    CalendarEntry(
                        booking_id=b.id,
                        time=b.slot_time,
                        subject_id=b.subject_id,
                        contact_name=b.contact_name,
                        category=b.category,
                        color=color_for(b.category),
                    )
                    for b in cell.preview
                ],
                overflow=cell.overflow,
            )
            for cell in week
        ])

    return CalendarMonthResponse(window_id=id, year=grid.year, month=grid.month, weeks=weeks)
