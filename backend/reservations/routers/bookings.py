# backend/reservations/routers/bookings.py
# PATCH = 405, DELETE = 405: bookings are cancelled, never edited or removed

from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import get_coordinator
from ..schemas.bookings import BookingCancel, BookingCreate, BookingRead
from ..services.booking_coordinator import BookingCoordinator, BookingRequest

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.get("/", response_model=list[BookingRead])
def list_bookings(
    window_id: int | None = None,
    status: str | None = None,
    subject_id: int | None = None,
    coordinator: BookingCoordinator = Depends(get_coordinator),
):
    return coordinator.list_bookings(window_id=window_id, status=status, subject_id=subject_id)


@router.get("/{id}", response_model=BookingRead)
def get_booking(id: int, coordinator: BookingCoordinator = Depends(get_coordinator)):
    return coordinator.get_booking(id)


@router.post("/", response_model=BookingRead, status_code=status.HTTP_201_CREATED)
def create_booking(
    data: BookingCreate,
    coordinator: BookingCoordinator = Depends(get_coordinator),
):
    return coordinator.book(BookingRequest(**data.model_dump()))


@router.post("/{id}/cancel", response_model=BookingRead)
def cancel_booking(
    id: int,
    data: BookingCancel | None = None,
    coordinator: BookingCoordinator = Depends(get_coordinator),
):
    reason = data.reason if data else None
    return coordinator.cancel(id, reason)


@router.patch("/{id}")
def patch_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )


@router.delete("/{id}")
def delete_not_allowed():
    raise HTTPException(
        status_code=status.HTTP_405_METHOD_NOT_ALLOWED,
        detail="Method not allowed",
    )
