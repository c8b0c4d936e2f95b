# backend/reservations/schemas/bookings.py

from datetime import date
from typing import Optional
from pydantic import BaseModel, Field

from .windows import TimeStr


class BookingCreate(BaseModel):
    window_id: int
    slot_date: date = Field(alias="date")
    slot_time: TimeStr = Field(alias="time", description='"HH:MM"')
    subject_id: int

    contact_name: str = Field(min_length=1)
    contact_phone: str = Field(min_length=1)
    memo: Optional[str] = None
    category: Optional[str] = Field(default=None, description="Assigned line, e.g. elevator A/B/C/D")

    model_config = {"populate_by_name": True}


class BookingCancel(BaseModel):
    reason: Optional[str] = None


class BookingRead(BaseModel):
    id: int
    window_id: int

    slot_date: date
    slot_time: str
    subject_id: int

    contact_name: str
    contact_phone: str
    memo: Optional[str] = None
    category: Optional[str] = None

    status: str
    cancel_reason: Optional[str] = None
    cancelled_at: Optional[str] = None
    created_at: str

    model_config = {"from_attributes": True}
