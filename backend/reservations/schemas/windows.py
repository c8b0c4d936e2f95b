# backend/reservations/schemas/windows.py

from datetime import date
from typing import Annotated, Literal, Optional
from pydantic import AfterValidator, BaseModel, Field

from ..services.slots.config import normalize_time_str

WindowKind = Literal["previsit", "move", "visit"]


def _normalize_time(value: str) -> str:
    try:
        return normalize_time_str(value)
    except (TypeError, ValueError, AttributeError) as e:
        raise ValueError(f"time must be HH:MM, got {value!r}") from e


TimeStr = Annotated[str, AfterValidator(_normalize_time)]


class WindowCreate(BaseModel):
    kind: WindowKind = "previsit"
    name: str = Field(min_length=1)

    date_begin: date
    date_end: date
    time_first: TimeStr = Field(description='"HH:MM"')
    time_last: TimeStr = Field(description='"HH:MM"')
    time_unit: int = Field(description="Slot length in minutes (30/60/90/120...)")
    max_limit: Optional[int] = Field(default=None, description="Bookings per slot, unlimited when absent")


class WindowUpdate(BaseModel):
    kind: Optional[WindowKind] = None
    name: Optional[str] = Field(default=None, min_length=1)

    date_begin: Optional[date] = None
    date_end: Optional[date] = None
    time_first: Optional[TimeStr] = None
    time_last: Optional[TimeStr] = None
    time_unit: Optional[int] = None
    max_limit: Optional[int] = None


class WindowRead(BaseModel):
    id: int
    kind: str
    name: str

    date_begin: date
    date_end: date
    time_first: str
    time_last: str
    time_unit: int
    max_limit: Optional[int] = None

    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}
