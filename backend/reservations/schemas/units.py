# backend/reservations/schemas/units.py

from typing import Any, Optional
from pydantic import BaseModel, Field


class UnitCreate(BaseModel):
    dong: str = Field(min_length=1)
    ho: str = Field(min_length=1)
    unit_type: Optional[str] = None
    contractor_name: Optional[str] = None
    contractor_phone: Optional[str] = None


class UnitRead(BaseModel):
    id: int
    dong: str
    ho: str
    unit_type: Optional[str] = None
    contractor_name: Optional[str] = None
    contractor_phone: Optional[str] = None

    model_config = {"from_attributes": True}


class CascadeOptionsResponse(BaseModel):
    level: str
    selection: dict[str, Any]
    options: list[Any]


class UnitContactResponse(BaseModel):
    """Contact autofilled from the single unit the selection identifies."""
    unit_id: Optional[int] = None
    contractor_name: Optional[str] = None
    contractor_phone: Optional[str] = None
