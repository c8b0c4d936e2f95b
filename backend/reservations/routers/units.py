# backend/reservations/routers/units.py
"""
Units (dong/ho) and the location cascade used by the booking form.

GET /units/options?level=ho&dong=101  → ho values of dong 101
GET /units/contact?dong=101&ho=1203   → contractor autofill
"""

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..database import get_db
from ..models import Units as DBUnit
from ..schemas.units import CascadeOptionsResponse, UnitContactResponse, UnitCreate, UnitRead
from ..services.cascade import location_resolver

router = APIRouter(prefix="/units", tags=["units"])


@router.get("/", response_model=list[UnitRead])
def list_units(dong: str | None = None, db: Session = Depends(get_db)):
    query = db.query(DBUnit)
    if dong:
        query = query.filter(DBUnit.dong == dong)
    return query.order_by(DBUnit.dong, DBUnit.ho).all()


@router.post("/", response_model=UnitRead, status_code=status.HTTP_201_CREATED)
def create_unit(data: UnitCreate, db: Session = Depends(get_db)):
    obj = DBUnit(**data.model_dump())
    db.add(obj)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Unit already exists")
    db.refresh(obj)
    return obj


@router.get("/options", response_model=CascadeOptionsResponse)
def unit_options(
    level: str = "dong",
    dong: str | None = None,
    ho: str | None = None,
    db: Session = Depends(get_db),
):
    resolver = location_resolver(db.query(DBUnit).all())
    selection = resolver.selection(dong=dong, ho=ho)
    return CascadeOptionsResponse(
        level=level,
        selection=selection.as_dict(),
        options=resolver.options_for(level, selection),
    )


@router.get("/contact", response_model=UnitContactResponse)
def unit_contact(dong: str | None = None, ho: str | None = None, db: Session = Depends(get_db)):
    resolver = location_resolver(db.query(DBUnit).all())
    selection = resolver.selection(dong=dong, ho=ho)
    return UnitContactResponse(
        unit_id=resolver.autofill_from(selection, "id"),
        contractor_name=resolver.autofill_from(selection, "contractor_name"),
        contractor_phone=resolver.autofill_from(selection, "contractor_phone"),
    )
