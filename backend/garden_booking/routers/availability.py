# backend/garden_booking/routers/availability.py
"""
Availability API endpoints (customer calendar).

GET /availability      - {date: [labels]} of bookable slots from a date on
GET /availability/day  - per-slot remaining capacity for one date
"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.generated import OpenDays
from ..redis_client import redis_client
from ..schemas.availability import DaySlotsResponse, SlotCapacity
from ..services.schedule import business_today, cached_availability, get_day_slots


router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("/", response_model=dict[date, list[str]])
def get_availability(
    from_date: date | None = None,
    db: Session = Depends(get_db),
):
    """Open dates with at least one bookable slot, labels in clock order."""
    today = business_today()
    if from_date is None or from_date < today:
        from_date = today

    return cached_availability(db, from_date, redis=redis_client)


@router.get("/day", response_model=DaySlotsResponse)
def get_availability_day(
    target_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
):
    open_day = db.get(OpenDays, target_date)
    is_open = bool(open_day and open_day.is_open)

    slots = get_day_slots(db, target_date) if is_open else []

    return DaySlotsResponse(
        date=target_date,
        is_open=is_open,
        slots=[SlotCapacity(**slot) for slot in slots],
    )
