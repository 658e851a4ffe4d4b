# backend/garden_booking/routers/admin_rules.py
"""
Recurrence rules (admin).

PUT replaces the whole rule set, re-materializes the existing horizon and
tops it up; the response reports what changed.
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import redis_client
from ..schemas.rules import RulesRead, RulesUpdate
from ..schemas.schedule import HorizonSummary, MaterializeSummary, RulesApplyResponse
from ..services import schedule_admin
from ..services.schedule import business_today, invalidate_availability_cache
from ..services.schedule.rules import get_rules_row

router = APIRouter(prefix="/admin/rules", tags=["admin"])


@router.get("/", response_model=RulesRead)
def get_rules(db: Session = Depends(get_db)):
    row = get_rules_row(db)
    if not row:
        raise HTTPException(status_code=404, detail="Schedule rules are not configured")
    return RulesRead.from_row(row)


@router.put("/", response_model=RulesApplyResponse)
def update_rules(
    data: RulesUpdate,
    actor: str = "admin",
    db: Session = Depends(get_db),
):
    update = schedule_admin.RulesUpdate(
        operating_weekdays=data.operating_weekdays,
        season_start=(data.season_start.month, data.season_start.day),
        season_end=(data.season_end.month, data.season_end.day),
        slot_labels=data.slot_labels,
        max_bookings_per_slot=data.max_bookings_per_slot,
        max_units_per_slot=data.max_units_per_slot,
    )
    _, result = schedule_admin.apply_rules(db, update, business_today(), actor=actor)
    invalidate_availability_cache(redis_client)

    return RulesApplyResponse(
        applied=True,
        materialized=MaterializeSummary.model_validate(result.materialized),
        horizon=HorizonSummary.model_validate(result.horizon),
    )
