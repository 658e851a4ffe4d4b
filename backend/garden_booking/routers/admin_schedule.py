# backend/garden_booking/routers/admin_schedule.py
"""
Schedule admin endpoints.

GET  /admin/schedule/status  - horizon status (max materialized date, days left)
GET  /admin/schedule/day     - per-slot usage for a date, legacy slots included
POST /admin/schedule/refresh - re-materialize the horizon with the stored rules
POST /admin/schedule/extend  - extend the horizon now if it is short
"""

from datetime import date
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.generated import OpenDays
from ..redis_client import redis_client
from ..schemas.availability import DaySlotsResponse, SlotCapacity
from ..schemas.schedule import (
    ExtendRequest,
    HorizonSummary,
    MaterializeSummary,
    RefreshResponse,
    ScheduleStatus,
)
from ..services.schedule import (
    business_today,
    ensure_horizon,
    get_booking_config,
    get_day_slots,
    get_horizon_status,
    invalidate_availability_cache,
    load_rules,
    refresh_schedule,
)
from ..services.schedule.rules import get_rules_row, load_holiday_dates

router = APIRouter(prefix="/admin/schedule", tags=["admin"])


@router.get("/status", response_model=ScheduleStatus)
def get_schedule_status(db: Session = Depends(get_db)):
    config = get_booking_config()
    today = business_today()
    horizon = get_horizon_status(db, today)
    rules_row = get_rules_row(db)

    return ScheduleStatus(
        today=today,
        max_date=horizon.max_date,
        days_remaining=horizon.days_remaining,
        horizon_min_days=config.horizon_min_days,
        horizon_target_days=config.horizon_target_days,
        needs_extension=horizon.days_remaining < config.horizon_min_days,
        rules_configured=rules_row is not None,
        rules_applied=bool(rules_row and rules_row.applied_at),
    )


@router.get("/day", response_model=DaySlotsResponse)
def get_schedule_day(
    target_date: date = Query(..., alias="date"),
    db: Session = Depends(get_db),
):
    open_day = db.get(OpenDays, target_date)
    slots = get_day_slots(db, target_date, include_legacy=True)

    return DaySlotsResponse(
        date=target_date,
        is_open=bool(open_day and open_day.is_open),
        slots=[SlotCapacity(**slot) for slot in slots],
    )


@router.post("/refresh", response_model=RefreshResponse)
def refresh(db: Session = Depends(get_db)):
    result = refresh_schedule(db, business_today())
    invalidate_availability_cache(redis_client)

    return RefreshResponse(
        materialized=MaterializeSummary.model_validate(result.materialized),
        horizon=HorizonSummary.model_validate(result.horizon),
    )


@router.post("/extend", response_model=HorizonSummary)
def extend(
    data: ExtendRequest | None = None,
    db: Session = Depends(get_db),
):
    data = data or ExtendRequest()
    rules = load_rules(db)
    result = ensure_horizon(
        db,
        rules,
        load_holiday_dates(db),
        business_today(),
        min_days=data.min_days,
        target_days=data.target_days,
    )
    if result.extended:
        invalidate_availability_cache(redis_client)

    return HorizonSummary.model_validate(result)
