# backend/garden_booking/routers/admin_holidays.py
# Every change refreshes the materialized schedule (when rules exist).

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ..database import get_db
from ..redis_client import redis_client
from ..schemas.holidays import (
    HolidayChangeResponse,
    HolidayCreate,
    HolidayGenerate,
    HolidayRead,
)
from ..services import schedule_admin
from ..services.schedule import business_today, invalidate_availability_cache

router = APIRouter(prefix="/admin/holidays", tags=["admin"])


@router.get("/", response_model=list[HolidayRead])
def list_holidays(year: int | None = None, db: Session = Depends(get_db)):
    return schedule_admin.list_holidays(db, year)


@router.post(
    "/", response_model=HolidayChangeResponse, status_code=status.HTTP_201_CREATED
)
def create_holiday(
    data: HolidayCreate,
    actor: str = "admin",
    db: Session = Depends(get_db),
):
    holiday, refreshed = schedule_admin.add_holiday(
        db, data.date, data.name, business_today(), reason=data.reason, actor=actor
    )
    return _change_response([holiday], refreshed)


@router.post("/{id}/disable", response_model=HolidayChangeResponse)
def disable_holiday(id: int, actor: str = "admin", db: Session = Depends(get_db)):
    holiday, refreshed = schedule_admin.set_holiday_enabled(
        db, id, False, business_today(), actor=actor
    )
    return _change_response([holiday], refreshed)


@router.post("/{id}/enable", response_model=HolidayChangeResponse)
def enable_holiday(id: int, actor: str = "admin", db: Session = Depends(get_db)):
    holiday, refreshed = schedule_admin.set_holiday_enabled(
        db, id, True, business_today(), actor=actor
    )
    return _change_response([holiday], refreshed)


@router.post("/generate", response_model=HolidayChangeResponse)
def generate_holidays(
    data: HolidayGenerate,
    actor: str = "admin",
    db: Session = Depends(get_db),
):
    added, refreshed = schedule_admin.generate_holidays(
        db, data.years, business_today(), actor=actor
    )
    return _change_response(added, refreshed)


def _change_response(holidays, refreshed) -> HolidayChangeResponse:
    if refreshed is not None:
        invalidate_availability_cache(redis_client)
    return HolidayChangeResponse(
        holidays=[HolidayRead.model_validate(h) for h in holidays],
        schedule_refreshed=refreshed is not None,
    )
