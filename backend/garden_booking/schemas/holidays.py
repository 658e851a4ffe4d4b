# backend/garden_booking/schemas/holidays.py

from datetime import date, datetime
from typing import Optional
from pydantic import BaseModel, Field


class HolidayCreate(BaseModel):
    date: date
    name: str
    reason: Optional[str] = None


class HolidayGenerate(BaseModel):
    years: list[int] = Field(min_length=1, max_length=10)


class HolidayRead(BaseModel):
    id: int
    date: date
    name: str
    reason: Optional[str] = None
    is_enabled: bool
    is_auto_generated: bool
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class HolidayChangeResponse(BaseModel):
    holidays: list[HolidayRead]
    schedule_refreshed: bool
