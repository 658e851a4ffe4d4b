# backend/garden_booking/schemas/rules.py

from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field


class MonthDay(BaseModel):
    month: int = Field(ge=1, le=12)
    day: int = Field(ge=1, le=31)


class RulesUpdate(BaseModel):
    """Full replacement of the recurrence rule set."""
    operating_weekdays: list[str]
    season_start: MonthDay
    season_end: MonthDay
    slot_labels: list[str]
    max_bookings_per_slot: int
    max_units_per_slot: int


class RulesRead(BaseModel):
    operating_weekdays: list[str]
    season_start: MonthDay
    season_end: MonthDay
    slot_labels: list[str]
    max_bookings_per_slot: int
    max_units_per_slot: int

    updated_by: Optional[str] = None
    updated_at: Optional[datetime] = None
    applied_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, row) -> "RulesRead":
        return cls(
            operating_weekdays=row.operating_weekdays or [],
            season_start=MonthDay(month=row.season_start_month, day=row.season_start_day),
            season_end=MonthDay(month=row.season_end_month, day=row.season_end_day),
            slot_labels=row.slot_labels or [],
            max_bookings_per_slot=row.max_bookings_per_slot,
            max_units_per_slot=row.max_units_per_slot,
            updated_by=row.updated_by,
            updated_at=row.updated_at,
            applied_at=row.applied_at,
        )
