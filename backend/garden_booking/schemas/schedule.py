# backend/garden_booking/schemas/schedule.py
"""
Pydantic schemas for schedule admin API.
"""

from datetime import date
from pydantic import BaseModel, Field


class MaterializeSummary(BaseModel):
    days_written: int = 0
    slots_written: int = 0
    slots_created: int = 0
    slots_updated: int = 0
    slots_removed: int = 0
    slots_marked_legacy: int = 0

    model_config = {"from_attributes": True}


class HorizonSummary(BaseModel):
    extended: bool
    days_added: int
    days_remaining: int
    max_date: date | None = None
    threshold: int

    model_config = {"from_attributes": True}


class ScheduleStatus(BaseModel):
    today: date
    max_date: date | None = None
    days_remaining: int
    horizon_min_days: int
    horizon_target_days: int
    needs_extension: bool
    rules_configured: bool
    rules_applied: bool


class RefreshResponse(BaseModel):
    materialized: MaterializeSummary
    horizon: HorizonSummary


class ExtendRequest(BaseModel):
    """Optional overrides; defaults come from configuration."""
    min_days: int | None = Field(default=None, ge=0)
    target_days: int | None = Field(default=None, ge=1)


class RulesApplyResponse(BaseModel):
    applied: bool
    materialized: MaterializeSummary
    horizon: HorizonSummary
