# backend/garden_booking/schemas/availability.py
"""
Pydantic schemas for availability API.
"""

from datetime import date
from pydantic import BaseModel


class SlotCapacity(BaseModel):
    """Usage and remaining capacity of a single time slot."""
    time_label: str
    max_bookings: int
    max_units: int
    booking_count: int
    unit_count: int
    remaining_bookings: int
    remaining_units: int
    is_legacy: bool = False
    available: bool

    model_config = {"from_attributes": True}


class DaySlotsResponse(BaseModel):
    """Detailed slots for one date."""
    date: date
    is_open: bool
    slots: list[SlotCapacity]

    model_config = {"from_attributes": True}
