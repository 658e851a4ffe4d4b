# backend/garden_booking/services/schedule/usage.py
"""
Slot usage: derived from confirmed bookings, never stored.

booking_count = number of confirmed bookings at (date, time_label)
unit_count    = sum of their unit_count
"""

from dataclasses import dataclass
from datetime import date

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.generated import Bookings

CONFIRMED = "confirmed"
CANCELLED = "cancelled"


@dataclass(frozen=True)
class SlotUsage:
    booking_count: int = 0
    unit_count: int = 0

    def remaining(self, max_bookings: int, max_units: int) -> tuple[int, int]:
        return (
            max(max_bookings - self.booking_count, 0),
            max(max_units - self.unit_count, 0),
        )

    def has_room(self, max_bookings: int, max_units: int) -> bool:
        return self.booking_count < max_bookings and self.unit_count < max_units


EMPTY_USAGE = SlotUsage()


def get_slot_usage(db: Session, day: date, time_label: str) -> SlotUsage:
    """Usage of one slot, read inside the caller's transaction."""
    count, units = (
        db.query(
            func.count(Bookings.id),
            func.coalesce(func.sum(Bookings.unit_count), 0),
        )
        .filter(
            Bookings.date == day,
            Bookings.time_label == time_label,
            Bookings.status == CONFIRMED,
        )
        .one()
    )
    return SlotUsage(booking_count=int(count), unit_count=int(units))


def get_usage_map(
    db: Session,
    date_from: date,
    date_to: date | None = None,
) -> dict[tuple[date, str], SlotUsage]:
    """Usage per (date, time_label) for all slots with confirmed bookings in range."""
    q = (
        db.query(
            Bookings.date,
            Bookings.time_label,
            func.count(Bookings.id),
            func.coalesce(func.sum(Bookings.unit_count), 0),
        )
        .filter(
            Bookings.status == CONFIRMED,
            Bookings.date >= date_from,
        )
    )
    if date_to is not None:
        q = q.filter(Bookings.date <= date_to)

    rows = q.group_by(Bookings.date, Bookings.time_label).all()
    return {
        (row_date, label): SlotUsage(booking_count=int(count), unit_count=int(units))
        for row_date, label, count, units in rows
    }
