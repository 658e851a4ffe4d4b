# backend/garden_booking/services/schedule/availability.py
"""
Availability reader (read-only projection).

For each open day ≥ from_date:
  label is available iff booking_count < max_bookings AND unit_count < max_units

Takes into account:
- open_days.is_open (cached evaluator output, not re-derived here)
- non-legacy time slots and their ceilings
- confirmed bookings (usage)

No locks: a booking committing right after the read shows up on the next read.
"""

from datetime import date

from redis import Redis
from sqlalchemy.orm import Session

from ...models.generated import OpenDays, TimeSlots
from .config import BookingConfig, get_booking_config
from .redis_store import AvailabilityRedisStore
from .rules import label_sort_key
from .usage import EMPTY_USAGE, get_usage_map


def get_availability(db: Session, from_date: date) -> dict[date, list[str]]:
    """
    Returns:
        {date: [labels in clock order]}; dates with nothing left are omitted.
    """
    open_dates = [
        row.date
        for row in db.query(OpenDays.date)
        .filter(OpenDays.date >= from_date, OpenDays.is_open.is_(True))
        .order_by(OpenDays.date)
        .all()
    ]
    if not open_dates:
        return {}

    slots = (
        db.query(TimeSlots)
        .filter(
            TimeSlots.date >= from_date,
            TimeSlots.date <= open_dates[-1],
            TimeSlots.is_legacy.is_(False),
        )
        .all()
    )
    usage = get_usage_map(db, from_date, open_dates[-1])

    slots_by_day: dict[date, list[TimeSlots]] = {}
    for slot in slots:
        slots_by_day.setdefault(slot.date, []).append(slot)

    availability: dict[date, list[str]] = {}
    for day in open_dates:
        labels = [
            slot.time_label
            for slot in slots_by_day.get(day, [])
            if usage.get((day, slot.time_label), EMPTY_USAGE).has_room(
                slot.max_bookings, slot.max_units
            )
        ]
        if labels:
            availability[day] = sorted(labels, key=label_sort_key)

    return availability


def get_day_slots(db: Session, day: date, include_legacy: bool = False) -> list[dict]:
    """Per-slot usage and remaining capacity for one date."""
    q = db.query(TimeSlots).filter(TimeSlots.date == day)
    if not include_legacy:
        q = q.filter(TimeSlots.is_legacy.is_(False))
    slots = sorted(q.all(), key=lambda s: label_sort_key(s.time_label))
    usage = get_usage_map(db, day, day)

    result = []
    for slot in slots:
        used = usage.get((day, slot.time_label), EMPTY_USAGE)
        remaining_bookings, remaining_units = used.remaining(slot.max_bookings, slot.max_units)
        result.append({
            "date": day,
            "time_label": slot.time_label,
            "max_bookings": slot.max_bookings,
            "max_units": slot.max_units,
            "booking_count": used.booking_count,
            "unit_count": used.unit_count,
            "remaining_bookings": remaining_bookings,
            "remaining_units": remaining_units,
            "is_legacy": slot.is_legacy,
            "available": not slot.is_legacy and used.has_room(slot.max_bookings, slot.max_units),
        })
    return result


# ── Cached projection ────────────────────────────────────────────────────


def cached_availability(
    db: Session,
    from_date: date,
    redis: Redis | None = None,
    config: BookingConfig | None = None,
) -> dict[date, list[str]]:
    """get_availability() behind a short-lived Redis cache, when Redis is given."""
    if redis is None:
        return get_availability(db, from_date)

    config = config or get_booking_config()
    store = AvailabilityRedisStore(redis, config)

    # read before computing: an invalidation in between moves readers past this generation
    generation = store.generation()
    if generation is None:
        return get_availability(db, from_date)

    cached = store.get(generation, from_date)
    if cached is not None:
        return cached

    availability = get_availability(db, from_date)
    store.store(generation, from_date, availability)
    return availability
