# backend/garden_booking/services/schedule/materializer.py
"""
Schedule materializer: rules → open_days / time_slots rows.

Per date in range:
✓ upsert the open_days row (is_open = evaluator result)
✓ insert missing slots, raise ceilings to max(configured, current usage)
✓ invalid slot without bookings → deleted
✓ invalid slot with confirmed bookings → is_legacy=true, ceilings frozen

Never deletes-and-regenerates a range, never touches dates before today,
and never commits: callers commit per batch (see horizon.py).
"""

import logging
from collections.abc import Collection
from dataclasses import dataclass
from datetime import date, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.generated import OpenDays, TimeSlots
from .rules import RecurrenceRules, evaluate_day
from .usage import EMPTY_USAGE, SlotUsage, get_usage_map

logger = logging.getLogger(__name__)


@dataclass
class MaterializeResult:
    days_written: int = 0
    slots_written: int = 0
    slots_created: int = 0
    slots_updated: int = 0
    slots_removed: int = 0
    slots_marked_legacy: int = 0

    def merge(self, other: "MaterializeResult") -> "MaterializeResult":
        for field in self.__dataclass_fields__:
            setattr(self, field, getattr(self, field) + getattr(other, field))
        return self


def materialize(
    db: Session,
    horizon_days: int,
    rules: RecurrenceRules,
    holidays: Collection[date],
    today: date,
) -> MaterializeResult:
    """Materialize offsets 0..horizon_days from `today` (inclusive)."""
    return materialize_range(
        db,
        date_start=today,
        date_end=today + timedelta(days=horizon_days),
        rules=rules,
        holidays=holidays,
        today=today,
    )


def materialize_range(
    db: Session,
    date_start: date,
    date_end: date,
    rules: RecurrenceRules,
    holidays: Collection[date],
    today: date,
) -> MaterializeResult:
    """
    Materialize [date_start, date_end] (inclusive), clipped to today onwards.

    Existing slots in range are row-locked first, so a concurrent booking on
    a slot either commits before we count usage (→ slot kept / legacy) or
    waits and then finds the slot gone (→ SlotNotFound).
    """
    if date_start < today:
        date_start = today

    result = MaterializeResult()
    if date_end < date_start:
        return result

    existing = _lock_existing_slots(db, date_start, date_end)
    open_days = _get_open_days(db, date_start, date_end)
    usage = get_usage_map(db, date_start, date_end)

    current = date_start
    while current <= date_end:
        evaluation = evaluate_day(current, rules, holidays)
        day_slots = existing.get(current, {})

        for label in evaluation.labels:
            used = usage.get((current, label), EMPTY_USAGE)
            slot = day_slots.get(label)
            if slot is None:
                if _insert_slot(db, current, label, rules, used):
                    result.slots_created += 1
            elif _apply_ceilings(slot, rules, used):
                result.slots_updated += 1
            result.slots_written += 1

        valid = set(evaluation.labels)
        for label, slot in day_slots.items():
            if label in valid:
                continue
            used = usage.get((current, label), EMPTY_USAGE)
            if used.booking_count > 0:
                if not slot.is_legacy:
                    slot.is_legacy = True
                    slot.updated_at = func.now()
                    result.slots_marked_legacy += 1
            else:
                db.delete(slot)
                result.slots_removed += 1

        _upsert_open_day(db, current, evaluation.is_open, open_days.get(current))
        result.days_written += 1

        current += timedelta(days=1)

    db.flush()

    logger.info(
        f"Materialized {date_start}..{date_end}: "
        f"{result.days_written} days, {result.slots_written} slots "
        f"(+{result.slots_created} new, {result.slots_updated} updated, "
        f"{result.slots_removed} removed, {result.slots_marked_legacy} legacy)"
    )
    return result


# ── Helpers ──────────────────────────────────────────────────────────────


def _apply_ceilings(slot: TimeSlots, rules: RecurrenceRules, used: SlotUsage) -> bool:
    """Set ceilings to max(configured, usage); revive legacy slots. True if changed."""
    max_bookings = max(rules.max_bookings_per_slot, used.booking_count)
    max_units = max(rules.max_units_per_slot, used.unit_count)

    if (
        slot.max_bookings == max_bookings
        and slot.max_units == max_units
        and not slot.is_legacy
    ):
        return False

    slot.max_bookings = max_bookings
    slot.max_units = max_units
    slot.is_legacy = False
    slot.updated_at = func.now()
    return True


def _insert_slot(
    db: Session,
    day: date,
    label: str,
    rules: RecurrenceRules,
    used: SlotUsage,
) -> bool:
    """Insert a slot unless it already exists. True if a row was created."""
    stmt = (
        dialect_insert(db, TimeSlots)
        .values(
            date=day,
            time_label=label,
            max_bookings=max(rules.max_bookings_per_slot, used.booking_count),
            max_units=max(rules.max_units_per_slot, used.unit_count),
            is_legacy=False,
        )
        .on_conflict_do_nothing(index_elements=[TimeSlots.date, TimeSlots.time_label])
    )
    return db.execute(stmt).rowcount > 0


def _upsert_open_day(db: Session, day: date, is_open: bool, existing: OpenDays | None) -> None:
    if existing is not None:
        if existing.is_open != is_open:
            existing.is_open = is_open
            existing.updated_at = func.now()
        return

    stmt = dialect_insert(db, OpenDays).values(date=day, is_open=is_open)
    stmt = stmt.on_conflict_do_update(
        index_elements=[OpenDays.date],
        set_={"is_open": stmt.excluded.is_open, "updated_at": func.now()},
    )
    db.execute(stmt)


def _lock_existing_slots(
    db: Session,
    date_start: date,
    date_end: date,
) -> dict[date, dict[str, TimeSlots]]:
    rows = (
        db.query(TimeSlots)
        .filter(TimeSlots.date >= date_start, TimeSlots.date <= date_end)
        .order_by(TimeSlots.date, TimeSlots.id)
        .with_for_update()
        .all()
    )
    by_day: dict[date, dict[str, TimeSlots]] = {}
    for slot in rows:
        by_day.setdefault(slot.date, {})[slot.time_label] = slot
    return by_day


def _get_open_days(db: Session, date_start: date, date_end: date) -> dict[date, OpenDays]:
    rows = (
        db.query(OpenDays)
        .filter(OpenDays.date >= date_start, OpenDays.date <= date_end)
        .all()
    )
    return {row.date: row for row in rows}


def dialect_insert(db: Session, model):
    """INSERT supporting ON CONFLICT for the session's backend."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Upserts are not supported on {dialect}")
    return insert(model)
