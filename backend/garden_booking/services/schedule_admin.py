# backend/garden_booking/services/schedule_admin.py
"""
Admin-side schedule changes: recurrence rules and holidays.

Every change is persisted first, then the schedule is re-materialized over the
whole existing horizon and the horizon is topped up. Rules get `applied_at`
only once that re-materialization has succeeded, so a failed refresh leaves a
visible "saved but not applied" state instead of a half-built schedule.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone

from sqlalchemy.orm import Session

from ..models.generated import Holidays, ScheduleRules
from .audit import record_audit
from .errors import HolidayExists, HolidayNotFound, InvalidBookingRequest, RulesNotConfigured
from .schedule.config import BookingConfig
from .schedule.holidays_calendar import alberta_holidays
from .schedule.horizon import RefreshResult, refresh_schedule
from .schedule.rules import RULES_ROW_ID, build_rules, get_rules_row

logger = logging.getLogger(__name__)


@dataclass
class RulesUpdate:
    operating_weekdays: list[str]
    season_start: tuple[int, int]
    season_end: tuple[int, int]
    slot_labels: list[str]
    max_bookings_per_slot: int
    max_units_per_slot: int


# ── Rules ────────────────────────────────────────────────────────────────


def apply_rules(
    db: Session,
    update: RulesUpdate,
    today: date,
    actor: str = "admin",
    config: BookingConfig | None = None,
) -> tuple[ScheduleRules, RefreshResult]:
    """
    Validate, persist and apply a new rule set.

    Raises RulesNotConfigured (nothing is written) when the values are invalid.
    """
    rules = build_rules(
        operating_weekdays=update.operating_weekdays,
        season_start=update.season_start,
        season_end=update.season_end,
        slot_labels=update.slot_labels,
        max_bookings_per_slot=update.max_bookings_per_slot,
        max_units_per_slot=update.max_units_per_slot,
    )
    now = datetime.now(timezone.utc)

    row = get_rules_row(db)
    before = _rules_snapshot(row) if row is not None else None
    if row is None:
        row = ScheduleRules(id=RULES_ROW_ID)
        db.add(row)

    row.operating_weekdays = sorted(rules.operating_weekdays)
    row.season_start_month, row.season_start_day = rules.season_start
    row.season_end_month, row.season_end_day = rules.season_end
    row.slot_labels = list(rules.slot_labels)
    row.max_bookings_per_slot = rules.max_bookings_per_slot
    row.max_units_per_slot = rules.max_units_per_slot
    row.updated_by = actor
    row.updated_at = now
    row.applied_at = None

    record_audit(db, "rules_updated", actor=actor, before=before, after=_rules_snapshot(row))
    db.commit()
    logger.info(f"Schedule rules saved by {actor}: {rules.as_dict()}")

    result = refresh_schedule(db, today, config=config)

    row = get_rules_row(db)
    row.applied_at = datetime.now(timezone.utc)
    db.commit()

    logger.info(
        f"Schedule rules applied: {result.materialized.days_written} days re-materialized, "
        f"{result.horizon.days_added} days added"
    )
    return row, result


def _rules_snapshot(row: ScheduleRules) -> dict:
    return {
        "operating_weekdays": list(row.operating_weekdays or []),
        "season_start": [row.season_start_month, row.season_start_day],
        "season_end": [row.season_end_month, row.season_end_day],
        "slot_labels": list(row.slot_labels or []),
        "max_bookings_per_slot": row.max_bookings_per_slot,
        "max_units_per_slot": row.max_units_per_slot,
    }


# ── Holidays ─────────────────────────────────────────────────────────────


def list_holidays(db: Session, year: int | None = None) -> list[Holidays]:
    q = db.query(Holidays)
    if year is not None:
        q = q.filter(Holidays.date >= date(year, 1, 1), Holidays.date <= date(year, 12, 31))
    return q.order_by(Holidays.date).all()


def add_holiday(
    db: Session,
    day: date,
    name: str,
    today: date,
    reason: str | None = None,
    actor: str = "admin",
    config: BookingConfig | None = None,
) -> tuple[Holidays, RefreshResult | None]:
    if not name or not name.strip():
        raise InvalidBookingRequest("Holiday name is required.")

    existing = db.query(Holidays).filter(Holidays.date == day).first()
    if existing is not None:
        raise HolidayExists(
            f"A holiday already exists on {day.isoformat()}.",
            holiday_id=existing.id,
        )

    holiday = Holidays(date=day, name=name.strip(), reason=reason, is_enabled=True)
    db.add(holiday)
    db.flush()
    record_audit(
        db,
        "holiday_added",
        actor=actor,
        after={"id": holiday.id, "date": day, "name": holiday.name},
        reason=reason,
    )
    db.commit()
    logger.info(f"Holiday added: {day} {name!r} by {actor}")

    return holiday, _refresh_after_holiday_change(db, today, config)


def set_holiday_enabled(
    db: Session,
    holiday_id: int,
    enabled: bool,
    today: date,
    actor: str = "admin",
    config: BookingConfig | None = None,
) -> tuple[Holidays, RefreshResult | None]:
    holiday = db.get(Holidays, holiday_id)
    if holiday is None:
        raise HolidayNotFound("Holiday not found.", holiday_id=holiday_id)

    if holiday.is_enabled == enabled:
        return holiday, None

    holiday.is_enabled = enabled
    record_audit(
        db,
        "holiday_enabled" if enabled else "holiday_disabled",
        actor=actor,
        before={"id": holiday.id, "date": holiday.date, "is_enabled": not enabled},
        after={"id": holiday.id, "date": holiday.date, "is_enabled": enabled},
    )
    db.commit()
    logger.info(f"Holiday {holiday_id} {'enabled' if enabled else 'disabled'} by {actor}")

    return holiday, _refresh_after_holiday_change(db, today, config)


def generate_holidays(
    db: Session,
    years: list[int],
    today: date,
    actor: str = "admin",
    config: BookingConfig | None = None,
) -> tuple[list[Holidays], RefreshResult | None]:
    """Insert Alberta statutory holidays for `years`; existing dates are left alone."""
    existing = {row.date for row in db.query(Holidays.date).all()}

    added: list[Holidays] = []
    for year in sorted(set(years)):
        for day, name in alberta_holidays(year):
            if day in existing:
                continue
            holiday = Holidays(date=day, name=name, is_enabled=True, is_auto_generated=True)
            db.add(holiday)
            added.append(holiday)
            existing.add(day)

    if not added:
        return [], None

    record_audit(
        db,
        "holidays_generated",
        actor=actor,
        after={"years": sorted(set(years)), "dates": [h.date for h in added]},
    )
    db.commit()
    logger.info(f"Generated {len(added)} holidays for {sorted(set(years))}")

    return added, _refresh_after_holiday_change(db, today, config)


def _refresh_after_holiday_change(
    db: Session,
    today: date,
    config: BookingConfig | None,
) -> RefreshResult | None:
    """Holidays can be entered before the rules exist; the refresh then waits."""
    try:
        return refresh_schedule(db, today, config=config)
    except RulesNotConfigured as e:
        logger.warning(f"Schedule not refreshed after holiday change: {e.message}")
        return None
