# backend/garden_booking/services/schedule/horizon.py
"""
Horizon extender.

Keeps at least `horizon_min_days` of materialized schedule ahead of today.
When short, fills the tail up to `horizon_target_days` in batches; each batch
is committed on its own, so an interrupted run simply resumes from the last
committed open day on the next call.
"""

import logging
from collections.abc import Collection
from dataclasses import dataclass, field
from datetime import date, timedelta

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models.generated import OpenDays
from .config import BookingConfig, get_booking_config
from .materializer import MaterializeResult, materialize_range
from .rules import RecurrenceRules, load_holiday_dates, load_rules

logger = logging.getLogger(__name__)


@dataclass
class HorizonStatus:
    max_date: date | None
    days_remaining: int


@dataclass
class HorizonResult:
    extended: bool
    days_added: int
    days_remaining: int
    max_date: date | None
    threshold: int
    materialized: MaterializeResult = field(default_factory=MaterializeResult)


@dataclass
class RefreshResult:
    materialized: MaterializeResult
    horizon: HorizonResult


def get_horizon_status(db: Session, today: date) -> HorizonStatus:
    """days_remaining = max materialized date − today (−1 when nothing is materialized)."""
    max_date = db.query(func.max(OpenDays.date)).scalar()
    if max_date is None:
        return HorizonStatus(max_date=None, days_remaining=-1)
    return HorizonStatus(max_date=max_date, days_remaining=(max_date - today).days)


def ensure_horizon(
    db: Session,
    rules: RecurrenceRules,
    holidays: Collection[date],
    today: date,
    min_days: int | None = None,
    target_days: int | None = None,
    batch_size: int | None = None,
    config: BookingConfig | None = None,
) -> HorizonResult:
    """Extend the materialized schedule if fewer than `min_days` remain."""
    config = config or get_booking_config()
    min_days = config.horizon_min_days if min_days is None else min_days
    target_days = config.horizon_target_days if target_days is None else target_days
    batch_size = config.horizon_batch_days if batch_size is None else batch_size

    status = get_horizon_status(db, today)
    if status.days_remaining >= min_days:
        return HorizonResult(
            extended=False,
            days_added=0,
            days_remaining=status.days_remaining,
            max_date=status.max_date,
            threshold=min_days,
        )

    if status.max_date is None or status.max_date < today:
        date_start = today
    else:
        date_start = status.max_date + timedelta(days=1)
    date_end = today + timedelta(days=target_days)

    materialized = materialize_in_batches(
        db, date_start, date_end, rules, holidays, today, batch_size
    )
    after = get_horizon_status(db, today)

    logger.info(
        f"Horizon extended {date_start}..{date_end}: "
        f"{materialized.days_written} days added, {after.days_remaining} days remaining"
    )
    return HorizonResult(
        extended=materialized.days_written > 0,
        days_added=materialized.days_written,
        days_remaining=after.days_remaining,
        max_date=after.max_date,
        threshold=min_days,
        materialized=materialized,
    )


def materialize_in_batches(
    db: Session,
    date_start: date,
    date_end: date,
    rules: RecurrenceRules,
    holidays: Collection[date],
    today: date,
    batch_size: int,
) -> MaterializeResult:
    """Materialize [date_start, date_end] committing every `batch_size` days."""
    total = MaterializeResult()
    batch_start = date_start

    while batch_start <= date_end:
        batch_end = min(batch_start + timedelta(days=batch_size - 1), date_end)
        try:
            total.merge(materialize_range(db, batch_start, batch_end, rules, holidays, today))
            db.commit()
        except Exception:
            db.rollback()
            raise
        batch_start = batch_end + timedelta(days=1)

    return total


def refresh_schedule(
    db: Session,
    today: date,
    config: BookingConfig | None = None,
) -> RefreshResult:
    """
    Re-materialize the whole existing horizon under the current rules,
    then make sure the horizon is long enough.

    Called after every rule or holiday change. Raises RulesNotConfigured
    before touching anything if the stored rules are incomplete.
    """
    config = config or get_booking_config()
    rules = load_rules(db)
    holidays = load_holiday_dates(db)

    status = get_horizon_status(db, today)
    date_end = status.max_date if status.max_date and status.max_date > today else today

    materialized = materialize_in_batches(
        db, today, date_end, rules, holidays, today, config.horizon_batch_days
    )
    horizon = ensure_horizon(db, rules, holidays, today, config=config)

    return RefreshResult(materialized=materialized, horizon=horizon)


def check_horizon(db: Session, today: date, config: BookingConfig | None = None) -> HorizonResult:
    """Periodic safety net: extend the horizon with the stored rules."""
    rules = load_rules(db)
    holidays = load_holiday_dates(db)
    return ensure_horizon(db, rules, holidays, today, config=config)
