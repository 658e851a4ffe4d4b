# backend/garden_booking/services/schedule/rules.py
"""
Recurrence rules and the calendar rule evaluator.

A date is open iff:
✓ its weekday is an operating weekday
✓ it falls inside the seasonal window (inclusive, may wrap Dec → Jan)
✓ it is not an enabled holiday

Open dates get every slot label of the rule set, verbatim.
The evaluator never reads the clock: callers pass dates explicitly.
"""

from collections.abc import Collection, Iterable
from dataclasses import dataclass
from datetime import date, datetime, time

from sqlalchemy.orm import Session

from ..errors import RulesNotConfigured

WEEKDAYS = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)

_LABEL_FORMATS = ("%I:%M %p", "%I:%M%p", "%I %p", "%H:%M")


@dataclass(frozen=True)
class RecurrenceRules:
    """Typed rule set. Build through `build_rules()` to get validation."""
    operating_weekdays: frozenset[str]
    season_start: tuple[int, int]  # (month, day)
    season_end: tuple[int, int]
    slot_labels: tuple[str, ...]
    max_bookings_per_slot: int
    max_units_per_slot: int

    @property
    def season_wraps(self) -> bool:
        return self.season_start > self.season_end

    def in_season(self, day: date) -> bool:
        md = (day.month, day.day)
        if self.season_wraps:
            return md >= self.season_start or md <= self.season_end
        return self.season_start <= md <= self.season_end

    def as_dict(self) -> dict:
        return {
            "operating_weekdays": sorted(self.operating_weekdays, key=WEEKDAYS.index),
            "season_start": list(self.season_start),
            "season_end": list(self.season_end),
            "slot_labels": list(self.slot_labels),
            "max_bookings_per_slot": self.max_bookings_per_slot,
            "max_units_per_slot": self.max_units_per_slot,
        }


@dataclass(frozen=True)
class DayEvaluation:
    is_open: bool
    labels: tuple[str, ...]


def evaluate_day(
    day: date,
    rules: RecurrenceRules,
    holidays: Collection[date],
) -> DayEvaluation:
    """
    Decide whether `day` is open and which slot labels it carries.

    `holidays` holds the *enabled* holiday dates only
    (see `enabled_holiday_dates`).
    """
    if WEEKDAYS[day.weekday()] not in rules.operating_weekdays:
        return DayEvaluation(False, ())
    if not rules.in_season(day):
        return DayEvaluation(False, ())
    if day in holidays:
        return DayEvaluation(False, ())
    return DayEvaluation(True, rules.slot_labels)


def enabled_holiday_dates(holidays: Iterable) -> frozenset[date]:
    """Dates of holidays that block the schedule (disabled ones are skipped)."""
    return frozenset(h.date for h in holidays if h.is_enabled)


# ── Labels ───────────────────────────────────────────────────────────────


def parse_time_label(label: str) -> time | None:
    """Parse "10:00 AM" / "2:00PM" / "14:00"; None if not a clock label."""
    value = " ".join(label.strip().upper().split())
    for fmt in _LABEL_FORMATS:
        try:
            return datetime.strptime(value, fmt).time()
        except ValueError:
            continue
    return None


def label_sort_key(label: str) -> tuple:
    parsed = parse_time_label(label)
    if parsed is None:
        return (1, label)
    return (0, parsed.hour, parsed.minute, label)


def sort_labels(labels: Iterable[str]) -> list[str]:
    return sorted(labels, key=label_sort_key)


# ── Construction / validation ────────────────────────────────────────────


def build_rules(
    operating_weekdays,
    season_start,
    season_end,
    slot_labels,
    max_bookings_per_slot,
    max_units_per_slot,
) -> RecurrenceRules:
    """
    Validate raw values and build a RecurrenceRules.

    Raises RulesNotConfigured listing every problem found, so a partially
    configured rule set can never materialize an empty or wrong schedule.
    """
    problems: list[str] = []

    weekdays: set[str] = set()
    if not isinstance(operating_weekdays, (list, tuple, set, frozenset)) or not operating_weekdays:
        problems.append("operating_weekdays must be a non-empty list")
    else:
        for name in operating_weekdays:
            normalized = str(name).strip().lower()
            if normalized not in WEEKDAYS:
                problems.append(f"unknown weekday {name!r}")
            else:
                weekdays.add(normalized)

    start = _month_day(season_start, "season_start", problems)
    end = _month_day(season_end, "season_end", problems)

    labels: list[str] = []
    if not isinstance(slot_labels, (list, tuple)) or not slot_labels:
        problems.append("slot_labels must be a non-empty list")
    else:
        for label in slot_labels:
            if not isinstance(label, str) or not label.strip():
                problems.append(f"invalid slot label {label!r}")
                continue
            label = label.strip()
            if parse_time_label(label) is None:
                problems.append(f"slot label {label!r} is not a clock time")
            elif label in labels:
                problems.append(f"duplicate slot label {label!r}")
            else:
                labels.append(label)

    for field, value in (
        ("max_bookings_per_slot", max_bookings_per_slot),
        ("max_units_per_slot", max_units_per_slot),
    ):
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            problems.append(f"{field} must be a positive integer")

    if problems:
        raise RulesNotConfigured(problems)

    return RecurrenceRules(
        operating_weekdays=frozenset(weekdays),
        season_start=start,
        season_end=end,
        slot_labels=tuple(labels),
        max_bookings_per_slot=max_bookings_per_slot,
        max_units_per_slot=max_units_per_slot,
    )


def _month_day(value, field: str, problems: list[str]) -> tuple[int, int]:
    if not isinstance(value, (list, tuple)) or len(value) != 2:
        problems.append(f"{field} must be a (month, day) pair")
        return (0, 0)
    month, day = value
    if month is None or day is None:
        problems.append(f"{field} is not set")
        return (0, 0)
    try:
        # 2000 is a leap year, so Feb 29 is accepted as a season bound
        date(2000, int(month), int(day))
    except (TypeError, ValueError):
        problems.append(f"{field} ({month}, {day}) is not a calendar day")
        return (0, 0)
    return (int(month), int(day))


def rules_from_row(row) -> RecurrenceRules:
    """Convert a ScheduleRules row (JSON columns already decoded) to rules."""
    if row is None:
        raise RulesNotConfigured(["schedule rules have not been configured"])
    return build_rules(
        operating_weekdays=row.operating_weekdays,
        season_start=(row.season_start_month, row.season_start_day),
        season_end=(row.season_end_month, row.season_end_day),
        slot_labels=row.slot_labels,
        max_bookings_per_slot=row.max_bookings_per_slot,
        max_units_per_slot=row.max_units_per_slot,
    )


# ── Database helpers ─────────────────────────────────────────────────────


RULES_ROW_ID = 1


def get_rules_row(db: Session):
    from ...models.generated import ScheduleRules
    return db.get(ScheduleRules, RULES_ROW_ID)


def load_rules(db: Session) -> RecurrenceRules:
    return rules_from_row(get_rules_row(db))


def load_holiday_dates(db: Session) -> frozenset[date]:
    from ...models.generated import Holidays
    rows = db.query(Holidays).filter(Holidays.is_enabled.is_(True)).all()
    return enabled_holiday_dates(rows)
