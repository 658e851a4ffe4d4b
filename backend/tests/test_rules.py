from datetime import date, timedelta
from types import SimpleNamespace

import pytest

from garden_booking.services.errors import RulesNotConfigured
from garden_booking.services.schedule import build_rules, evaluate_day
from garden_booking.services.schedule.rules import (
    enabled_holiday_dates,
    parse_time_label,
    rules_from_row,
    sort_labels,
)


def make_rules(**overrides):
    values = dict(
        operating_weekdays=["wednesday", "friday"],
        season_start=(5, 1),
        season_end=(9, 30),
        slot_labels=["10:00 AM", "2:00 PM"],
        max_bookings_per_slot=4,
        max_units_per_slot=6,
    )
    values.update(overrides)
    return build_rules(**values)


# ── evaluate_day ─────────────────────────────────────────────────────────


def test_open_day_gets_all_labels_verbatim(rules):
    result = evaluate_day(date(2025, 7, 2), rules, frozenset())  # Wednesday
    assert result.is_open
    assert result.labels == ("10:00 AM", "2:00 PM")


def test_non_operating_weekday_is_closed(rules):
    result = evaluate_day(date(2025, 7, 1), rules, frozenset())  # Tuesday
    assert not result.is_open
    assert result.labels == ()


def test_holiday_closes_an_operating_day(rules):
    holiday = date(2025, 7, 4)  # Friday
    assert evaluate_day(holiday, rules, frozenset()).is_open
    assert not evaluate_day(holiday, rules, frozenset({holiday})).is_open


def test_season_bounds_are_inclusive():
    rules = make_rules(operating_weekdays=list(
        ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
    ))
    assert evaluate_day(date(2025, 5, 1), rules, frozenset()).is_open
    assert evaluate_day(date(2025, 9, 30), rules, frozenset()).is_open
    assert not evaluate_day(date(2025, 4, 30), rules, frozenset()).is_open
    assert not evaluate_day(date(2025, 10, 1), rules, frozenset()).is_open


def test_wrapping_season_spans_new_year():
    rules = make_rules(
        operating_weekdays=["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"],
        season_start=(11, 15),
        season_end=(2, 15),
    )
    assert rules.season_wraps
    assert evaluate_day(date(2025, 12, 31), rules, frozenset()).is_open
    assert evaluate_day(date(2026, 1, 1), rules, frozenset()).is_open
    assert evaluate_day(date(2026, 2, 15), rules, frozenset()).is_open
    assert not evaluate_day(date(2026, 2, 16), rules, frozenset()).is_open
    assert not evaluate_day(date(2025, 11, 14), rules, frozenset()).is_open


def test_evaluation_is_deterministic(rules):
    start = date(2025, 1, 1)
    holidays = frozenset({date(2025, 7, 4)})
    for offset in range(0, 365, 7):
        day = start + timedelta(days=offset)
        assert evaluate_day(day, rules, holidays) == evaluate_day(day, rules, holidays)


def test_disabled_holidays_are_ignored():
    rows = [
        SimpleNamespace(date=date(2025, 7, 4), is_enabled=True),
        SimpleNamespace(date=date(2025, 7, 9), is_enabled=False),
    ]
    assert enabled_holiday_dates(rows) == frozenset({date(2025, 7, 4)})


# ── build_rules ──────────────────────────────────────────────────────────


def test_build_rules_normalizes_weekdays():
    rules = make_rules(operating_weekdays=[" Wednesday", "FRIDAY"])
    assert rules.operating_weekdays == frozenset({"wednesday", "friday"})


@pytest.mark.parametrize(
    "overrides, problem",
    [
        ({"operating_weekdays": []}, "operating_weekdays"),
        ({"operating_weekdays": ["funday"]}, "unknown weekday"),
        ({"slot_labels": []}, "slot_labels"),
        ({"slot_labels": ["noonish"]}, "not a clock time"),
        ({"slot_labels": ["10:00 AM", "10:00 AM"]}, "duplicate slot label"),
        ({"max_bookings_per_slot": 0}, "max_bookings_per_slot"),
        ({"max_units_per_slot": None}, "max_units_per_slot"),
        ({"season_start": (2, 30)}, "season_start"),
        ({"season_end": (None, None)}, "season_end"),
    ],
)
def test_build_rules_rejects_degenerate_values(overrides, problem):
    with pytest.raises(RulesNotConfigured) as exc_info:
        make_rules(**overrides)
    assert any(problem in p for p in exc_info.value.problems)


def test_build_rules_reports_every_problem():
    with pytest.raises(RulesNotConfigured) as exc_info:
        make_rules(operating_weekdays=[], slot_labels=[], max_units_per_slot=0)
    assert len(exc_info.value.problems) == 3


def test_missing_rules_row_is_a_configuration_error():
    with pytest.raises(RulesNotConfigured):
        rules_from_row(None)


# ── labels ───────────────────────────────────────────────────────────────


def test_parse_time_label_formats():
    assert parse_time_label("10:00 AM").hour == 10
    assert parse_time_label("2:00 PM").hour == 14
    assert parse_time_label("2:00pm").hour == 14
    assert parse_time_label("14:30").minute == 30
    assert parse_time_label("lunch") is None


def test_labels_sort_in_clock_order():
    assert sort_labels(["2:00 PM", "10:00 AM", "12:00 PM", "9:30 AM"]) == [
        "9:30 AM",
        "10:00 AM",
        "12:00 PM",
        "2:00 PM",
    ]
