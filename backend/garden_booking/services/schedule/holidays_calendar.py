# backend/garden_booking/services/schedule/holidays_calendar.py
"""
Alberta general (statutory) holidays, used to pre-populate the holiday list.
"""

from datetime import date, timedelta


def alberta_holidays(year: int) -> list[tuple[date, str]]:
    """Return [(date, name), ...] for `year`, sorted by date."""
    holidays = [
        (date(year, 1, 1), "New Year's Day"),
        (_nth_weekday(year, 2, 0, 3), "Family Day"),
        (_easter_sunday(year) - timedelta(days=2), "Good Friday"),
        (_victoria_day(year), "Victoria Day"),
        (date(year, 7, 1), "Canada Day"),
        (_nth_weekday(year, 8, 0, 1), "Heritage Day"),
        (_nth_weekday(year, 9, 0, 1), "Labour Day"),
        (_nth_weekday(year, 10, 0, 2), "Thanksgiving Day"),
        (date(year, 11, 11), "Remembrance Day"),
        (date(year, 12, 25), "Christmas Day"),
    ]
    return sorted(holidays)


def _nth_weekday(year: int, month: int, weekday: int, n: int) -> date:
    """n-th `weekday` (0 = Monday) of the month."""
    first = date(year, month, 1)
    offset = (weekday - first.weekday()) % 7
    return first + timedelta(days=offset + 7 * (n - 1))


def _victoria_day(year: int) -> date:
    """Last Monday before May 25."""
    may_24 = date(year, 5, 24)
    return may_24 - timedelta(days=may_24.weekday())


def _easter_sunday(year: int) -> date:
    """Gregorian Easter (anonymous / Meeus-Jones-Butcher algorithm)."""
    a = year % 19
    b, c = divmod(year, 100)
    d, e = divmod(b, 4)
    f = (b + 8) // 25
    g = (b - f + 1) // 3
    h = (19 * a + b - d - g + 15) % 30
    i, k = divmod(c, 4)
    l = (32 + 2 * e + 2 * i - h - k) % 7
    m = (a + 11 * h + 22 * l) // 451
    month, day = divmod(h + l - 7 * m + 114, 31)
    return date(year, month, day + 1)
