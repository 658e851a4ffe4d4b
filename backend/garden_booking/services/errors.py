# backend/garden_booking/services/errors.py
"""
Typed outcomes of the schedule and booking services.

Each error carries a stable `kind` (what callers branch on and what the API
returns as "error") and the HTTP status the API maps it to.
"""


class BookingServiceError(Exception):
    kind = "booking_error"
    status_code = 400
    retryable = False

    def __init__(self, message: str, **extra):
        super().__init__(message)
        self.message = message
        self.extra = extra

    def to_dict(self) -> dict:
        return {
            "error": self.kind,
            "detail": self.message,
            "retryable": self.retryable,
            **self.extra,
        }


# ── Configuration ────────────────────────────────────────────────────────


class RulesNotConfigured(BookingServiceError):
    """Rule set is missing or degenerate; materialization refuses to run."""

    kind = "rules_not_configured"
    status_code = 422

    def __init__(self, problems: list[str]):
        super().__init__("Schedule rules are incomplete: " + "; ".join(problems), problems=problems)
        self.problems = problems


# ── Capacity ─────────────────────────────────────────────────────────────


class CapacityExceeded(BookingServiceError):
    """`ceiling` is "bookings" or "units"."""

    kind = "capacity_exceeded"
    status_code = 409

    def __init__(self, ceiling: str, message: str, **extra):
        super().__init__(message, ceiling=ceiling, **extra)
        self.ceiling = ceiling


class TargetCapacityExceeded(CapacityExceeded):
    kind = "target_capacity_exceeded"


# ── Not found / state ────────────────────────────────────────────────────


class SlotNotFound(BookingServiceError):
    kind = "slot_not_found"
    status_code = 404


class BookingNotFound(BookingServiceError):
    kind = "booking_not_found"
    status_code = 404


class HolidayNotFound(BookingServiceError):
    kind = "holiday_not_found"
    status_code = 404


class HolidayExists(BookingServiceError):
    kind = "holiday_exists"
    status_code = 409


class PastDate(BookingServiceError):
    kind = "past_date"


class BookingCancelled(BookingServiceError):
    kind = "booking_cancelled"


class InvalidBookingRequest(BookingServiceError):
    kind = "invalid_booking"


# ── Contention ───────────────────────────────────────────────────────────


class SlotBusy(BookingServiceError):
    """The slot lock could not be acquired in time. Safe to retry."""

    kind = "slot_busy"
    status_code = 503
    retryable = True
