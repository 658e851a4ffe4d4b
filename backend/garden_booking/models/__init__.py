from .generated import (
    AuditLog,
    Base,
    Bookings,
    Holidays,
    OpenDays,
    ScheduleRules,
    TimeSlots,
)

__all__ = [
    "AuditLog",
    "Base",
    "Bookings",
    "Holidays",
    "OpenDays",
    "ScheduleRules",
    "TimeSlots",
]
