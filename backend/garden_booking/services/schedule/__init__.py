# backend/garden_booking/services/schedule/__init__.py
"""
Schedule module.

Level 1: Recurrence rules → open days + time slots (materialized in the DB)
Level 2: Availability projection (read on the fly, optionally cached in Redis)
"""

from .config import BookingConfig, get_booking_config, business_today
from .rules import RecurrenceRules, evaluate_day, build_rules, load_rules
from .materializer import MaterializeResult, materialize, materialize_range
from .horizon import ensure_horizon, refresh_schedule, check_horizon, get_horizon_status
from .redis_store import AvailabilityRedisStore
from .invalidator import invalidate_availability_cache
from .availability import get_availability, get_day_slots, cached_availability

__all__ = [
    "BookingConfig",
    "get_booking_config",
    "business_today",
    "RecurrenceRules",
    "evaluate_day",
    "build_rules",
    "load_rules",
    "MaterializeResult",
    "materialize",
    "materialize_range",
    "ensure_horizon",
    "refresh_schedule",
    "check_horizon",
    "get_horizon_status",
    "AvailabilityRedisStore",
    "invalidate_availability_cache",
    "get_availability",
    "get_day_slots",
    "cached_availability",
]
