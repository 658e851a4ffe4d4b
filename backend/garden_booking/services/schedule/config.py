# backend/garden_booking/services/schedule/config.py
"""
Booking configuration for schedule materialization and the ledger.
"""

from dataclasses import dataclass
from datetime import date, datetime
from functools import lru_cache
from zoneinfo import ZoneInfo

from ...config import settings


@dataclass(frozen=True)
class BookingConfig:
    """
    Configuration for the schedule/booking engine.

    Attributes:
        horizon_min_days: Extend when fewer days than this remain materialized
        horizon_target_days: How far ahead an extension reaches
        horizon_batch_days: Days materialized (and committed) per batch
        lock_timeout_seconds: Max wait for a slot lock before SlotBusy
        availability_cache_ttl_seconds: Redis TTL for availability projection
        max_units_per_booking: Upper bound on units in a single booking
        timezone: Business timezone used to resolve "today"
    """
    horizon_min_days: int = 365
    horizon_target_days: int = 400
    horizon_batch_days: int = 31
    lock_timeout_seconds: float = 5.0
    availability_cache_ttl_seconds: int = 60
    max_units_per_booking: int = 20
    timezone: str = "America/Edmonton"

    def __post_init__(self):
        """Validate configuration."""
        if self.horizon_target_days <= self.horizon_min_days:
            raise ValueError(
                f"horizon_target_days ({self.horizon_target_days}) must exceed "
                f"horizon_min_days ({self.horizon_min_days})"
            )
        if self.horizon_batch_days < 1:
            raise ValueError(f"horizon_batch_days must be positive, got {self.horizon_batch_days}")

    @property
    def lock_timeout_ms(self) -> int:
        return int(self.lock_timeout_seconds * 1000)

    def now(self) -> datetime:
        return datetime.now(ZoneInfo(self.timezone))

    def today(self) -> date:
        """Calendar date in the business timezone (resolve once per request)."""
        return self.now().date()


@lru_cache
def get_booking_config() -> BookingConfig:
    """Get booking configuration (singleton), built from Settings."""
    return BookingConfig(
        horizon_min_days=settings.horizon_min_days,
        horizon_target_days=settings.horizon_target_days,
        horizon_batch_days=settings.horizon_batch_days,
        lock_timeout_seconds=settings.slot_lock_timeout_seconds,
        availability_cache_ttl_seconds=settings.availability_cache_ttl_seconds,
        max_units_per_booking=settings.max_units_per_booking,
        timezone=settings.business_timezone,
    )


def business_today() -> date:
    return get_booking_config().today()
