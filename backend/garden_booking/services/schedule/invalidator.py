# backend/garden_booking/services/schedule/invalidator.py
"""
Cache invalidation for availability snapshots.

Triggers:
✓ Booking created / cancelled / rescheduled
✓ Schedule materialized (rule change, holiday change, horizon extension)
"""

from redis import Redis

from .redis_store import AvailabilityRedisStore


def invalidate_availability_cache(redis: Redis | None) -> int:
    """
    Invalidate all cached availability snapshots.

    Returns:
        Number of deleted cache keys
    """
    if redis is None:
        return 0
    return AvailabilityRedisStore(redis).delete_all()
