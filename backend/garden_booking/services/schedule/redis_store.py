# backend/garden_booking/services/schedule/redis_store.py
"""
Redis cache for the availability projection.

Key format: availability:{generation}:{from_date}
Value: JSON object {"YYYY-MM-DD": ["10:00 AM", ...]}, TTL from config.

Invalidation bumps availability:generation before deleting snapshots.
Readers take the generation before computing, so a snapshot computed
from pre-invalidation data lands under a generation nobody reads anymore.

Cache failures never break a read: on any Redis error the caller
falls back to computing from the database.
"""

import json
import logging
from datetime import date

from redis import Redis
from redis.exceptions import RedisError

from .config import BookingConfig, get_booking_config

logger = logging.getLogger(__name__)


class AvailabilityRedisStore:
    """Redis storage wrapper for availability snapshots."""

    KEY_PREFIX = "availability"
    GENERATION_KEY = f"{KEY_PREFIX}:generation"

    def __init__(self, redis: Redis, config: BookingConfig | None = None):
        self.redis = redis
        self.config = config or get_booking_config()

    def _key(self, generation: int, from_date: date) -> str:
        return f"{self.KEY_PREFIX}:{generation}:{from_date.isoformat()}"

    # ── Read ─────────────────────────────────────────────────────────────

    def generation(self) -> int | None:
        """Current cache generation (0 if never invalidated), None on Redis error."""
        try:
            raw = self.redis.get(self.GENERATION_KEY)
        except RedisError as e:
            logger.warning(f"Availability cache generation read failed: {e}")
            return None
        return int(raw) if raw is not None else 0

    def get(self, generation: int, from_date: date) -> dict[date, list[str]] | None:
        """Cached availability, or None on cache miss / Redis error."""
        try:
            raw = self.redis.get(self._key(generation, from_date))
        except RedisError as e:
            logger.warning(f"Availability cache read failed: {e}")
            return None
        if raw is None:
            return None

        if isinstance(raw, bytes):
            raw = raw.decode()
        data = json.loads(raw)
        return {date.fromisoformat(day): labels for day, labels in data.items()}

    # ── Write ────────────────────────────────────────────────────────────

    def store(
        self,
        generation: int,
        from_date: date,
        availability: dict[date, list[str]],
    ) -> None:
        payload = json.dumps({day.isoformat(): labels for day, labels in availability.items()})
        try:
            self.redis.setex(
                self._key(generation, from_date),
                self.config.availability_cache_ttl_seconds,
                payload,
            )
        except RedisError as e:
            logger.warning(f"Availability cache write failed: {e}")

    # ── Delete ───────────────────────────────────────────────────────────

    def delete_all(self) -> int:
        """
        Start a new generation, then drop every cached snapshot.
        Returns number of deleted keys.
        """
        try:
            self.redis.incr(self.GENERATION_KEY)
            keys = [
                key for key in self.redis.scan_iter(match=f"{self.KEY_PREFIX}:*")
                if _as_str(key) != self.GENERATION_KEY
            ]
            if not keys:
                return 0
            return self.redis.delete(*keys)
        except RedisError as e:
            logger.warning(f"Availability cache invalidation failed: {e}")
            return 0


def _as_str(key) -> str:
    return key.decode() if isinstance(key, bytes) else key
