"""
Schedule horizon checker.

Periodically makes sure at least `horizon_min_days` of schedule are
materialized ahead of today, extending to `horizon_target_days` when short.
Safety net for the admin paths, which refresh the horizon themselves.

Skips quietly (WARNING) while the schedule rules are not configured.

Runs as an asyncio task in backend lifespan.
Uses synchronous DB and Redis (via asyncio.to_thread).
"""

import asyncio
import logging

from ..database import SessionLocal
from ..redis_client import redis_client
from .errors import RulesNotConfigured
from .schedule import business_today, check_horizon, invalidate_availability_cache

logger = logging.getLogger(__name__)


async def horizon_checker_loop(interval_seconds: float) -> None:
    """Check the horizon now, then every `interval_seconds`."""
    logger.info("horizon_checker_loop started")

    try:
        while True:
            try:
                await asyncio.to_thread(run_horizon_check)
            except asyncio.CancelledError:
                logger.info("horizon_checker_loop cancelled")
                raise
            except Exception:
                logger.exception("horizon_checker_loop error")

            await asyncio.sleep(interval_seconds)
    except asyncio.CancelledError:
        pass


def run_horizon_check() -> None:
    """One horizon check (synchronous)."""
    db = SessionLocal()
    try:
        try:
            result = check_horizon(db, business_today())
        except RulesNotConfigured as e:
            logger.warning(f"Horizon check skipped: {e.message}")
            return

        if result.extended:
            invalidate_availability_cache(redis_client)
            logger.info(
                f"Horizon check: added {result.days_added} days, "
                f"{result.days_remaining} days remaining"
            )
    finally:
        db.close()
