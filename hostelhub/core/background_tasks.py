"""In-process scheduler for periodic occupancy health checks."""

import asyncio
import logging
from datetime import UTC, datetime

from hostelhub.config import settings
from hostelhub.database import get_db_context
from hostelhub.services.occupancy_health_service import HealthStatus, occupancy_health_service

logger = logging.getLogger(__name__)

# Flag to stop the background task
_stop_health_check = False


async def run_occupancy_health_check(trigger: str = "scheduled") -> dict | None:
    """Run the occupancy health check and log what it finds."""
    started_at = datetime.now(UTC)
    logger.info(f"Starting occupancy health check (trigger: {trigger})")

    try:
        async with get_db_context() as db:
            result = await occupancy_health_service.run_all_checks(db)
    except Exception as e:
        logger.error(f"Occupancy health check failed: {e}")
        return None

    duration_ms = int((datetime.now(UTC) - started_at).total_seconds() * 1000)
    logger.info(
        f"Occupancy health check completed: status={result['status'].value}, "
        f"duration={duration_ms}ms, checks={len(result['checks'])}"
    )
    for check in result["checks"]:
        if check["status"] != HealthStatus.OK:
            logger.warning(f"Health check '{check['name']}': {check['status'].value} - {check['message']}")

    return result


async def start_health_check_scheduler() -> None:
    """Run the health check every ``occupancy_health_interval_minutes``."""
    global _stop_health_check
    _stop_health_check = False

    logger.info("Occupancy health check scheduler started")

    while not _stop_health_check:
        await run_occupancy_health_check(trigger="scheduled")

        # Check the stop flag every minute
        for _ in range(settings.occupancy_health_interval_minutes):
            if _stop_health_check:
                break
            await asyncio.sleep(60)

    logger.info("Occupancy health check scheduler stopped")


def stop_health_check_scheduler() -> None:
    """Signal the health check scheduler to stop."""
    global _stop_health_check
    _stop_health_check = True
