"""Celery background tasks for inventory maintenance."""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from uuid import UUID

from celery import shared_task
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hostelhub.config import settings
from hostelhub.core.locks import build_lock_provider
from hostelhub.database import build_engine, build_session_factory
from hostelhub.models.hostel import Hostel
from hostelhub.services.allocation_service import AllocationEngine
from hostelhub.services.occupancy_health_service import occupancy_health_service

logger = logging.getLogger(__name__)

T = TypeVar("T")


def run_with_session(job: Callable[[AsyncSession], Awaitable[T]]) -> T:
    """Run an async job on a fresh event loop with its own engine."""

    async def _run() -> T:
        engine = build_engine(settings.database_url)
        try:
            async with build_session_factory(engine)() as db:
                return await job(db)
        finally:
            await engine.dispose()

    return asyncio.run(_run())


def _allocation_engine() -> AllocationEngine:
    return AllocationEngine(
        build_lock_provider(settings),
        allow_room_type_fallback=settings.allocation_room_type_fallback,
    )


@shared_task(bind=True, max_retries=3)
def run_occupancy_health_check(self, hostel_id: str | None = None) -> dict[str, Any]:
    """Report bed/room/booking inconsistencies."""
    try:
        result = run_with_session(
            lambda db: occupancy_health_service.run_all_checks(db, UUID(hostel_id) if hostel_id else None)
        )
    except Exception as exc:
        raise self.retry(exc=exc, countdown=300)

    for check in result["checks"]:
        if check["status"] != "OK":
            logger.warning(f"Health check '{check['name']}': {check['status'].value} - {check['message']}")
    return {"status": result["status"].value, "counts": result["counts"]}


@shared_task(bind=True, max_retries=3)
def recount_hostel_occupancy(self, hostel_id: str) -> dict[str, Any]:
    """Repair room aggregate counts for one hostel."""
    try:
        corrected = run_with_session(lambda db: _allocation_engine().recount(db, UUID(hostel_id)))
    except Exception as exc:
        raise self.retry(exc=exc, countdown=60)
    return {"hostel_id": hostel_id, "corrected": len(corrected)}


@shared_task
def recount_all_hostels() -> dict[str, Any]:
    """Queue a recount for every active hostel."""

    async def _hostel_ids(db: AsyncSession) -> list[UUID]:
        result = await db.execute(select(Hostel.id).where(Hostel.is_active.is_(True)))
        return list(result.scalars().all())

    hostel_ids = run_with_session(_hostel_ids)
    for hostel_id in hostel_ids:
        recount_hostel_occupancy.delay(str(hostel_id))

    logger.info(f"Queued occupancy recount for {len(hostel_ids)} hostel(s)")
    return {"queued": len(hostel_ids)}
