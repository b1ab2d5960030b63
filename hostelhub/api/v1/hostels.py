"""Hostel inventory endpoints: rooms, availability and occupancy health."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from hostelhub.api.deps import (
    get_allocation_engine,
    get_db,
    require_hostel_manager,
    require_hostel_owner,
)
from hostelhub.core.exceptions import NotFoundError
from hostelhub.models.hostel import Hostel, Room
from hostelhub.schemas.hostel import (
    AvailabilityResponse,
    OccupancyHealthResponse,
    RecountResponse,
    RoomCreate,
    RoomResponse,
)
from hostelhub.services.allocation_service import AllocationEngine
from hostelhub.services.occupancy_health_service import occupancy_health_service

router = APIRouter()

Engine = Annotated[AllocationEngine, Depends(get_allocation_engine)]


@router.post("/{hostel_id}/rooms", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    hostel_id: UUID,
    room_data: RoomCreate,
    _: Annotated[UUID, Depends(require_hostel_owner)],
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Engine,
) -> Room:
    """Add a room and its beds to a hostel (owner only)."""
    return await engine.add_room(
        db,
        hostel_id,
        room_number=room_data.room_number,
        room_type=room_data.room_type.value,
        bed_count=room_data.bed_count,
        floor_number=room_data.floor_number,
        monthly_rent=room_data.monthly_rent,
    )


@router.get("/{hostel_id}/rooms", response_model=list[RoomResponse])
async def list_rooms(
    hostel_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
) -> list[Room]:
    """List a hostel's rooms with their beds."""
    hostel = await db.get(Hostel, hostel_id)
    if not hostel:
        raise NotFoundError("Hostel", str(hostel_id))

    result = await db.execute(
        select(Room)
        .where(Room.hostel_id == hostel_id)
        .options(selectinload(Room.beds))
        .order_by(Room.floor_number, Room.room_number)
    )
    return list(result.scalars().all())


@router.get("/{hostel_id}/availability", response_model=AvailabilityResponse)
async def get_availability(
    hostel_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Engine,
) -> dict:
    """Free and occupied beds, overall and by room type and floor."""
    return await engine.availability(db, hostel_id)


@router.get("/{hostel_id}/occupancy-health", response_model=OccupancyHealthResponse)
async def get_occupancy_health(
    hostel_id: UUID,
    _: Annotated[UUID, Depends(require_hostel_manager)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> dict:
    """Read-only consistency report for beds, rooms and bookings."""
    return await occupancy_health_service.run_all_checks(db, hostel_id)


@router.post("/{hostel_id}/recount", response_model=RecountResponse)
async def recount_occupancy(
    hostel_id: UUID,
    _: Annotated[UUID, Depends(require_hostel_owner)],
    db: Annotated[AsyncSession, Depends(get_db)],
    engine: Engine,
) -> RecountResponse:
    """Recompute room occupied counts from bed flags (owner only)."""
    corrected = await engine.recount(db, hostel_id)
    return RecountResponse(hostel_id=hostel_id, corrected=corrected)
