"""Hostel inventory schemas."""

from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from hostelhub.domain.room_type import RoomType


class RoomCreate(BaseModel):
    """Schema for adding a room with its beds."""

    room_number: str = Field(min_length=1, max_length=20)
    floor_number: int = Field(default=0, ge=0, le=200)
    room_type: RoomType
    bed_count: int = Field(ge=1, le=50)
    monthly_rent: int = Field(default=0, ge=0)


class BedResponse(BaseModel):
    """Schema for bed response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    bed_number: str
    is_occupied: bool
    booking_id: UUID | None
    is_active: bool


class RoomResponse(BaseModel):
    """Schema for room response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    hostel_id: UUID
    room_number: str
    floor_number: int
    room_type: str
    monthly_rent: int
    occupied_beds: int
    is_active: bool
    beds: list[BedResponse]


class AvailabilityBucket(BaseModel):
    total_beds: int
    occupied_beds: int
    available_beds: int


class FloorAvailability(AvailabilityBucket):
    floor_number: int


class AvailabilityResponse(BaseModel):
    """Bed availability for a hostel."""

    hostel_id: UUID
    total_rooms: int
    full_rooms: int
    available_rooms: int
    total_beds: int
    occupied_beds: int
    available_beds: int
    occupancy_rate: float
    by_room_type: dict[str, AvailabilityBucket]
    by_floor: list[FloorAvailability]


class RoomDrift(BaseModel):
    room_id: UUID
    room_number: str
    recorded: int
    actual: int


class RecountResponse(BaseModel):
    """Rooms whose aggregate count was corrected."""

    hostel_id: UUID
    corrected: list[RoomDrift]


class HealthCheckResult(BaseModel):
    name: str
    status: str
    message: str
    details: dict


class OccupancyHealthResponse(BaseModel):
    """Result of an occupancy health run."""

    status: str
    checks: list[HealthCheckResult]
    counts: dict[str, int]
    timestamp: str
