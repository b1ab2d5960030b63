"""Pydantic schemas for API validation."""

from hostelhub.schemas.booking import (
    AllocationResponse,
    BookingCancelRequest,
    BookingCreate,
    BookingDetails,
    BookingListResponse,
    BookingRejectRequest,
    BookingResponse,
    BookingTransferRequest,
)
from hostelhub.schemas.hostel import (
    AvailabilityResponse,
    OccupancyHealthResponse,
    RecountResponse,
    RoomCreate,
    RoomResponse,
)
from hostelhub.schemas.payment import (
    AdvancePaymentCreate,
    AdvancePaymentFail,
    AdvancePaymentResponse,
)

__all__ = [
    # Booking
    "BookingDetails",
    "BookingCreate",
    "BookingRejectRequest",
    "BookingCancelRequest",
    "BookingTransferRequest",
    "BookingResponse",
    "BookingListResponse",
    "AllocationResponse",
    # Hostel
    "RoomCreate",
    "RoomResponse",
    "AvailabilityResponse",
    "RecountResponse",
    "OccupancyHealthResponse",
    # Payment
    "AdvancePaymentCreate",
    "AdvancePaymentFail",
    "AdvancePaymentResponse",
]
