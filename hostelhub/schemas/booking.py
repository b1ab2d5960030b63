"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class BookingDetails(BaseModel):
    """Details a student submits with a booking request.

    Business rules (dates, blank fields, room types) are enforced by the
    booking workflow so that they raise the same errors for every caller.
    """

    full_name: str = Field(max_length=200)
    mobile: str = Field(max_length=20)
    email: str = Field(max_length=255)
    room_type_preference: str = Field(max_length=20)
    check_in: date
    check_out: date
    occupants: int = 1
    notes: str | None = Field(None, max_length=1000)


class BookingCreate(BaseModel):
    """Schema for submitting a booking."""

    hostel_id: UUID
    details: BookingDetails


class BookingRejectRequest(BaseModel):
    """Schema for rejecting a booking."""

    reason: str = Field(max_length=1000)


class BookingCancelRequest(BaseModel):
    """Schema for cancelling a booking."""

    reason: str | None = Field(None, max_length=1000)


class BookingTransferRequest(BaseModel):
    """Schema for moving a confirmed booking to another bed."""

    to_bed_id: UUID | None = None
    floor_number: int | None = Field(None, ge=0, le=200)
    reason: str | None = Field(None, max_length=1000)


class AllocationResponse(BaseModel):
    """Room and bed bound to a booking."""

    model_config = ConfigDict(from_attributes=True)

    room_id: UUID
    bed_id: UUID
    room_number: str
    bed_number: str
    floor_number: int
    room_type: str


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_number: str
    student_id: UUID
    hostel_id: UUID

    # Contact
    full_name: str
    mobile: str
    email: str

    # Request
    room_type_preference: str
    check_in: date
    check_out: date
    nights: int
    occupants: int
    notes: str | None

    # Status
    status: str
    rejection_reason: str | None
    cancellation_reason: str | None
    cancelled_by: str | None

    # Allocation
    room_id: UUID | None
    bed_id: UUID | None

    # Advance payment
    advance_amount: int
    payment_status: str

    # Timestamps
    created_at: datetime
    approved_at: datetime | None
    rejected_at: datetime | None
    confirmed_at: datetime | None
    cancelled_at: datetime | None
    checked_out_at: datetime | None
    updated_at: datetime


class BookingListResponse(BaseModel):
    """Schema for paginated booking list."""

    bookings: list[BookingResponse]
    total: int
    page: int
    page_size: int
