"""Booking endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from hostelhub.api.deps import get_current_actor, get_db, get_workflow, require_hostel_manager
from hostelhub.core.middleware import booking_limiter
from hostelhub.models.booking import Booking
from hostelhub.schemas.booking import (
    AllocationResponse,
    BookingCancelRequest,
    BookingCreate,
    BookingListResponse,
    BookingRejectRequest,
    BookingResponse,
    BookingTransferRequest,
)
from hostelhub.services.allocation_service import Allocation
from hostelhub.services.booking_workflow import BookingWorkflow

router = APIRouter()

Workflow = Annotated[BookingWorkflow, Depends(get_workflow)]
Actor = Annotated[UUID, Depends(get_current_actor)]
Session = Annotated[AsyncSession, Depends(get_db)]


@router.post(
    "/",
    response_model=BookingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(booking_limiter)],
)
async def submit_booking(
    booking_data: BookingCreate,
    actor_id: Actor,
    db: Session,
    workflow: Workflow,
) -> Booking:
    """Submit a booking request for a hostel."""
    return await workflow.submit(db, actor_id, booking_data.hostel_id, booking_data.details)


@router.get("/", response_model=BookingListResponse)
async def list_bookings(
    actor_id: Actor,
    db: Session,
    hostel_id: UUID | None = None,
    status_filter: str | None = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> BookingListResponse:
    """List the caller's bookings, or a hostel's bookings for its managers."""
    if hostel_id:
        await require_hostel_manager(hostel_id, actor_id, db)
        query = select(Booking).where(Booking.hostel_id == hostel_id)
    else:
        query = select(Booking).where(Booking.student_id == actor_id)

    if status_filter:
        query = query.where(Booking.status == status_filter)

    count_result = await db.execute(select(func.count()).select_from(query.subquery()))
    total = count_result.scalar() or 0

    query = query.order_by(Booking.created_at.desc())
    query = query.offset((page - 1) * page_size).limit(page_size)
    result = await db.execute(query)
    bookings = result.scalars().all()

    return BookingListResponse(
        bookings=[BookingResponse.model_validate(b) for b in bookings],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: UUID, actor_id: Actor, db: Session, workflow: Workflow) -> Booking:
    """Get booking details."""
    return await workflow.get_booking(db, booking_id, actor_id)


@router.get("/{booking_id}/allocation", response_model=AllocationResponse)
async def get_booking_allocation(
    booking_id: UUID, actor_id: Actor, db: Session, workflow: Workflow
) -> Allocation:
    """Room and bed held by a booking."""
    return await workflow.get_allocation(db, booking_id, actor_id)


@router.post("/{booking_id}/approve", response_model=BookingResponse)
async def approve_booking(booking_id: UUID, actor_id: Actor, db: Session, workflow: Workflow) -> Booking:
    """Approve a pending booking (hostel owner or staff)."""
    return await workflow.approve(db, booking_id, actor_id)


@router.post("/{booking_id}/reject", response_model=BookingResponse)
async def reject_booking(
    booking_id: UUID,
    reject_data: BookingRejectRequest,
    actor_id: Actor,
    db: Session,
    workflow: Workflow,
) -> Booking:
    """Reject a pending booking with a reason (hostel owner or staff)."""
    return await workflow.reject(db, booking_id, actor_id, reject_data.reason)


@router.post("/{booking_id}/confirm", response_model=BookingResponse)
async def confirm_booking(booking_id: UUID, actor_id: Actor, db: Session, workflow: Workflow) -> Booking:
    """Confirm an approved booking once its advance payment is complete."""
    return await workflow.confirm(db, booking_id, actor_id)


@router.post("/{booking_id}/allocate", response_model=BookingResponse)
async def allocate_booking(booking_id: UUID, actor_id: Actor, db: Session, workflow: Workflow) -> Booking:
    """Allocate a bed to an approved or confirmed booking (hostel owner or staff)."""
    return await workflow.allocate_manually(db, booking_id, actor_id)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    actor_id: Actor,
    db: Session,
    workflow: Workflow,
    cancel_data: Annotated[BookingCancelRequest | None, Body()] = None,
) -> Booking:
    """Cancel a booking, releasing its bed if one is held."""
    reason = cancel_data.reason if cancel_data else None
    return await workflow.cancel(db, booking_id, actor_id, reason)


@router.post("/{booking_id}/checkout", response_model=BookingResponse)
async def checkout_booking(booking_id: UUID, actor_id: Actor, db: Session, workflow: Workflow) -> Booking:
    """Check a confirmed booking out, freeing its bed."""
    return await workflow.checkout(db, booking_id, actor_id)


@router.post("/{booking_id}/transfer", response_model=BookingResponse)
async def transfer_booking(
    booking_id: UUID,
    transfer_data: BookingTransferRequest,
    actor_id: Actor,
    db: Session,
    workflow: Workflow,
) -> Booking:
    """Move a confirmed booking to another bed (hostel owner or staff)."""
    return await workflow.transfer_bed(
        db,
        booking_id,
        actor_id,
        to_bed_id=transfer_data.to_bed_id,
        floor_preference=transfer_data.floor_number,
        reason=transfer_data.reason,
    )
