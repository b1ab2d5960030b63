"""Advance payment endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hostelhub.api.deps import get_current_actor, get_db, get_workflow, require_hostel_manager
from hostelhub.core.exceptions import AuthorizationError, InvalidStateError, NotFoundError, ValidationError
from hostelhub.core.middleware import payment_limiter
from hostelhub.domain.booking_state import TERMINAL_STATUSES, BookingStatus
from hostelhub.domain.payment_state import assert_payment_transition
from hostelhub.models.booking import Booking
from hostelhub.models.hostel import Hostel, utcnow
from hostelhub.models.payment import AdvancePayment
from hostelhub.schemas.payment import AdvancePaymentCreate, AdvancePaymentFail, AdvancePaymentResponse
from hostelhub.services.audit_service import audit_service
from hostelhub.services.booking_workflow import BookingWorkflow
from hostelhub.utils.booking_number import generate_receipt_number

router = APIRouter()

Workflow = Annotated[BookingWorkflow, Depends(get_workflow)]
Actor = Annotated[UUID, Depends(get_current_actor)]
Session = Annotated[AsyncSession, Depends(get_db)]


async def _get_payment(db: AsyncSession, payment_id: UUID) -> AdvancePayment:
    payment = await db.get(AdvancePayment, payment_id, populate_existing=True)
    if not payment:
        raise NotFoundError("Payment", str(payment_id))
    return payment


async def _set_payment_status(
    db: AsyncSession,
    workflow: BookingWorkflow,
    payment_id: UUID,
    actor_id: UUID,
    target: str,
    failure_reason: str | None = None,
) -> AdvancePayment:
    """Move a payment to ``target`` and refresh the booking's payment snapshot."""
    payment = await _get_payment(db, payment_id)
    booking = await db.get(Booking, payment.booking_id)
    await require_hostel_manager(booking.hostel_id, actor_id, db)

    async with workflow.booking_lock(booking.id):
        payment = await _get_payment(db, payment_id)
        booking = await db.get(Booking, payment.booking_id, populate_existing=True)
        if target == "completed" and booking.status in TERMINAL_STATUSES:
            raise InvalidStateError(
                f"Cannot mark a payment paid for a {booking.status} booking",
                current_status=booking.status,
            )
        old_status = payment.status
        assert_payment_transition(old_status, target)

        payment.status = target
        if target == "completed":
            payment.completed_at = utcnow()
            payment.verified_by = actor_id
        if failure_reason:
            payment.failure_reason = failure_reason
        booking.payment_status = target

        await audit_service.log_payment_action(
            db, actor_id, f"advance_payment_{target}", payment.id, old_status, target, payment.amount
        )
        await db.commit()

    return payment


@router.post(
    "/advance",
    response_model=AdvancePaymentResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(payment_limiter)],
)
async def initiate_advance_payment(
    payment_data: AdvancePaymentCreate,
    actor_id: Actor,
    db: Session,
) -> AdvancePayment:
    """Record an advance payment for an approved booking (student only)."""
    booking = await db.get(Booking, payment_data.booking_id)
    if not booking:
        raise NotFoundError("Booking", str(payment_data.booking_id))

    if booking.student_id != actor_id:
        raise AuthorizationError("You can only pay for your own bookings")
    if booking.status != BookingStatus.APPROVED.value:
        raise ValidationError(f"Cannot pay the advance for a {booking.status} booking")

    existing = await db.execute(
        select(AdvancePayment.id).where(
            AdvancePayment.booking_id == booking.id,
            AdvancePayment.status.in_(["pending", "completed"]),
        )
    )
    if existing.first() is not None:
        raise ValidationError("An advance payment already exists for this booking")

    hostel = await db.get(Hostel, booking.hostel_id)
    payment = AdvancePayment(
        booking_id=booking.id,
        student_id=actor_id,
        amount=booking.advance_amount,
        currency=hostel.currency,
        payment_method=payment_data.payment_method,
        transaction_reference=payment_data.transaction_reference or generate_receipt_number(),
        status="pending",
    )
    db.add(payment)
    await db.flush()
    await audit_service.log_action(
        db,
        actor_id,
        "advance_payment_initiated",
        "advance_payment",
        payment.id,
        new_values={"status": "pending", "amount": payment.amount, "booking_id": str(booking.id)},
    )
    await db.commit()
    return payment


@router.get("/booking/{booking_id}", response_model=list[AdvancePaymentResponse])
async def list_booking_payments(
    booking_id: UUID,
    actor_id: Actor,
    db: Session,
    workflow: Workflow,
) -> list[AdvancePayment]:
    """Advance payments recorded for a booking."""
    await workflow.get_booking(db, booking_id, actor_id)
    result = await db.execute(
        select(AdvancePayment)
        .where(AdvancePayment.booking_id == booking_id)
        .order_by(AdvancePayment.initiated_at.desc())
    )
    return list(result.scalars().all())


@router.post("/{payment_id}/mark-paid", response_model=AdvancePaymentResponse)
async def mark_payment_paid(payment_id: UUID, actor_id: Actor, db: Session, workflow: Workflow) -> AdvancePayment:
    """Mark an advance payment completed (hostel owner or staff)."""
    return await _set_payment_status(db, workflow, payment_id, actor_id, "completed")


@router.post("/{payment_id}/mark-failed", response_model=AdvancePaymentResponse)
async def mark_payment_failed(
    payment_id: UUID,
    fail_data: AdvancePaymentFail,
    actor_id: Actor,
    db: Session,
    workflow: Workflow,
) -> AdvancePayment:
    """Mark an advance payment failed (hostel owner or staff)."""
    return await _set_payment_status(db, workflow, payment_id, actor_id, "failed", fail_data.reason)


@router.post("/{payment_id}/refund", response_model=AdvancePaymentResponse)
async def refund_payment(payment_id: UUID, actor_id: Actor, db: Session, workflow: Workflow) -> AdvancePayment:
    """Mark a completed advance refunded once its booking is cancelled (hostel owner or staff)."""
    payment = await _get_payment(db, payment_id)
    booking = await db.get(Booking, payment.booking_id)
    if booking.status != BookingStatus.CANCELLED.value:
        raise ValidationError("Only advances of cancelled bookings can be refunded")
    return await _set_payment_status(db, workflow, payment_id, actor_id, "refunded")
