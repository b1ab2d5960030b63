"""Booking workflow controller.

Owns booking status. Every transition runs under the booking's lock, checks
the actor and the current status, and persists through an optimistic version
check so a transition that loses a race surfaces as ``InvalidStateError``.
Transitions that touch beds run inside ``AllocationEngine.transaction`` so the
bed change and the status change commit together or not at all.

Notifications are sent only after commit and can never undo a transition.
"""

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from hostelhub.core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from hostelhub.core.locks import LockProvider, booking_lock_key, submission_lock_key
from hostelhub.domain.booking_state import (
    ACTIVE_STATUSES,
    ALLOCATABLE_STATUSES,
    BookingStatus,
    assert_booking_transition,
)
from hostelhub.domain.payment_state import COMPLETED_PAYMENT_STATUS
from hostelhub.domain.room_type import ROOM_TYPE_VALUES
from hostelhub.models.booking import Booking
from hostelhub.models.hostel import Bed, Hostel, HostelStaff, Room, utcnow
from hostelhub.schemas.booking import BookingDetails
from hostelhub.services.allocation_service import Allocation, AllocationEngine, InventoryTransaction
from hostelhub.services.audit_service import audit_service
from hostelhub.services.notification_service import NotificationService
from hostelhub.services.payment_status_service import PaymentStatusProvider
from hostelhub.utils.booking_number import generate_booking_number
from hostelhub.utils.validators import (
    is_blank,
    mask_sensitive_data,
    normalize_mobile,
    validate_email,
    validate_indian_mobile,
)

logger = logging.getLogger(__name__)

STUDENT = "student"
OWNER = "owner"
STAFF = "staff"


class BookingWorkflow:
    """Legal booking transitions and actor authorization."""

    def __init__(
        self,
        allocation: AllocationEngine,
        payment_status: PaymentStatusProvider,
        notifier: NotificationService,
        locks: LockProvider,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.allocation = allocation
        self.payment_status = payment_status
        self.notifier = notifier
        self._locks = locks
        self._clock = clock

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    @asynccontextmanager
    async def booking_lock(self, booking_id: UUID) -> AsyncIterator[None]:
        async with self._locks.lock(booking_lock_key(booking_id)):
            yield

    async def _load(self, db: AsyncSession, booking_id: UUID) -> Booking:
        booking = await db.get(Booking, booking_id, populate_existing=True)
        if booking is None:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def _get_hostel(self, db: AsyncSession, hostel_id: UUID) -> Hostel:
        hostel = await db.get(Hostel, hostel_id)
        if hostel is None:
            raise NotFoundError("Hostel", str(hostel_id))
        return hostel

    async def _manager_role(self, db: AsyncSession, hostel: Hostel, actor_id: UUID) -> str | None:
        if hostel.owner_id == actor_id:
            return OWNER
        staff_id = await db.scalar(
            select(HostelStaff.id).where(
                HostelStaff.hostel_id == hostel.id,
                HostelStaff.user_id == actor_id,
                HostelStaff.can_manage_bookings.is_(True),
            )
        )
        return STAFF if staff_id is not None else None

    async def _require_manager(self, db: AsyncSession, booking: Booking, actor_id: UUID, action: str) -> str:
        hostel = await self._get_hostel(db, booking.hostel_id)
        role = await self._manager_role(db, hostel, actor_id)
        if role is None:
            raise AuthorizationError(f"Only the hostel owner or its staff can {action} this booking")
        return role

    async def _party_role(self, db: AsyncSession, booking: Booking, actor_id: UUID) -> str:
        """Role of an actor who is a party to the booking (student, owner or staff)."""
        if booking.student_id == actor_id:
            return STUDENT
        hostel = await self._get_hostel(db, booking.hostel_id)
        role = await self._manager_role(db, hostel, actor_id)
        if role is None:
            raise AuthorizationError("You don't have permission to act on this booking")
        return role

    async def _require_payment(self, booking: Booking) -> None:
        if not await self.payment_status.is_complete(booking.id):
            raise PreconditionError("Advance payment has not been completed for this booking")

    async def _persist(self, db: AsyncSession, booking_id: UUID) -> None:
        try:
            await db.flush()
        except StaleDataError as exc:
            await db.rollback()
            raise InvalidStateError(
                f"Booking {booking_id} was changed by another request, reload and retry"
            ) from exc

    async def _notify(self, send: Callable[[], Awaitable[bool]]) -> None:
        try:
            await send()
        except Exception:
            logger.exception("Notification dispatch failed after a committed transition")

    async def _transition(
        self,
        db: AsyncSession,
        booking: Booking,
        target: BookingStatus,
        actor_id: UUID | None,
        **details,
    ) -> str:
        """Move a loaded booking to ``target`` and audit it. Returns the old status."""
        old_status = booking.status
        assert_booking_transition(old_status, target)
        booking.status = target.value
        await audit_service.log_booking_transition(
            db, actor_id, booking.id, old_status, target.value, **details
        )
        logger.info(f"Booking {booking.booking_number} ({booking.id}) {old_status} → {target.value} by {actor_id}")
        return old_status

    def _bind(self, booking: Booking, allocation: Allocation) -> None:
        booking.room_id = allocation.room_id
        booking.bed_id = allocation.bed_id

    async def _reserve_for(self, inventory: InventoryTransaction, booking: Booking) -> Allocation:
        allocation = await inventory.reserve(booking.room_type_preference, booking.id)
        self._bind(booking, allocation)
        return allocation

    def validate_details(self, details: BookingDetails) -> list[dict[str, str]]:
        """Business validation of submitted booking details."""
        errors: list[dict[str, str]] = []
        for field in ("full_name", "mobile", "email", "room_type_preference"):
            if is_blank(getattr(details, field)):
                errors.append({"field": field, "message": f"{field} is required"})

        if not is_blank(details.room_type_preference) and details.room_type_preference not in ROOM_TYPE_VALUES:
            errors.append(
                {
                    "field": "room_type_preference",
                    "message": f"room_type_preference must be one of {', '.join(sorted(ROOM_TYPE_VALUES))}",
                }
            )
        if not is_blank(details.email) and not validate_email(details.email):
            errors.append({"field": "email", "message": "email is not a valid address"})
        if not is_blank(details.mobile) and not validate_indian_mobile(details.mobile):
            errors.append({"field": "mobile", "message": "mobile is not a valid mobile number"})
        if details.occupants < 1:
            errors.append({"field": "occupants", "message": "occupants must be at least 1"})

        today = self._clock().date()
        if details.check_in < today:
            errors.append({"field": "check_in", "message": "check_in cannot be in the past"})
        if details.check_out <= details.check_in:
            errors.append({"field": "check_out", "message": "check_out must be after check_in"})
        return errors

    # -------------------------------------------------------------------------
    # Operations
    # -------------------------------------------------------------------------

    async def submit(
        self,
        db: AsyncSession,
        student_id: UUID,
        hostel_id: UUID,
        details: BookingDetails,
    ) -> Booking:
        """Create a pending booking. No inventory is touched."""
        errors = self.validate_details(details)
        if errors:
            raise ValidationError("; ".join(e["message"] for e in errors), errors=errors)

        async with self._locks.lock(submission_lock_key(student_id, hostel_id)):
            hostel = await self._get_hostel(db, hostel_id)
            if not hostel.is_active:
                raise ValidationError("This hostel is not accepting bookings")

            existing = await db.scalar(
                select(Booking.id).where(
                    Booking.student_id == student_id,
                    Booking.hostel_id == hostel_id,
                    Booking.status.in_(sorted(ACTIVE_STATUSES)),
                )
            )
            if existing is not None:
                raise ValidationError("You already have an active booking for this hostel")

            booking = Booking(
                booking_number=await generate_booking_number(db),
                student_id=student_id,
                hostel_id=hostel_id,
                full_name=details.full_name.strip(),
                mobile=normalize_mobile(details.mobile.strip()),
                email=details.email.strip().lower(),
                room_type_preference=details.room_type_preference,
                check_in=details.check_in,
                check_out=details.check_out,
                occupants=details.occupants,
                notes=details.notes,
                status=BookingStatus.PENDING.value,
                payment_status="pending",
            )
            db.add(booking)
            await db.flush()
            await audit_service.log_booking_transition(
                db, student_id, booking.id, None, BookingStatus.PENDING.value
            )
            await db.commit()

        logger.info(
            f"Booking {booking.booking_number} submitted by student {student_id} for hostel {hostel_id} "
            f"(mobile {mask_sensitive_data(booking.mobile)})"
        )
        await self._notify(
            lambda: self.notifier.notify_booking_request(
                hostel.owner_id, booking.id, booking.full_name, booking.booking_number
            )
        )
        return booking

    async def approve(self, db: AsyncSession, booking_id: UUID, owner_id: UUID) -> Booking:
        """pending → approved, by the hostel owner or its staff."""
        async with self.booking_lock(booking_id):
            booking = await self._load(db, booking_id)
            await self._require_manager(db, booking, owner_id, "approve")
            hostel = await self._get_hostel(db, booking.hostel_id)

            await self._transition(db, booking, BookingStatus.APPROVED, owner_id)
            booking.approved_at = self._clock()
            booking.approved_by = owner_id
            booking.advance_amount = hostel.advance_payment_amount
            await self._persist(db, booking_id)
            await db.commit()

        await self._notify(
            lambda: self.notifier.notify_booking_approved(booking.student_id, booking.id, booking.advance_amount)
        )
        return booking

    async def reject(self, db: AsyncSession, booking_id: UUID, owner_id: UUID, reason: str) -> Booking:
        """pending → rejected (terminal) with a stored reason."""
        if is_blank(reason):
            raise ValidationError("A rejection reason is required", errors=[{"field": "reason", "message": "reason is required"}])

        async with self.booking_lock(booking_id):
            booking = await self._load(db, booking_id)
            await self._require_manager(db, booking, owner_id, "reject")

            await self._transition(db, booking, BookingStatus.REJECTED, owner_id, reason=reason.strip())
            booking.rejection_reason = reason.strip()
            booking.rejected_at = self._clock()
            booking.rejected_by = owner_id
            await self._persist(db, booking_id)
            await db.commit()

        await self._notify(
            lambda: self.notifier.notify_booking_rejected(booking.student_id, booking.id, booking.rejection_reason)
        )
        return booking

    async def confirm(self, db: AsyncSession, booking_id: UUID, actor_id: UUID | None = None) -> Booking:
        """approved → confirmed once the advance payment is complete.

        Reserves a bed if the booking has none. If no bed is free the booking
        stays approved and ``NoCapacityError`` propagates; the call can be
        retried later.
        """
        allocation: Allocation | None = None
        async with self.booking_lock(booking_id):
            booking = await self._load(db, booking_id)
            if actor_id is not None:
                await self._party_role(db, booking, actor_id)
            assert_booking_transition(booking.status, BookingStatus.CONFIRMED)
            await self._require_payment(booking)

            async with self.allocation.transaction(db, booking.hostel_id) as inventory:
                booking = await self._load(db, booking_id)
                assert_booking_transition(booking.status, BookingStatus.CONFIRMED)
                if booking.bed_id is None:
                    allocation = await self._reserve_for(inventory, booking)

                await self._transition(
                    db,
                    booking,
                    BookingStatus.CONFIRMED,
                    actor_id,
                    bed_id=booking.bed_id,
                    room_id=booking.room_id,
                )
                booking.confirmed_at = self._clock()
                booking.payment_status = COMPLETED_PAYMENT_STATUS
                await self._persist(db, booking_id)

        if allocation is not None:
            await self._notify(
                lambda: self.notifier.notify_room_allocated(
                    booking.student_id, booking.id, allocation.room_number, allocation.bed_number, confirmed=True
                )
            )
        return booking

    async def allocate_manually(self, db: AsyncSession, booking_id: UUID, owner_id: UUID) -> Booking:
        """Bind a bed to an approved or confirmed booking on the owner's request.

        Returns the existing allocation untouched if a bed is already bound.
        An approved booking is confirmed in the same transaction, since a bed
        is only ever held by a confirmed booking.
        """
        allocation: Allocation | None = None
        async with self.booking_lock(booking_id):
            booking = await self._load(db, booking_id)
            await self._require_manager(db, booking, owner_id, "allocate a bed for")
            if booking.status not in ALLOCATABLE_STATUSES:
                raise InvalidStateError(
                    f"Cannot allocate a bed for a {booking.status} booking",
                    current_status=booking.status,
                )
            await self._require_payment(booking)
            if booking.bed_id is not None:
                logger.info(f"Booking {booking.id} already holds bed {booking.bed_id}, returning existing allocation")
                return booking

            async with self.allocation.transaction(db, booking.hostel_id) as inventory:
                booking = await self._load(db, booking_id)
                if booking.status not in ALLOCATABLE_STATUSES:
                    raise InvalidStateError(
                        f"Cannot allocate a bed for a {booking.status} booking",
                        current_status=booking.status,
                    )
                if booking.bed_id is not None:
                    return booking

                allocation = await self._reserve_for(inventory, booking)
                await audit_service.log_action(
                    db,
                    owner_id,
                    "booking_allocate",
                    "booking",
                    booking.id,
                    new_values={"room_id": str(allocation.room_id), "bed_id": str(allocation.bed_id)},
                )
                if booking.status == BookingStatus.APPROVED.value:
                    await self._transition(
                        db,
                        booking,
                        BookingStatus.CONFIRMED,
                        owner_id,
                        bed_id=allocation.bed_id,
                        room_id=allocation.room_id,
                    )
                    booking.confirmed_at = self._clock()
                booking.payment_status = COMPLETED_PAYMENT_STATUS
                await self._persist(db, booking_id)

        await self._notify(
            lambda: self.notifier.notify_room_allocated(
                booking.student_id, booking.id, allocation.room_number, allocation.bed_number
            )
        )
        return booking

    async def transfer_bed(
        self,
        db: AsyncSession,
        booking_id: UUID,
        owner_id: UUID,
        to_bed_id: UUID | None = None,
        floor_preference: int | None = None,
        reason: str | None = None,
    ) -> Booking:
        """Move a confirmed booking to another bed in the same hostel.

        Without ``to_bed_id`` the first free bed of the booking's room type
        (on ``floor_preference`` if given) is taken. The booking keeps its
        status; the old bed is freed only if the new one is taken.
        """
        async with self.booking_lock(booking_id):
            booking = await self._load(db, booking_id)
            await self._require_manager(db, booking, owner_id, "transfer")
            self._require_transferable(booking)

            async with self.allocation.transaction(db, booking.hostel_id) as inventory:
                booking = await self._load(db, booking_id)
                self._require_transferable(booking)
                from_bed_id, from_room_id = booking.bed_id, booking.room_id

                allocation = await inventory.transfer(
                    booking.id,
                    from_bed_id,
                    to_bed_id,
                    room_type_preference=booking.room_type_preference,
                    floor_preference=floor_preference,
                )
                self._bind(booking, allocation)
                await audit_service.log_action(
                    db,
                    owner_id,
                    "booking_transfer",
                    "booking",
                    booking.id,
                    old_values={"room_id": str(from_room_id), "bed_id": str(from_bed_id)},
                    new_values={
                        "room_id": str(allocation.room_id),
                        "bed_id": str(allocation.bed_id),
                        "reason": reason.strip() if reason and reason.strip() else None,
                    },
                )
                await self._persist(db, booking_id)

        logger.info(
            f"Booking {booking.booking_number} ({booking.id}) moved to bed "
            f"{allocation.room_number}/{allocation.bed_number} by {owner_id}"
        )
        await self._notify(
            lambda: self.notifier.notify_bed_transferred(
                booking.student_id, booking.id, allocation.room_number, allocation.bed_number
            )
        )
        return booking

    def _require_transferable(self, booking: Booking) -> None:
        if booking.status != BookingStatus.CONFIRMED.value:
            raise InvalidStateError(
                f"Only confirmed bookings can change beds, this one is {booking.status}",
                current_status=booking.status,
            )
        if booking.bed_id is None:
            raise PreconditionError("Booking does not hold a bed to transfer from")

    async def cancel(
        self,
        db: AsyncSession,
        booking_id: UUID,
        actor_id: UUID,
        reason: str | None = None,
    ) -> Booking:
        """pending/approved/confirmed → cancelled (terminal).

        A held bed is released first, in the same transaction; if the release
        fails the cancellation fails with it.
        """
        async with self.booking_lock(booking_id):
            booking = await self._load(db, booking_id)
            role = await self._party_role(db, booking, actor_id)
            assert_booking_transition(booking.status, BookingStatus.CANCELLED)

            if booking.bed_id is not None:
                async with self.allocation.transaction(db, booking.hostel_id) as inventory:
                    booking = await self._load(db, booking_id)
                    await self._terminate(db, inventory, booking, BookingStatus.CANCELLED, actor_id)
                    self._mark_cancelled(booking, role, reason)
                    await self._persist(db, booking_id)
            else:
                await self._terminate(db, None, booking, BookingStatus.CANCELLED, actor_id)
                self._mark_cancelled(booking, role, reason)
                await self._persist(db, booking_id)
                await db.commit()

        if role == STUDENT:
            hostel = await self._get_hostel(db, booking.hostel_id)
            recipient = hostel.owner_id
        else:
            recipient = booking.student_id
        await self._notify(lambda: self.notifier.notify_booking_cancelled(recipient, booking.id, role))
        return booking

    async def checkout(self, db: AsyncSession, booking_id: UUID, actor_id: UUID) -> Booking:
        """confirmed → completed, releasing the bed."""
        async with self.booking_lock(booking_id):
            booking = await self._load(db, booking_id)
            await self._party_role(db, booking, actor_id)
            assert_booking_transition(booking.status, BookingStatus.COMPLETED)

            async with self.allocation.transaction(db, booking.hostel_id) as inventory:
                booking = await self._load(db, booking_id)
                await self._terminate(db, inventory, booking, BookingStatus.COMPLETED, actor_id)
                booking.checked_out_at = self._clock()
                await self._persist(db, booking_id)

        await self._notify(lambda: self.notifier.notify_checked_out(booking.student_id, booking.id))
        return booking

    async def _terminate(
        self,
        db: AsyncSession,
        inventory: InventoryTransaction | None,
        booking: Booking,
        target: BookingStatus,
        actor_id: UUID,
    ) -> None:
        """Release the held bed, then move the booking to a terminal status."""
        assert_booking_transition(booking.status, target)
        released = False
        if inventory is not None and booking.bed_id is not None:
            released = await inventory.release(booking.bed_id)
        await self._transition(db, booking, target, actor_id, released_bed_id=booking.bed_id if released else None)

    def _mark_cancelled(self, booking: Booking, role: str, reason: str | None) -> None:
        booking.cancelled_at = self._clock()
        booking.cancelled_by = role
        booking.cancellation_reason = reason.strip() if reason and reason.strip() else None

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_booking(self, db: AsyncSession, booking_id: UUID, actor_id: UUID) -> Booking:
        """Fetch a booking visible to the actor."""
        booking = await self._load(db, booking_id)
        await self._party_role(db, booking, actor_id)
        return booking

    async def get_allocation(self, db: AsyncSession, booking_id: UUID, actor_id: UUID) -> Allocation:
        """Room and bed bound to a booking."""
        booking = await self.get_booking(db, booking_id, actor_id)
        if booking.bed_id is None:
            raise NotFoundError("Allocation for booking", str(booking_id))

        row = (
            await db.execute(
                select(Bed, Room).join(Room, Bed.room_id == Room.id).where(Bed.id == booking.bed_id)
            )
        ).one()
        bed, room = row
        return Allocation(
            room_id=room.id,
            bed_id=bed.id,
            room_number=room.room_number,
            bed_number=bed.bed_number,
            floor_number=room.floor_number,
            room_type=room.room_type,
        )
