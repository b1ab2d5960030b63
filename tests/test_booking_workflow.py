import asyncio
from datetime import date, timedelta
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from hostelhub.core.exceptions import (
    AuthorizationError,
    InvalidStateError,
    NoCapacityError,
    NotFoundError,
    PreconditionError,
    ValidationError,
)
from hostelhub.core.locks import LocalLockProvider
from hostelhub.domain.booking_state import BookingStatus
from hostelhub.models.admin import AuditLog
from hostelhub.models.booking import Booking
from hostelhub.models.hostel import Bed, Room
from hostelhub.services.allocation_service import AllocationEngine
from hostelhub.services.booking_workflow import BookingWorkflow

from conftest import FIXED_NOW, TODAY, RecordingNotifier

APPROVED = BookingStatus.APPROVED
CONFIRMED = BookingStatus.CONFIRMED
PENDING = BookingStatus.PENDING


# ==================== SUBMIT ====================


async def test_submit_creates_pending_booking(db, workflow, notifier, hostel_factory, student_id, details):
    hostel = await hostel_factory()

    booking = await workflow.submit(
        db, student_id, hostel.id, details(check_in=date(2099, 1, 1), check_out=date(2099, 1, 10))
    )

    assert booking.status == "pending"
    assert booking.booking_number.startswith("HST-")
    assert booking.mobile == "+919876543210"
    assert booking.nights == 9
    assert booking.bed_id is None
    assert await db.scalar(select(func.count(Bed.id)).where(Bed.is_occupied.is_(True))) == 0
    assert notifier.types == ["booking_request"]
    assert notifier.sent[0]["recipient_id"] == str(hostel.owner_id)


@pytest.mark.parametrize(
    "overrides,field",
    [
        ({"check_in": TODAY - timedelta(days=1)}, "check_in"),
        ({"check_out": TODAY + timedelta(days=7)}, "check_out"),
        ({"full_name": "   "}, "full_name"),
        ({"email": "not-an-email"}, "email"),
        ({"mobile": "12345"}, "mobile"),
        ({"room_type_preference": "penthouse"}, "room_type_preference"),
        ({"room_type_preference": ""}, "room_type_preference"),
        ({"occupants": 0}, "occupants"),
    ],
)
async def test_submit_rejects_bad_details(db, workflow, hostel_factory, student_id, details, overrides, field):
    hostel = await hostel_factory()

    with pytest.raises(ValidationError) as exc_info:
        await workflow.submit(db, student_id, hostel.id, details(**overrides))

    assert field in {e["field"] for e in exc_info.value.errors}
    assert await db.scalar(select(func.count(Booking.id))) == 0


async def test_submit_allows_check_in_today(db, workflow, hostel_factory, student_id, details):
    hostel = await hostel_factory()

    booking = await workflow.submit(db, student_id, hostel.id, details(check_in=TODAY))

    assert booking.check_in == TODAY


async def test_submit_unknown_hostel(db, workflow, student_id, details):
    with pytest.raises(NotFoundError):
        await workflow.submit(db, student_id, uuid4(), details())


async def test_submit_inactive_hostel(db, workflow, hostel_factory, student_id, details):
    hostel = await hostel_factory(is_active=False)

    with pytest.raises(ValidationError):
        await workflow.submit(db, student_id, hostel.id, details())


async def test_submit_rejects_duplicate_active_booking(db, workflow, hostel_factory, student_id, details):
    hostel = await hostel_factory()
    first = await workflow.submit(db, student_id, hostel.id, details())

    with pytest.raises(ValidationError):
        await workflow.submit(db, student_id, hostel.id, details())

    await workflow.cancel(db, first.id, student_id)
    again = await workflow.submit(db, student_id, hostel.id, details())
    assert again.id != first.id


# ==================== APPROVE / REJECT ====================


async def test_approve_then_approve_again(db, workflow, notifier, hostel_factory, booking_at, owner_id):
    hostel = await hostel_factory(advance=250000)
    booking = await booking_at(hostel, PENDING)

    approved = await workflow.approve(db, booking.id, owner_id)

    assert approved.status == "approved"
    assert approved.advance_amount == 250000
    assert approved.approved_by == owner_id
    assert approved.approved_at == FIXED_NOW
    assert notifier.types[-1] == "booking_approved"

    with pytest.raises(InvalidStateError):
        await workflow.approve(db, booking.id, owner_id)


async def test_approve_by_non_owner_is_refused(db, workflow, hostel_factory, booking_at, refetch):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, PENDING)

    with pytest.raises(AuthorizationError):
        await workflow.approve(db, booking.id, uuid4())
    with pytest.raises(AuthorizationError):
        await workflow.approve(db, booking.id, booking.student_id)

    assert (await refetch(Booking, booking.id)).status == "pending"


async def test_staff_with_booking_rights_can_approve(db, workflow, hostel_factory, booking_at):
    manager, viewer = uuid4(), uuid4()
    hostel = await hostel_factory(staff=[(manager, True), (viewer, False)])
    booking = await booking_at(hostel, PENDING)

    with pytest.raises(AuthorizationError):
        await workflow.approve(db, booking.id, viewer)
    approved = await workflow.approve(db, booking.id, manager)

    assert approved.status == "approved"


async def test_authorization_is_checked_before_state(db, workflow, hostel_factory, booking_at):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, CONFIRMED)

    with pytest.raises(AuthorizationError):
        await workflow.approve(db, booking.id, uuid4())


async def test_reject_stores_reason(db, workflow, notifier, hostel_factory, booking_at, owner_id):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, PENDING)

    rejected = await workflow.reject(db, booking.id, owner_id, "  No vacancy for the dates  ")

    assert rejected.status == "rejected"
    assert rejected.rejection_reason == "No vacancy for the dates"
    assert rejected.rejected_at == FIXED_NOW
    assert rejected.rejected_by == owner_id
    assert rejected.approved_by is None
    assert notifier.types[-1] == "booking_rejected"

    with pytest.raises(InvalidStateError):
        await workflow.cancel(db, booking.id, booking.student_id)


async def test_reject_requires_reason(db, workflow, hostel_factory, booking_at, owner_id, refetch):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, PENDING)

    with pytest.raises(ValidationError):
        await workflow.reject(db, booking.id, owner_id, "   ")

    assert (await refetch(Booking, booking.id)).status == "pending"


async def test_reject_approved_booking_is_illegal(db, workflow, hostel_factory, booking_at, owner_id):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, APPROVED)

    with pytest.raises(InvalidStateError):
        await workflow.reject(db, booking.id, owner_id, "changed my mind")


async def test_unknown_booking(db, workflow, owner_id):
    with pytest.raises(NotFoundError):
        await workflow.approve(db, uuid4(), owner_id)


# ==================== CONFIRM ====================


async def test_confirm_without_payment_keeps_booking_approved(
    db, workflow, payments, hostel_factory, booking_at, refetch
):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, APPROVED, paid=False)

    with pytest.raises(PreconditionError):
        await workflow.confirm(db, booking.id)

    booking = await refetch(Booking, booking.id)
    assert booking.status == "approved"
    assert booking.bed_id is None
    assert payments.calls == [booking.id]


async def test_confirm_allocates_a_bed(db, workflow, notifier, hostel_factory, booking_at, refetch):
    hostel = await hostel_factory(rooms=[("101", "single", 1)])
    booking = await booking_at(hostel, APPROVED)

    confirmed = await workflow.confirm(db, booking.id, booking.student_id)

    assert confirmed.status == "confirmed"
    assert confirmed.payment_status == "completed"
    assert confirmed.confirmed_at == FIXED_NOW
    bed = await refetch(Bed, confirmed.bed_id)
    room = await refetch(Room, confirmed.room_id)
    assert bed.is_occupied is True
    assert bed.booking_id == booking.id
    assert room.occupied_beds == 1
    assert notifier.types[-1] == "booking_confirmed"


async def test_confirm_pending_booking_is_illegal(db, workflow, payments, hostel_factory, booking_at):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, PENDING)
    payments.mark_paid(booking.id)

    with pytest.raises(InvalidStateError):
        await workflow.confirm(db, booking.id)


async def test_confirm_by_stranger_is_refused(db, workflow, hostel_factory, booking_at):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, APPROVED)

    with pytest.raises(AuthorizationError):
        await workflow.confirm(db, booking.id, uuid4())


async def test_confirm_with_no_capacity_stays_approved(db, workflow, hostel_factory, booking_at, refetch):
    hostel = await hostel_factory(rooms=[("101", "single", 1)])
    await booking_at(hostel, CONFIRMED)
    booking = await booking_at(hostel, APPROVED)
    booking_id = booking.id

    with pytest.raises(NoCapacityError):
        await workflow.confirm(db, booking_id)

    booking = await refetch(Booking, booking_id)
    assert booking.status == "approved"
    assert booking.bed_id is None


async def test_concurrent_confirms_for_the_last_bed(
    session_factory, workflow, hostel_factory, booking_at, refetch
):
    hostel = await hostel_factory(rooms=[("101", "single", 1)])
    first = await booking_at(hostel, APPROVED)
    second = await booking_at(hostel, APPROVED)

    async def confirm(booking_id):
        async with session_factory() as session:
            return await workflow.confirm(session, booking_id)

    results = await asyncio.gather(confirm(first.id), confirm(second.id), return_exceptions=True)

    confirmed = [r for r in results if isinstance(r, Booking)]
    failed = [r for r in results if isinstance(r, Exception)]
    assert len(confirmed) == 1
    assert len(failed) == 1
    assert isinstance(failed[0], NoCapacityError)

    loser_id = second.id if confirmed[0].id == first.id else first.id
    loser = await refetch(Booking, loser_id)
    assert loser.status == "approved"
    assert loser.bed_id is None
    room = await refetch(Room, confirmed[0].room_id)
    assert room.occupied_beds == 1


async def test_many_concurrent_confirms_fill_exactly_the_free_beds(
    session_factory, workflow, hostel_factory, booking_at
):
    hostel = await hostel_factory(rooms=[("101", "double", 2), ("102", "single", 1)])
    bookings = [await booking_at(hostel, APPROVED, room_type_preference="double") for _ in range(6)]

    async def confirm(booking_id):
        async with session_factory() as session:
            return await workflow.confirm(session, booking_id)

    results = await asyncio.gather(*(confirm(b.id) for b in bookings), return_exceptions=True)

    confirmed = [r for r in results if isinstance(r, Booking)]
    assert len(confirmed) == 3
    assert len({b.bed_id for b in confirmed}) == 3
    assert all(isinstance(r, NoCapacityError) for r in results if isinstance(r, Exception))


# ==================== ALLOCATE MANUALLY ====================


async def test_allocate_manually_confirms_approved_booking(
    db, workflow, notifier, hostel_factory, booking_at, owner_id, refetch
):
    hostel = await hostel_factory(rooms=[("101", "double", 2)])
    booking = await booking_at(hostel, APPROVED)

    allocated = await workflow.allocate_manually(db, booking.id, owner_id)

    assert allocated.status == "confirmed"
    assert allocated.bed_id is not None
    assert (await refetch(Bed, allocated.bed_id)).booking_id == booking.id
    assert notifier.types[-1] == "room_allocated"


async def test_allocate_manually_is_idempotent(db, workflow, hostel_factory, booking_at, owner_id, refetch):
    hostel = await hostel_factory(rooms=[("101", "double", 2)])
    booking = await booking_at(hostel, CONFIRMED)

    again = await workflow.allocate_manually(db, booking.id, owner_id)

    assert again.bed_id == booking.bed_id
    room = await refetch(Room, booking.room_id)
    assert room.occupied_beds == 1


async def test_allocate_manually_requires_payment(db, workflow, hostel_factory, booking_at, owner_id):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, APPROVED, paid=False)

    with pytest.raises(PreconditionError):
        await workflow.allocate_manually(db, booking.id, owner_id)


async def test_allocate_manually_needs_approved_or_confirmed(db, workflow, hostel_factory, booking_at, owner_id):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, PENDING)

    with pytest.raises(InvalidStateError):
        await workflow.allocate_manually(db, booking.id, owner_id)


async def test_allocate_manually_by_student_is_refused(db, workflow, hostel_factory, booking_at):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, APPROVED)

    with pytest.raises(AuthorizationError):
        await workflow.allocate_manually(db, booking.id, booking.student_id)


async def test_allocate_manually_can_be_retried_after_no_capacity(
    db, workflow, hostel_factory, booking_at, owner_id, refetch
):
    hostel = await hostel_factory(rooms=[("101", "single", 1)])
    holder = await booking_at(hostel, CONFIRMED)
    holder_id, holder_student, held_bed = holder.id, holder.student_id, holder.bed_id
    waiting = await booking_at(hostel, APPROVED)
    waiting_id = waiting.id

    with pytest.raises(NoCapacityError):
        await workflow.allocate_manually(db, waiting_id, owner_id)
    assert (await refetch(Booking, waiting_id)).status == "approved"

    await workflow.cancel(db, holder_id, holder_student)
    allocated = await workflow.allocate_manually(db, waiting_id, owner_id)

    assert allocated.status == "confirmed"
    assert allocated.bed_id == held_bed


# ==================== CANCEL / CHECKOUT ====================


async def test_cancel_confirmed_booking_releases_bed(
    db, workflow, notifier, hostel_factory, booking_at, refetch
):
    hostel = await hostel_factory(rooms=[("101", "double", 2)])
    booking = await booking_at(hostel, CONFIRMED)
    bed_id, room_id = booking.bed_id, booking.room_id

    cancelled = await workflow.cancel(db, booking.id, booking.student_id, reason="Found a flat")

    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_by == "student"
    assert cancelled.cancellation_reason == "Found a flat"
    bed = await refetch(Bed, bed_id)
    assert bed.is_occupied is False
    assert bed.booking_id is None
    assert (await refetch(Room, room_id)).occupied_beds == 0
    assert notifier.sent[-1]["recipient_id"] == str(hostel.owner_id)

    with pytest.raises(InvalidStateError):
        await workflow.cancel(db, booking.id, booking.student_id)


async def test_owner_cancel_notifies_student(db, workflow, notifier, hostel_factory, booking_at, owner_id):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, APPROVED)

    cancelled = await workflow.cancel(db, booking.id, owner_id)

    assert cancelled.cancelled_by == "owner"
    assert notifier.sent[-1]["recipient_id"] == str(booking.student_id)


async def test_cancel_by_stranger_is_refused(db, workflow, hostel_factory, booking_at, refetch):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, CONFIRMED)

    with pytest.raises(AuthorizationError):
        await workflow.cancel(db, booking.id, uuid4())

    assert (await refetch(Bed, booking.bed_id)).is_occupied is True


async def test_cancel_fails_when_release_fails(db, workflow, hostel_factory, booking_at, refetch, monkeypatch):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, CONFIRMED)
    booking_id, student, bed_id = booking.id, booking.student_id, booking.bed_id

    async def broken_release(self, bed_id):
        raise RuntimeError("inventory unavailable")

    monkeypatch.setattr("hostelhub.services.allocation_service.InventoryTransaction.release", broken_release)

    with pytest.raises(RuntimeError):
        await workflow.cancel(db, booking_id, student)

    assert (await refetch(Booking, booking_id)).status == "confirmed"
    assert (await refetch(Bed, bed_id)).is_occupied is True


async def test_checkout_completes_and_frees_bed(db, workflow, notifier, hostel_factory, booking_at, owner_id, refetch):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, CONFIRMED)

    completed = await workflow.checkout(db, booking.id, owner_id)

    assert completed.status == "completed"
    assert completed.checked_out_at == FIXED_NOW
    assert (await refetch(Bed, booking.bed_id)).is_occupied is False
    assert notifier.types[-1] == "booking_checked_out"

    with pytest.raises(InvalidStateError):
        await workflow.cancel(db, booking.id, owner_id)


async def test_checkout_requires_confirmed(db, workflow, hostel_factory, booking_at, owner_id):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, APPROVED)

    with pytest.raises(InvalidStateError):
        await workflow.checkout(db, booking.id, owner_id)


# ==================== TRANSFER ====================


async def test_transfer_moves_booking_to_named_bed(db, workflow, notifier, hostel_factory, booking_at, owner_id, refetch):
    hostel = await hostel_factory(rooms=[("101", "single", 1), ("102", "single", 1)])
    booking = await booking_at(hostel, CONFIRMED)
    old_bed_id, old_room_id = booking.bed_id, booking.room_id
    target = await db.scalar(
        select(Bed).join(Room, Bed.room_id == Room.id).where(Room.hostel_id == hostel.id, Room.room_number == "102")
    )
    target_id = target.id

    moved = await workflow.transfer_bed(db, booking.id, owner_id, to_bed_id=target_id, reason="Window bed requested")

    assert moved.status == "confirmed"
    assert moved.bed_id == target_id
    assert moved.room_id != old_room_id
    assert (await refetch(Bed, old_bed_id)).is_occupied is False
    assert (await refetch(Bed, target_id)).booking_id == booking.id
    assert notifier.types[-1] == "bed_transferred"
    audit = await db.scalar(select(AuditLog).where(AuditLog.action == "booking_transfer"))
    assert audit.old_values["bed_id"] == str(old_bed_id)
    assert audit.new_values["reason"] == "Window bed requested"


async def test_transfer_honours_floor_preference(db, workflow, hostel_factory, booking_at, owner_id):
    hostel = await hostel_factory(rooms=[("101", "single", 1), ("102", "single", 1), ("201", "single", 1)])
    booking = await booking_at(hostel, CONFIRMED)

    moved = await workflow.transfer_bed(db, booking.id, owner_id, floor_preference=2)
    allocation = await workflow.get_allocation(db, moved.id, owner_id)

    assert allocation.room_number == "201"


async def test_transfer_requires_confirmed_booking(db, workflow, hostel_factory, booking_at, owner_id):
    hostel = await hostel_factory(rooms=[("101", "single", 1), ("102", "single", 1)])
    booking = await booking_at(hostel, APPROVED)

    with pytest.raises(InvalidStateError):
        await workflow.transfer_bed(db, booking.id, owner_id)


async def test_transfer_is_for_managers_only(db, workflow, hostel_factory, booking_at):
    hostel = await hostel_factory(rooms=[("101", "single", 1), ("102", "single", 1)])
    booking = await booking_at(hostel, CONFIRMED)

    with pytest.raises(AuthorizationError):
        await workflow.transfer_bed(db, booking.id, booking.student_id)


async def test_transfer_to_taken_bed_keeps_current_bed(db, workflow, hostel_factory, booking_at, owner_id, refetch):
    hostel = await hostel_factory(rooms=[("101", "single", 1), ("102", "single", 1)])
    first = await booking_at(hostel, CONFIRMED)
    second = await booking_at(hostel, CONFIRMED)
    first_id, first_bed, second_bed = first.id, first.bed_id, second.bed_id

    with pytest.raises(NoCapacityError):
        await workflow.transfer_bed(db, first_id, owner_id, to_bed_id=second_bed)

    assert (await refetch(Booking, first_id)).bed_id == first_bed
    assert (await refetch(Bed, first_bed)).booking_id == first_id
    assert (await refetch(Bed, second_bed)).booking_id != first_id


# ==================== CONCURRENCY / SIDE EFFECTS ====================


async def test_racing_approve_and_cancel_land_one_at_a_time(
    session_factory, workflow, hostel_factory, booking_at, owner_id, refetch
):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, PENDING)

    async def run(op):
        async with session_factory() as session:
            return await op(session)

    results = await asyncio.gather(
        run(lambda s: workflow.approve(s, booking.id, owner_id)),
        run(lambda s: workflow.cancel(s, booking.id, booking.student_id)),
        return_exceptions=True,
    )

    final = await refetch(Booking, booking.id)
    assert final.status == "cancelled"
    errors = [r for r in results if isinstance(r, Exception)]
    assert all(isinstance(e, InvalidStateError) for e in errors)


async def test_stale_write_from_another_process_is_a_conflict(
    session_factory, payments, notifier, hostel_factory, booking_at, owner_id, refetch
):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, PENDING)

    # Separate lock registries behave like two API processes without a shared lock
    first = BookingWorkflow(AllocationEngine(LocalLockProvider()), payments, notifier, LocalLockProvider())
    second = BookingWorkflow(AllocationEngine(LocalLockProvider()), payments, notifier, LocalLockProvider())

    async with session_factory() as stale, session_factory() as fresh:
        loaded = await stale.get(Booking, booking.id)
        await second.cancel(fresh, booking.id, booking.student_id)

        loaded.status = "approved"
        with pytest.raises(InvalidStateError):
            await first._persist(stale, booking.id)

    assert (await refetch(Booking, booking.id)).status == "cancelled"


async def test_notification_failure_never_undoes_transition(
    db, allocation, payments, locks, hostel_factory, booking_at, owner_id, refetch
):
    class ExplodingNotifier(RecordingNotifier):
        async def notify_booking_approved(self, *args, **kwargs):
            raise RuntimeError("notifier bug")

    hostel = await hostel_factory()
    booking = await booking_at(hostel, PENDING)
    flaky = BookingWorkflow(allocation, payments, RecordingNotifier(fail=True), locks)
    broken = BookingWorkflow(allocation, payments, ExplodingNotifier(), locks)

    approved = await broken.approve(db, booking.id, owner_id)
    assert approved.status == "approved"

    payments.mark_paid(booking.id)
    confirmed = await flaky.confirm(db, booking.id)
    assert confirmed.status == "confirmed"
    assert (await refetch(Booking, booking.id)).status == "confirmed"


async def test_every_transition_is_audited(db, workflow, hostel_factory, booking_at):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, CONFIRMED)
    await workflow.cancel(db, booking.id, booking.student_id)

    actions = (
        await db.scalars(
            select(AuditLog.action)
            .where(AuditLog.resource_id == booking.id)
            .order_by(AuditLog.created_at, AuditLog.action)
        )
    ).all()

    assert set(actions) == {"booking_pending", "booking_approved", "booking_confirmed", "booking_cancelled"}


async def test_get_allocation(db, workflow, hostel_factory, booking_at, owner_id):
    hostel = await hostel_factory(rooms=[("201", "triple", 3)])
    booking = await booking_at(hostel, CONFIRMED)

    allocation = await workflow.get_allocation(db, booking.id, owner_id)

    assert allocation.room_number == "201"
    assert allocation.bed_number == "01"
    assert allocation.floor_number == 2

    pending = await booking_at(hostel, PENDING)
    with pytest.raises(NotFoundError):
        await workflow.get_allocation(db, pending.id, pending.student_id)
