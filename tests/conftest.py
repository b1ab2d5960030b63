"""Shared fixtures: a file-backed SQLite database per test and a wired workflow."""

from datetime import UTC, datetime, timedelta
from uuid import UUID, uuid4

import httpx
import pytest

import hostelhub.models  # noqa: F401
from hostelhub.core.locks import LocalLockProvider
from hostelhub.database import Base, build_engine, build_session_factory
from hostelhub.domain.booking_state import BookingStatus
from hostelhub.models.booking import Booking
from hostelhub.models.hostel import Bed, Hostel, HostelStaff, Room
from hostelhub.schemas.booking import BookingDetails
from hostelhub.services.allocation_service import AllocationEngine
from hostelhub.services.booking_workflow import BookingWorkflow
from hostelhub.services.notification_service import NotificationService
from hostelhub.services.payment_status_service import PaymentStatusProvider

FIXED_NOW = datetime(2026, 10, 19, 9, 30, tzinfo=UTC)
TODAY = FIXED_NOW.date()


class StubPaymentStatus(PaymentStatusProvider):
    """Payment collaborator whose answers the test controls."""

    def __init__(self) -> None:
        self.completed: set[UUID] = set()
        self.calls: list[UUID] = []

    def mark_paid(self, booking_id: UUID) -> None:
        self.completed.add(booking_id)

    async def is_complete(self, booking_id: UUID) -> bool:
        self.calls.append(booking_id)
        return booking_id in self.completed


class RecordingNotifier(NotificationService):
    """Captures payloads instead of posting them."""

    def __init__(self, fail: bool = False) -> None:
        super().__init__()
        self.sent: list[dict] = []
        self.fail = fail

    async def deliver(self, payload: dict) -> bool:
        if self.fail:
            raise httpx.ConnectError("notifier unreachable")
        self.sent.append(payload)
        return True

    @property
    def types(self) -> list[str]:
        return [p["type"] for p in self.sent]


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'hostelhub.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def locks():
    return LocalLockProvider(blocking_timeout=10)


@pytest.fixture
def payments():
    return StubPaymentStatus()


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def allocation(locks):
    return AllocationEngine(locks)


@pytest.fixture
def workflow(allocation, payments, notifier, locks):
    return BookingWorkflow(
        allocation=allocation,
        payment_status=payments,
        notifier=notifier,
        locks=locks,
        clock=lambda: FIXED_NOW,
    )


@pytest.fixture
def owner_id():
    return uuid4()


@pytest.fixture
def student_id():
    return uuid4()


@pytest.fixture
def hostel_factory(db, owner_id):
    """Create a hostel; ``rooms`` is a list of (room_number, room_type, bed_count)."""

    async def _create(
        rooms=(("101", "single", 1),),
        owner=None,
        advance=500000,
        is_active=True,
        staff=(),
    ) -> Hostel:
        hostel = Hostel(
            owner_id=owner or owner_id,
            name="Sunrise Hostel",
            city="Pune",
            advance_payment_amount=advance,
            is_active=is_active,
        )
        db.add(hostel)
        await db.flush()
        for room_number, room_type, bed_count in rooms:
            db.add(
                Room(
                    hostel_id=hostel.id,
                    room_number=room_number,
                    floor_number=int(room_number[0]),
                    room_type=room_type,
                    occupied_beds=0,
                    beds=[
                        Bed(hostel_id=hostel.id, bed_number=f"{n:02d}", is_occupied=False)
                        for n in range(1, bed_count + 1)
                    ],
                )
            )
        for user_id, can_manage in staff:
            db.add(HostelStaff(hostel_id=hostel.id, user_id=user_id, can_manage_bookings=can_manage))
        await db.commit()
        return hostel

    return _create


@pytest.fixture
def details():
    def _details(**overrides) -> BookingDetails:
        data = {
            "full_name": "Asha Verma",
            "mobile": "9876543210",
            "email": "asha@example.com",
            "room_type_preference": "single",
            "check_in": TODAY + timedelta(days=7),
            "check_out": TODAY + timedelta(days=187),
            "occupants": 1,
        }
        data.update(overrides)
        return BookingDetails(**data)

    return _details


@pytest.fixture
def booking_at(db, workflow, payments, owner_id, details):
    """Drive a fresh booking to ``status`` through the workflow."""

    async def _booking_at(hostel: Hostel, status: BookingStatus, student=None, paid=True, **overrides) -> Booking:
        booking = await workflow.submit(db, student or uuid4(), hostel.id, details(**overrides))
        if status == BookingStatus.PENDING:
            return booking
        booking = await workflow.approve(db, booking.id, hostel.owner_id)
        if paid:
            payments.mark_paid(booking.id)
        if status == BookingStatus.APPROVED:
            return booking
        return await workflow.confirm(db, booking.id)

    return _booking_at


@pytest.fixture
def refetch(db):
    """Fresh copy of a row, bypassing the identity map."""

    async def _refetch(model, ident):
        return await db.get(model, ident, populate_existing=True)

    return _refetch
