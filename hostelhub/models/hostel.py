"""Hostel inventory models: hostels, rooms and beds."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hostelhub.database import Base


def utcnow() -> datetime:
    return datetime.now(UTC)


class Hostel(Base):
    """Hostel owned by a single owner account."""

    __tablename__ = "hostels"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    city: Mapped[str | None] = mapped_column(String(100))

    # Advance payment requested on approval (in paise)
    advance_payment_amount: Mapped[int] = mapped_column(Integer, default=0)
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    rooms: Mapped[list["Room"]] = relationship(
        "Room", back_populates="hostel", order_by="Room.room_number"
    )
    staff: Mapped[list["HostelStaff"]] = relationship("HostelStaff", back_populates="hostel")


class HostelStaff(Base):
    """Staff member allowed to act on a hostel's bookings."""

    __tablename__ = "hostel_staff"
    __table_args__ = (UniqueConstraint("hostel_id", "user_id", name="uq_hostel_staff_member"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    hostel_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hostels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    can_manage_bookings: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    hostel: Mapped["Hostel"] = relationship("Hostel", back_populates="staff")


class Room(Base):
    """Room with an ordered set of beds.

    ``occupied_beds`` is maintained by the allocation engine and must always
    equal the number of beds with ``is_occupied`` set.
    """

    __tablename__ = "rooms"
    __table_args__ = (
        UniqueConstraint("hostel_id", "room_number", name="uq_room_number_per_hostel"),
        CheckConstraint("occupied_beds >= 0", name="ck_room_occupied_beds_non_negative"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    hostel_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hostels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    floor_number: Mapped[int] = mapped_column(Integer, default=0)
    room_number: Mapped[str] = mapped_column(String(20), nullable=False)
    room_type: Mapped[str] = mapped_column(
        String(20), nullable=False, index=True
    )  # single, double, triple, dormitory
    monthly_rent: Mapped[int] = mapped_column(Integer, default=0)
    occupied_beds: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)

    # Relationships
    hostel: Mapped["Hostel"] = relationship("Hostel", back_populates="rooms")
    beds: Mapped[list["Bed"]] = relationship(
        "Bed", back_populates="room", order_by="Bed.bed_number", cascade="all, delete-orphan"
    )


class Bed(Base):
    """Smallest allocatable unit.

    ``booking_id`` is a lookup back-reference to the occupying booking, not a
    foreign key: bookings never own beds.
    """

    __tablename__ = "beds"
    __table_args__ = (
        UniqueConstraint("room_id", "bed_number", name="uq_bed_number_per_room"),
        CheckConstraint(
            "(is_occupied AND booking_id IS NOT NULL) OR (NOT is_occupied AND booking_id IS NULL)",
            name="ck_bed_occupancy_matches_booking",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    room_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True
    )
    hostel_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hostels.id", ondelete="CASCADE"), nullable=False, index=True
    )
    bed_number: Mapped[str] = mapped_column(String(10), nullable=False)
    is_occupied: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    booking_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, unique=True)
    occupied_from: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    room: Mapped["Room"] = relationship("Room", back_populates="beds")
