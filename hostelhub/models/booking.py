"""Booking model."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Date, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hostelhub.database import Base
from hostelhub.models.hostel import utcnow

if TYPE_CHECKING:
    from hostelhub.models.hostel import Bed, Hostel, Room
    from hostelhub.models.payment import AdvancePayment


class Booking(Base):
    """A student's booking request, moved through its lifecycle by the workflow.

    ``version`` is the optimistic-concurrency counter: a flush that races a
    concurrent transition on the same row fails with ``StaleDataError``.
    """

    __tablename__ = "bookings"
    __table_args__ = (Index("ix_bookings_student_hostel_status", "student_id", "hostel_id", "status"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_number: Mapped[str] = mapped_column(
        String(20), unique=True, nullable=False, index=True
    )  # HST-XXXXXX
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    hostel_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("hostels.id"), nullable=False, index=True
    )

    # Contact details captured with the request
    full_name: Mapped[str] = mapped_column(String(200), nullable=False)
    mobile: Mapped[str] = mapped_column(String(20), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False)

    # Request
    room_type_preference: Mapped[str] = mapped_column(String(20), nullable=False)
    check_in: Mapped[date] = mapped_column(Date, nullable=False)
    check_out: Mapped[date] = mapped_column(Date, nullable=False)
    occupants: Mapped[int] = mapped_column(Integer, default=1)
    notes: Mapped[str | None] = mapped_column(Text)

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default="pending", nullable=False, index=True
    )  # pending, approved, rejected, confirmed, cancelled, completed
    rejection_reason: Mapped[str | None] = mapped_column(Text)
    cancellation_reason: Mapped[str | None] = mapped_column(Text)
    cancelled_by: Mapped[str | None] = mapped_column(String(10))  # student, owner, staff

    # Allocation
    room_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("rooms.id"))
    bed_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("beds.id"))

    # Advance payment snapshot
    advance_amount: Mapped[int] = mapped_column(Integer, default=0)
    payment_status: Mapped[str] = mapped_column(
        String(20), default="pending"
    )  # pending, completed, failed, refunded

    # Actors
    approved_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    rejected_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    checked_out_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    # Relationships
    hostel: Mapped["Hostel"] = relationship("Hostel")
    room: Mapped["Room | None"] = relationship("Room")
    bed: Mapped["Bed | None"] = relationship("Bed")
    payments: Mapped[list["AdvancePayment"]] = relationship("AdvancePayment", back_populates="booking")

    @property
    def nights(self) -> int:
        """Length of the requested stay in nights."""
        return (self.check_out - self.check_in).days

    @property
    def has_allocation(self) -> bool:
        return self.bed_id is not None
