"""Advance payment ledger model."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hostelhub.database import Base
from hostelhub.models.hostel import utcnow

if TYPE_CHECKING:
    from hostelhub.models.booking import Booking


class AdvancePayment(Base):
    """Advance payment recorded against a booking."""

    __tablename__ = "advance_payments"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    student_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)

    # Amount
    amount: Mapped[int] = mapped_column(Integer, nullable=False)  # in paise
    currency: Mapped[str] = mapped_column(String(3), default="INR")

    # Method
    payment_method: Mapped[str] = mapped_column(
        String(30), nullable=False
    )  # upi, card, bank_transfer, cash
    transaction_reference: Mapped[str | None] = mapped_column(String(100))
    gateway_response: Mapped[dict | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"))

    # Status
    status: Mapped[str] = mapped_column(
        String(20), default="pending", index=True
    )  # pending, completed, failed, refunded
    failure_reason: Mapped[str | None] = mapped_column(Text)
    verified_by: Mapped[uuid.UUID | None] = mapped_column(Uuid)

    # Timestamps
    initiated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    booking: Mapped["Booking"] = relationship("Booking", back_populates="payments")
