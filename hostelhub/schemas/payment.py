"""Advance payment schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AdvancePaymentCreate(BaseModel):
    """Schema for initiating an advance payment."""

    booking_id: UUID
    payment_method: str = Field(pattern="^(upi|card|bank_transfer|cash)$")
    transaction_reference: str | None = Field(None, max_length=100)


class AdvancePaymentFail(BaseModel):
    """Schema for marking a payment failed."""

    reason: str = Field(max_length=500)


class AdvancePaymentResponse(BaseModel):
    """Schema for advance payment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    student_id: UUID
    amount: int
    currency: str
    payment_method: str
    transaction_reference: str | None
    status: str
    failure_reason: str | None
    initiated_at: datetime
    completed_at: datetime | None
