"""Audit trail model."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import JSON, DateTime, String, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from hostelhub.database import Base
from hostelhub.models.hostel import utcnow


class AuditLog(Base):
    """Audit log for booking transitions, allocations and payment changes."""

    __tablename__ = "audit_logs"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    actor_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)

    # Action details
    action: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    resource_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)

    # Changes
    old_values: Mapped[dict | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"))
    new_values: Mapped[dict | None] = mapped_column(JSON().with_variant(JSONB, "postgresql"))

    # Timestamp
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, index=True)
