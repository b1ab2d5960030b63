"""Audit trail service."""

from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from hostelhub.models.admin import AuditLog


class AuditService:
    """Writes audit rows in the caller's transaction."""

    async def log_action(
        self,
        db: AsyncSession,
        actor_id: UUID | None,
        action: str,
        resource_type: str,
        resource_id: UUID,
        old_values: dict[str, Any] | None = None,
        new_values: dict[str, Any] | None = None,
    ) -> AuditLog:
        """Record an action.

        Args:
            db: Database session
            actor_id: User performing the action (None for system actions)
            action: Action name (e.g., "booking_approve")
            resource_type: Resource type (e.g., "booking", "advance_payment")
            resource_id: Resource ID
            old_values: Previous state
            new_values: New state

        Returns:
            Created audit log entry
        """
        audit = AuditLog(
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_values=old_values,
            new_values=new_values,
        )
        db.add(audit)
        return audit

    async def log_booking_transition(
        self,
        db: AsyncSession,
        actor_id: UUID | None,
        booking_id: UUID,
        old_status: str | None,
        new_status: str,
        **details: Any,
    ) -> AuditLog:
        """Log a booking status change."""
        new_values: dict[str, Any] = {"status": new_status}
        new_values.update({k: str(v) if isinstance(v, UUID) else v for k, v in details.items()})
        return await self.log_action(
            db=db,
            actor_id=actor_id,
            action=f"booking_{new_status}",
            resource_type="booking",
            resource_id=booking_id,
            old_values={"status": old_status} if old_status else None,
            new_values=new_values,
        )

    async def log_payment_action(
        self,
        db: AsyncSession,
        actor_id: UUID | None,
        action: str,
        payment_id: UUID,
        old_status: str,
        new_status: str,
        amount: int | None = None,
    ) -> AuditLog:
        """Log advance payment status change."""
        return await self.log_action(
            db=db,
            actor_id=actor_id,
            action=action,
            resource_type="advance_payment",
            resource_id=payment_id,
            old_values={"status": old_status},
            new_values={"status": new_status, "amount": amount} if amount else {"status": new_status},
        )


audit_service = AuditService()
