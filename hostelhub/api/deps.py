"""API dependencies for authentication and common operations."""

from typing import Annotated
from uuid import UUID

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hostelhub.core.exceptions import AuthenticationError, AuthorizationError, NotFoundError
from hostelhub.core.security import verify_token
from hostelhub.database import get_db
from hostelhub.models.hostel import Hostel, HostelStaff
from hostelhub.services.allocation_service import AllocationEngine
from hostelhub.services.booking_workflow import BookingWorkflow

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> UUID:
    """Actor id (token ``sub``) of the authenticated caller."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    payload = verify_token(credentials.credentials, token_type="access")
    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Invalid token payload")
    try:
        return UUID(subject)
    except ValueError:
        raise AuthenticationError("Invalid token subject")


def get_workflow(request: Request) -> BookingWorkflow:
    """Booking workflow built at application startup."""
    return request.app.state.workflow


def get_allocation_engine(request: Request) -> AllocationEngine:
    return request.app.state.workflow.allocation


class HostelPermissionChecker:
    """Check the caller manages a hostel (owner, or staff with booking rights)."""

    def __init__(self, require_owner: bool = False):
        self.require_owner = require_owner

    async def __call__(
        self,
        hostel_id: UUID,
        actor_id: Annotated[UUID, Depends(get_current_actor)],
        db: Annotated[AsyncSession, Depends(get_db)],
    ) -> UUID:
        hostel = await db.get(Hostel, hostel_id)
        if not hostel:
            raise NotFoundError("Hostel", str(hostel_id))

        if hostel.owner_id == actor_id:
            return actor_id

        if self.require_owner:
            raise AuthorizationError("Only the hostel owner can perform this action")

        result = await db.execute(
            select(HostelStaff.id).where(
                HostelStaff.hostel_id == hostel_id,
                HostelStaff.user_id == actor_id,
                HostelStaff.can_manage_bookings.is_(True),
            )
        )
        if result.scalar_one_or_none() is None:
            raise AuthorizationError("You don't have permission to manage this hostel")

        return actor_id


# Convenience instances
require_hostel_owner = HostelPermissionChecker(require_owner=True)
require_hostel_manager = HostelPermissionChecker(require_owner=False)
