"""Notification dispatch for booking lifecycle events.

Delivery is fire-and-forget: every public method swallows delivery failures
after logging them, so a failed notification can never undo a committed
booking transition.
"""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import httpx

logger = logging.getLogger(__name__)


class NotificationService:
    """Sends booking notifications to the external notifier webhook."""

    # Notification types
    BOOKING_REQUEST = "booking_request"
    BOOKING_APPROVED = "booking_approved"
    BOOKING_REJECTED = "booking_rejected"
    BOOKING_CONFIRMED = "booking_confirmed"
    ROOM_ALLOCATED = "room_allocated"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_CHECKED_OUT = "booking_checked_out"
    BED_TRANSFERRED = "bed_transferred"

    def __init__(
        self,
        webhook_url: str | None = None,
        timeout: float = 5.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize notification service."""
        self.webhook_url = webhook_url
        self.timeout = timeout
        self._http_client = http_client

    @property
    def http_client(self) -> httpx.AsyncClient:
        """Lazy-load HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()

    async def deliver(self, payload: dict[str, Any]) -> bool:
        """Post one notification to the webhook.

        Returns:
            bool: True if the notifier accepted it
        """
        if not self.webhook_url:
            logger.info(f"Notification {payload['type']} for {payload['recipient_id']}: {payload['title']}")
            return True

        response = await self.http_client.post(self.webhook_url, json=payload)
        response.raise_for_status()
        return True

    async def notify_user(
        self,
        user_id: UUID,
        title: str,
        body: str,
        notification_type: str,
        booking_id: UUID | None = None,
        data: dict[str, Any] | None = None,
    ) -> bool:
        """Send a notification, never raising on delivery failure."""
        payload = {
            "type": notification_type,
            "recipient_id": str(user_id),
            "title": title,
            "body": body,
            "booking_id": str(booking_id) if booking_id else None,
            "data": data or {},
            "sent_at": datetime.now(UTC).isoformat(),
        }
        try:
            return await self.deliver(payload)
        except Exception as exc:
            logger.warning(f"Failed to deliver {notification_type} notification to {user_id}: {exc}")
            return False

    # ==================== BOOKING NOTIFICATION HELPERS ====================

    async def notify_booking_request(self, owner_id: UUID, booking_id: UUID, full_name: str, booking_number: str) -> bool:
        return await self.notify_user(
            user_id=owner_id,
            title="New Booking Request",
            body=f"New booking request {booking_number} from {full_name}",
            notification_type=self.BOOKING_REQUEST,
            booking_id=booking_id,
        )

    async def notify_booking_approved(self, student_id: UUID, booking_id: UUID, advance_amount: int) -> bool:
        return await self.notify_user(
            user_id=student_id,
            title="Booking Approved",
            body="Your booking request has been approved. Please make the advance payment.",
            notification_type=self.BOOKING_APPROVED,
            booking_id=booking_id,
            data={"advance_amount": advance_amount},
        )

    async def notify_booking_rejected(self, student_id: UUID, booking_id: UUID, reason: str) -> bool:
        return await self.notify_user(
            user_id=student_id,
            title="Booking Rejected",
            body=f"Your booking request has been rejected. Reason: {reason}",
            notification_type=self.BOOKING_REJECTED,
            booking_id=booking_id,
        )

    async def notify_room_allocated(
        self,
        student_id: UUID,
        booking_id: UUID,
        room_number: str,
        bed_number: str,
        confirmed: bool = False,
    ) -> bool:
        """Tell the student which bed they got."""
        return await self.notify_user(
            user_id=student_id,
            title="Booking Confirmed" if confirmed else "Room Allocated",
            body=f"Room {room_number}, Bed {bed_number} has been allocated to you.",
            notification_type=self.BOOKING_CONFIRMED if confirmed else self.ROOM_ALLOCATED,
            booking_id=booking_id,
            data={"room_number": room_number, "bed_number": bed_number},
        )

    async def notify_booking_cancelled(self, recipient_id: UUID, booking_id: UUID, cancelled_by: str) -> bool:
        return await self.notify_user(
            user_id=recipient_id,
            title="Booking Cancelled",
            body=f"Booking was cancelled by the {cancelled_by}.",
            notification_type=self.BOOKING_CANCELLED,
            booking_id=booking_id,
        )

    async def notify_checked_out(self, student_id: UUID, booking_id: UUID) -> bool:
        return await self.notify_user(
            user_id=student_id,
            title="Checked Out",
            body="Your checkout is complete. Thank you for staying with us.",
            notification_type=self.BOOKING_CHECKED_OUT,
            booking_id=booking_id,
        )

    async def notify_bed_transferred(self, student_id: UUID, booking_id: UUID, room_number: str, bed_number: str) -> bool:
        return await self.notify_user(
            user_id=student_id,
            title="Bed Changed",
            body=f"You have been moved to Room {room_number}, Bed {bed_number}.",
            notification_type=self.BED_TRANSFERRED,
            booking_id=booking_id,
            data={"room_number": room_number, "bed_number": bed_number},
        )
