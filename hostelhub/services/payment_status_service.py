"""Payment status collaborator.

The booking workflow only asks one question of the payment side: has the
advance payment for this booking been completed? Two providers answer it:
the local advance-payment ledger and an external payment service over HTTP.
"""

import logging
from abc import ABC, abstractmethod
from uuid import UUID

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hostelhub.config import Settings
from hostelhub.core.exceptions import ExternalServiceError
from hostelhub.domain.payment_state import COMPLETED_PAYMENT_STATUS
from hostelhub.models.payment import AdvancePayment

logger = logging.getLogger(__name__)


class PaymentStatusProvider(ABC):
    """Reports whether a booking's advance payment is complete."""

    @abstractmethod
    async def is_complete(self, booking_id: UUID) -> bool:
        """Return True once the advance payment has been completed."""


class LedgerPaymentStatus(PaymentStatusProvider):
    """Reads the advance payment ledger in a session of its own."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def is_complete(self, booking_id: UUID) -> bool:
        async with self._session_factory() as db:
            payment_id = await db.scalar(
                select(AdvancePayment.id)
                .where(
                    AdvancePayment.booking_id == booking_id,
                    AdvancePayment.status == COMPLETED_PAYMENT_STATUS,
                )
                .limit(1)
            )
        return payment_id is not None


class HttpPaymentStatus(PaymentStatusProvider):
    """Asks an external payment service.

    Expects ``GET {base_url}/bookings/{booking_id}/advance-payment`` to answer
    with ``{"status": "..."}``; a 404 means no payment was made.
    """

    def __init__(self, base_url: str, timeout: float = 5.0, client: httpx.AsyncClient | None = None) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def is_complete(self, booking_id: UUID) -> bool:
        url = f"{self.base_url}/bookings/{booking_id}/advance-payment"
        try:
            response = await self._client.get(url)
        except httpx.HTTPError as exc:
            logger.error(f"Payment status lookup failed for booking {booking_id}: {exc}")
            raise ExternalServiceError("payment-status", str(exc)) from exc

        if response.status_code == 404:
            return False
        if response.status_code >= 400:
            raise ExternalServiceError("payment-status", f"HTTP {response.status_code}")

        try:
            body = response.json()
        except ValueError as exc:
            logger.error(f"Payment status for booking {booking_id} is not JSON: {response.text[:200]!r}")
            raise ExternalServiceError("payment-status", "response is not JSON") from exc
        if not isinstance(body, dict):
            raise ExternalServiceError("payment-status", "response is not a JSON object")

        return body.get("status") == COMPLETED_PAYMENT_STATUS

    async def close(self) -> None:
        await self._client.aclose()


def build_payment_status_provider(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> PaymentStatusProvider:
    """Create the provider selected by ``settings.payment_status_backend``."""
    if settings.payment_status_backend == "http":
        if not settings.payment_status_url:
            raise RuntimeError("PAYMENT_STATUS_URL must be set when PAYMENT_STATUS_BACKEND=http")
        return HttpPaymentStatus(settings.payment_status_url, timeout=settings.payment_status_timeout_seconds)
    return LedgerPaymentStatus(session_factory)
