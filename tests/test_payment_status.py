from uuid import uuid4

import httpx
import pytest

from hostelhub.config import Settings
from hostelhub.core.exceptions import ExternalServiceError
from hostelhub.domain.booking_state import BookingStatus
from hostelhub.models.payment import AdvancePayment
from hostelhub.services.payment_status_service import (
    HttpPaymentStatus,
    LedgerPaymentStatus,
    build_payment_status_provider,
)


async def test_ledger_reports_completed_payments(db, session_factory, hostel_factory, booking_at):
    hostel = await hostel_factory()
    booking = await booking_at(hostel, BookingStatus.APPROVED, paid=False)
    ledger = LedgerPaymentStatus(session_factory)

    assert await ledger.is_complete(booking.id) is False

    payment = AdvancePayment(
        booking_id=booking.id,
        student_id=booking.student_id,
        amount=booking.advance_amount,
        payment_method="upi",
        status="pending",
    )
    db.add(payment)
    await db.commit()
    assert await ledger.is_complete(booking.id) is False

    payment.status = "completed"
    await db.commit()
    assert await ledger.is_complete(booking.id) is True


def _client(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_http_provider_reads_status():
    booking_id = uuid4()
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"status": "completed"})

    provider = HttpPaymentStatus("http://payments.local/", client=_client(handler))

    assert await provider.is_complete(booking_id) is True
    assert seen == [f"/bookings/{booking_id}/advance-payment"]
    await provider.close()


async def test_http_provider_pending_and_missing():
    statuses = iter([httpx.Response(200, json={"status": "pending"}), httpx.Response(404)])
    provider = HttpPaymentStatus("http://payments.local", client=_client(lambda request: next(statuses)))

    assert await provider.is_complete(uuid4()) is False
    assert await provider.is_complete(uuid4()) is False


async def test_http_provider_server_error_is_surfaced():
    provider = HttpPaymentStatus("http://payments.local", client=_client(lambda request: httpx.Response(502)))

    with pytest.raises(ExternalServiceError) as exc_info:
        await provider.is_complete(uuid4())
    assert exc_info.value.status_code == 503


async def test_http_provider_network_error_is_surfaced():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    provider = HttpPaymentStatus("http://payments.local", client=_client(handler))

    with pytest.raises(ExternalServiceError):
        await provider.is_complete(uuid4())


def test_build_provider(session_factory):
    assert isinstance(build_payment_status_provider(Settings(), session_factory), LedgerPaymentStatus)

    http = build_payment_status_provider(
        Settings(payment_status_backend="http", payment_status_url="http://payments.local"), session_factory
    )
    assert isinstance(http, HttpPaymentStatus)

    with pytest.raises(RuntimeError):
        build_payment_status_provider(Settings(payment_status_backend="http"), session_factory)


async def test_http_provider_non_json_body_is_surfaced():
    provider = HttpPaymentStatus(
        "http://payments.local", client=_client(lambda request: httpx.Response(200, text="<html>ok</html>"))
    )

    with pytest.raises(ExternalServiceError):
        await provider.is_complete(uuid4())


async def test_http_provider_non_object_body_is_surfaced():
    provider = HttpPaymentStatus(
        "http://payments.local", client=_client(lambda request: httpx.Response(200, json=["completed"]))
    )

    with pytest.raises(ExternalServiceError):
        await provider.is_complete(uuid4())
