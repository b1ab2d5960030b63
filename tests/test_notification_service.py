from uuid import uuid4

import httpx

from hostelhub.services.notification_service import NotificationService


def _service(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return NotificationService(webhook_url="http://notifier.test/hooks", http_client=client)


async def test_posts_payload_to_webhook():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(202)

    service = _service(handler)
    booking_id = uuid4()

    delivered = await service.notify_room_allocated(uuid4(), booking_id, "101", "02", confirmed=True)

    assert delivered is True
    assert seen[0].url == "http://notifier.test/hooks"
    body = seen[0].read().decode()
    assert '"type":"booking_confirmed"' in body.replace(" ", "")
    assert str(booking_id) in body
    await service.close()


async def test_delivery_failure_returns_false():
    service = _service(lambda request: httpx.Response(500))

    assert await service.notify_booking_rejected(uuid4(), uuid4(), "Full") is False
    await service.close()


async def test_without_webhook_logs_only(caplog):
    service = NotificationService()

    with caplog.at_level("INFO", logger="hostelhub.services.notification_service"):
        assert await service.notify_checked_out(uuid4(), uuid4()) is True

    assert "booking_checked_out" in caplog.text
