import json

import httpx
import pytest
import pytest_asyncio

from api.dependencies import get_notification_dispatcher, get_uow_factory
from application.services.webhook_signature import compute_signature
from main import app
from shared.codes import BusinessCode
from shared.codes.payment_codes import PaymentCode

from conftest import WEBHOOK_SECRET


@pytest_asyncio.fixture
async def client(uow_factory, dispatcher):
    app.dependency_overrides[get_uow_factory] = lambda: uow_factory
    app.dependency_overrides[get_notification_dispatcher] = lambda: dispatcher
    transport = httpx.ASGITransport(app=app)
    try:
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c
    finally:
        app.dependency_overrides.clear()


def _body(event_id="evt_1", event_type="payment.succeeded", data_id="pay_123"):
    return json.dumps({"id": event_id, "type": event_type, "data": {"id": data_id}}).encode("utf-8")


@pytest.mark.asyncio
async def test_webhook_with_valid_signature_returns_200(client, dispatcher, seeded):
    body = _body()
    resp = await client.post(
        "/api/v1/payments/webhook",
        content=body,
        headers={"content-type": "application/json", "yuno-signature": compute_signature(body, WEBHOOK_SECRET)},
    )

    assert resp.status_code == 200
    payload = resp.json()
    assert payload["code"] == BusinessCode.SUCCESS
    assert payload["data"]["status"] == "processed"
    assert len(dispatcher.named("send_payment_confirmation")) == 1


@pytest.mark.asyncio
async def test_webhook_with_bad_signature_returns_401(client, seeded):
    resp = await client.post(
        "/api/v1/payments/webhook",
        content=_body(),
        headers={"content-type": "application/json", "yuno-signature": "deadbeef"},
    )

    assert resp.status_code == 401
    payload = resp.json()
    assert payload["code"] == PaymentCode.SIGNATURE_INVALID
    assert payload["error"]["type"] == "SignatureInvalid"
    assert resp.headers.get("X-Request-ID")


@pytest.mark.asyncio
async def test_webhook_malformed_body_returns_200(client):
    body = b"{broken"
    resp = await client.post(
        "/api/v1/payments/webhook",
        content=body,
        headers={"content-type": "application/json", "x-yuno-signature": compute_signature(body, WEBHOOK_SECRET)},
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "ignored"


@pytest.mark.asyncio
async def test_webhook_unknown_transaction_returns_200(client):
    body = _body(data_id="pay_unknown")
    resp = await client.post(
        "/api/v1/payments/webhook",
        content=body,
        headers={"content-type": "application/json", "yuno-signature": compute_signature(body, WEBHOOK_SECRET)},
    )

    assert resp.status_code == 200
    assert resp.json()["data"]["status"] == "failed"


@pytest.mark.asyncio
async def test_get_missing_payment_returns_404(client):
    resp = await client.get("/api/v1/payments/999")

    assert resp.status_code == 404
    assert resp.json()["code"] == BusinessCode.NOT_FOUND


@pytest.mark.asyncio
async def test_create_and_cancel_order(client, seeded):
    resp = await client.post(
        "/api/v1/orders",
        json={
            "customer_id": seeded.customer.id,
            "items": [{"name": "Book", "price": "12.50", "quantity": 2}],
            "tax": "1.00",
        },
    )
    assert resp.status_code == 200
    order = resp.json()["data"]
    assert order["order_number"].startswith("ORD")
    assert order["status"] == "pending"
    assert order["subtotal"] == "25.00"
    assert order["total_amount"] == "26.00"

    listed = await client.get("/api/v1/orders", params={"customer_id": seeded.customer.id})
    assert [o["id"] for o in listed.json()["data"]][0] == order["id"]

    cancelled = await client.post(f"/api/v1/orders/{order['id']}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["data"]["status"] == "cancelled"


@pytest.mark.asyncio
async def test_cancel_paid_order_returns_409(client, seeded):
    body = _body()
    await client.post(
        "/api/v1/payments/webhook",
        content=body,
        headers={"yuno-signature": compute_signature(body, WEBHOOK_SECRET)},
    )

    resp = await client.post(f"/api/v1/orders/{seeded.order.id}/cancel")
    assert resp.status_code == 409


@pytest.mark.asyncio
async def test_payment_transactions_listing(client, seeded):
    resp = await client.get(f"/api/v1/payments/{seeded.payment.id}/transactions")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert [tx["provider_transaction_id"] for tx in data] == ["pay_123"]

    tx = await client.get(f"/api/v1/transactions/{seeded.tx.id}")
    assert tx.json()["data"]["status"] == "processing"


@pytest.mark.asyncio
async def test_health_reports_redis_disabled(client):
    resp = await client.get("/health")

    assert resp.status_code == 200
    data = resp.json()["data"]
    assert data["redis"] == "disabled"
    assert data["rate_limit"] is False
