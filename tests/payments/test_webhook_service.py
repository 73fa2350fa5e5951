import json
from datetime import timedelta

import pytest

from application.services.event_store import EventStore
from application.services.webhook_service import WebhookApplicationService, derive_event_id
from application.services.webhook_signature import compute_signature
from core.settings import PaymentSettings, WebhookSettings
from domain.common.exceptions import InvalidSignatureException
from domain.common.values import utcnow
from domain.order.entity import OrderStatus
from domain.payment.status import InternalStatus
from domain.webhook.entity import WebhookEvent, WebhookEventStatus

from conftest import WEBHOOK_SECRET, reload


def _service(uow_factory, dispatcher, **webhook):
    settings = PaymentSettings(webhook=WebhookSettings(secret=WEBHOOK_SECRET, **webhook))
    return WebhookApplicationService(uow_factory, dispatcher, settings=settings)


def _signed(payload, header="yuno-signature"):
    body = json.dumps(payload).encode("utf-8")
    return body, {header: compute_signature(body, WEBHOOK_SECRET)}


async def _event(uow_factory, provider_event_id):
    async with uow_factory(readonly=True) as uow:
        return await uow.webhook_event_repository.get_by_provider_event_id("yuno", provider_event_id)


@pytest.mark.asyncio
async def test_succeeded_event_is_processed_and_notified(uow_factory, dispatcher, seeded):
    service = _service(uow_factory, dispatcher)
    body, headers = _signed({"id": "evt_1", "type": "payment.succeeded", "data": {"id": "pay_123", "status": "SUCCEEDED"}})

    ack = await service.ingest(body, headers)

    assert ack.status == "processed"
    event = await _event(uow_factory, "evt_1")
    assert event.status == WebhookEventStatus.PROCESSED
    assert event.signature_verified is True
    assert event.related_payment_id == seeded.payment.id
    assert event.related_transaction_id == seeded.tx.id
    assert event.payload["data"]["id"] == "pay_123"
    assert len(dispatcher.named("send_payment_confirmation")) == 1
    assert dispatcher.named("update_inventory") == [{"order_id": seeded.order.id}]


@pytest.mark.asyncio
async def test_redelivery_is_acknowledged_without_reprocessing(uow_factory, dispatcher, seeded):
    service = _service(uow_factory, dispatcher)
    body, headers = _signed({"id": "evt_1", "type": "payment.succeeded", "data": {"id": "pay_123"}})

    first = await service.ingest(body, headers)
    second = await service.ingest(body, headers)

    assert first.status == "processed"
    assert second.status == "duplicate"
    assert second.event_id == first.event_id
    assert "processed" in second.message
    assert len(dispatcher.named("send_payment_confirmation")) == 1


@pytest.mark.asyncio
async def test_distinct_events_for_same_payment_confirm_once(uow_factory, dispatcher, seeded):
    service = _service(uow_factory, dispatcher)
    for event_id in ("evt_a", "evt_b"):
        body, headers = _signed({"id": event_id, "type": "payment.succeeded", "data": {"id": "pay_123"}})
        assert (await service.ingest(body, headers)).status == "processed"

    assert len(dispatcher.named("send_payment_confirmation")) == 1


@pytest.mark.asyncio
async def test_event_id_falls_back_to_body_digest(uow_factory, dispatcher, seeded):
    service = _service(uow_factory, dispatcher)
    body, headers = _signed({"type": "payment.cancelled", "data": {"id": "pay_123"}}, header="x-yuno-signature")

    await service.ingest(body, headers)

    provider_event_id = derive_event_id(json.loads(body), body)
    assert provider_event_id.startswith("evt_")
    assert (await _event(uow_factory, provider_event_id)) is not None
    assert (await service.ingest(body, headers)).status == "duplicate"


@pytest.mark.asyncio
async def test_bad_signature_is_rejected_and_not_recorded(uow_factory, dispatcher, seeded):
    service = _service(uow_factory, dispatcher)
    body, _ = _signed({"id": "evt_bad", "type": "payment.succeeded", "data": {"id": "pay_123"}})

    with pytest.raises(InvalidSignatureException):
        await service.ingest(body, {"yuno-signature": "0" * 64})
    with pytest.raises(InvalidSignatureException):
        await service.ingest(body, {})

    assert await _event(uow_factory, "evt_bad") is None
    state = await reload(uow_factory, payment_id=seeded.payment.id)
    assert state.payment.status == InternalStatus.PROCESSING


@pytest.mark.asyncio
async def test_signature_over_other_bytes_is_rejected(uow_factory, dispatcher, seeded):
    service = _service(uow_factory, dispatcher)
    body, headers = _signed({"id": "evt_1", "type": "payment.succeeded", "data": {"id": "pay_123"}})

    # Same JSON, different bytes
    reformatted = json.dumps(json.loads(body), indent=2).encode("utf-8")
    with pytest.raises(InvalidSignatureException):
        await service.ingest(reformatted, headers)


@pytest.mark.asyncio
async def test_missing_secret_rejects_everything(uow_factory, dispatcher):
    service = WebhookApplicationService(
        uow_factory, dispatcher, settings=PaymentSettings(webhook=WebhookSettings(secret=None))
    )
    body, headers = _signed({"id": "evt_1", "type": "payment.succeeded", "data": {"id": "pay_123"}})
    with pytest.raises(InvalidSignatureException):
        await service.ingest(body, headers)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        b"not json",
        b"[1, 2]",
        json.dumps({"id": "evt_m", "data": {"id": "pay_123"}}).encode(),
        json.dumps({"id": "evt_m", "type": "payment.succeeded"}).encode(),
        json.dumps({"id": "evt_m", "type": "payment.succeeded", "data": {}}).encode(),
    ],
)
async def test_malformed_body_is_acknowledged_and_not_recorded(uow_factory, dispatcher, body):
    service = _service(uow_factory, dispatcher)
    ack = await service.ingest(body, {"yuno-signature": compute_signature(body, WEBHOOK_SECRET)})

    assert ack.status == "ignored"
    assert ack.event_id is None
    assert await _event(uow_factory, "evt_m") is None


@pytest.mark.asyncio
async def test_unknown_event_type_is_recorded_as_processed(uow_factory, dispatcher, seeded):
    service = _service(uow_factory, dispatcher)
    body, headers = _signed({"id": "evt_u", "type": "payment.teleported", "data": {"id": "pay_123"}})

    ack = await service.ingest(body, headers)

    assert ack.status == "ignored"
    event = await _event(uow_factory, "evt_u")
    assert event.status == WebhookEventStatus.PROCESSED
    assert dispatcher.calls == []


@pytest.mark.asyncio
async def test_unknown_transaction_fails_event_then_retry_recovers(uow_factory, dispatcher):
    from conftest import seed_order
    from domain.payment.entity import Payment
    from domain.transaction.entity import Transaction

    service = _service(uow_factory, dispatcher)
    body, headers = _signed({"id": "evt_early", "type": "payment.succeeded", "data": {"id": "pay_late"}})

    ack = await service.ingest(body, headers)

    assert ack.status == "failed"
    event = await _event(uow_factory, "evt_early")
    assert event.status == WebhookEventStatus.FAILED
    assert event.processing_attempts == 1
    assert "pay_late" in event.error_message
    assert dispatcher.calls == []

    # The initiating request persists its transaction afterwards
    customer, order = await seed_order(uow_factory, email="late@example.com")
    async with uow_factory() as uow:
        payment = await uow.payment_repository.create(
            Payment.new(owner_id=customer.id, order_id=order.id, amount=order.total_amount, currency=order.currency)
        )
        await uow.transaction_repository.create(
            Transaction.new(
                payment_id=payment.id,
                provider_transaction_id="pay_late",
                amount=order.total_amount,
                currency=order.currency,
            )
        )

    summary = await service.retry_failed()

    assert summary["processed"] == 1
    event = await _event(uow_factory, "evt_early")
    assert event.status == WebhookEventStatus.PROCESSED
    state = await reload(uow_factory, payment_id=payment.id, order_id=order.id)
    assert state.payment.status == InternalStatus.COMPLETED
    assert state.order.status == OrderStatus.PAID
    assert len(dispatcher.named("send_payment_confirmation")) == 1


@pytest.mark.asyncio
async def test_retry_gives_up_after_max_retries(uow_factory, dispatcher):
    service = _service(uow_factory, dispatcher, max_retries=2)
    body, headers = _signed({"id": "evt_gone", "type": "payment.failed", "data": {"id": "pay_never"}})

    await service.ingest(body, headers)
    await service.retry_failed()
    summary = await service.retry_failed()

    assert summary["picked"] == 0
    event = await _event(uow_factory, "evt_gone")
    assert event.status == WebhookEventStatus.FAILED
    assert event.processing_attempts == 2


@pytest.mark.asyncio
async def test_dispatch_failure_does_not_fail_the_webhook(uow_factory, seeded):
    class ExplodingDispatcher:
        def __getattr__(self, name):
            def _boom(**kwargs):
                raise RuntimeError("broker down")
            return _boom

    service = _service(uow_factory, ExplodingDispatcher())
    body, headers = _signed({"id": "evt_1", "type": "payment.succeeded", "data": {"id": "pay_123"}})

    ack = await service.ingest(body, headers)

    assert ack.status == "processed"
    state = await reload(uow_factory, order_id=seeded.order.id)
    assert state.order.status == OrderStatus.PAID


async def _store_event(uow_factory, provider_event_id, *, status, attempts, age_seconds):
    event = WebhookEvent.received(
        provider="yuno",
        event_type="payment.succeeded",
        provider_event_id=provider_event_id,
        payload={"id": provider_event_id, "type": "payment.succeeded", "data": {"id": "pay_123"}},
        signature="sig",
        signature_verified=True,
    )
    async with uow_factory() as uow:
        stored = await uow.webhook_event_repository.add(event)
        stored.status = status
        stored.processing_attempts = attempts
        stored.updated_at = utcnow() - timedelta(seconds=age_seconds)
        await uow.webhook_event_repository.update(stored)
    return stored


@pytest.mark.asyncio
async def test_in_flight_retry_is_not_picked_up_until_stale(uow_factory):
    await _store_event(uow_factory, "evt_busy", status=WebhookEventStatus.RETRYING, attempts=1, age_seconds=5)
    await _store_event(uow_factory, "evt_stuck", status=WebhookEventStatus.RETRYING, attempts=1, age_seconds=900)

    events = await EventStore(uow_factory).list_retryable(utcnow() - timedelta(seconds=300))

    assert [e.provider_event_id for e in events] == ["evt_stuck"]


@pytest.mark.asyncio
async def test_stale_processing_rows_respect_max_retries(uow_factory):
    await _store_event(uow_factory, "evt_exhausted", status=WebhookEventStatus.PROCESSING, attempts=3, age_seconds=900)
    await _store_event(uow_factory, "evt_stale_received", status=WebhookEventStatus.RECEIVED, attempts=0, age_seconds=900)

    events = await EventStore(uow_factory).list_retryable(utcnow() - timedelta(seconds=300))

    assert [e.provider_event_id for e in events] == ["evt_stale_received"]


@pytest.mark.asyncio
async def test_attempt_is_counted_when_processing_starts(uow_factory):
    stored = await _store_event(uow_factory, "evt_start", status=WebhookEventStatus.RECEIVED, attempts=0, age_seconds=0)
    store = EventStore(uow_factory)

    first = await store.mark_processing(stored.id)
    second = await store.mark_processing(stored.id)

    assert first.status == WebhookEventStatus.PROCESSING
    assert first.processing_attempts == 1
    assert second.status == WebhookEventStatus.RETRYING
    assert second.processing_attempts == 2
