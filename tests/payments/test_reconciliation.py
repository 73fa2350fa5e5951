from decimal import Decimal

import pytest

from application.services.event_router import EventRouter
from domain.common.exceptions import TransactionNotFoundException
from domain.order.entity import OrderStatus
from domain.payment.entity import PaymentType
from domain.payment.status import InternalStatus

from conftest import reload


async def _route(uow_factory, event_type, data):
    async with uow_factory() as uow:
        return await EventRouter().route(uow, event_type, data)


def _methods(outcome):
    return [n.method for n in outcome.notifications]


@pytest.mark.asyncio
async def test_succeeded_completes_transaction_payment_and_order(uow_factory, seeded):
    outcome = await _route(uow_factory, "payment.succeeded", {"id": "pay_123", "status": "SUCCEEDED"})

    assert outcome.payment_id == seeded.payment.id
    assert outcome.transaction_id == seeded.tx.id
    assert _methods(outcome).count("send_payment_confirmation") == 1
    assert "update_inventory" in _methods(outcome)

    state = await reload(
        uow_factory, payment_id=seeded.payment.id, transaction_id=seeded.tx.id, order_id=seeded.order.id
    )
    assert state.tx.status == InternalStatus.COMPLETED
    assert state.tx.gateway_status == "SUCCEEDED"
    assert state.payment.status == InternalStatus.COMPLETED
    assert state.payment.metadata["webhook_confirmed"] is True
    assert state.order.status == OrderStatus.PAID
    assert state.order.payment_id == seeded.payment.id
    assert state.order.paid_at is not None


@pytest.mark.asyncio
async def test_second_succeeded_event_sends_no_second_confirmation(uow_factory, seeded):
    await _route(uow_factory, "payment.succeeded", {"id": "pay_123"})
    again = await _route(uow_factory, "payment.succeeded", {"id": "pay_123"})

    assert again.notifications == []


@pytest.mark.asyncio
async def test_failed_after_succeeded_is_ignored(uow_factory, seeded):
    await _route(uow_factory, "payment.succeeded", {"id": "pay_123"})
    outcome = await _route(uow_factory, "payment.failed", {"id": "pay_123", "failure_reason": "late decline"})

    assert outcome.notifications == []
    state = await reload(
        uow_factory, payment_id=seeded.payment.id, transaction_id=seeded.tx.id, order_id=seeded.order.id
    )
    assert state.tx.status == InternalStatus.COMPLETED
    assert state.payment.status == InternalStatus.COMPLETED
    assert state.payment.failure_reason is None
    assert state.order.status == OrderStatus.PAID


@pytest.mark.asyncio
async def test_failed_records_reason_and_leaves_order_pending(uow_factory, seeded):
    outcome = await _route(uow_factory, "payment.failed", {"id": "pay_123", "failure_reason": "Insufficient funds"})

    assert _methods(outcome) == ["send_payment_failure"]
    assert outcome.notifications[0].kwargs["reason"] == "Insufficient funds"
    state = await reload(
        uow_factory, payment_id=seeded.payment.id, transaction_id=seeded.tx.id, order_id=seeded.order.id
    )
    assert state.tx.status == InternalStatus.FAILED
    assert state.payment.status == InternalStatus.FAILED
    assert state.payment.failure_reason == "Insufficient funds"
    assert state.order.status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_failed_without_reason_uses_default(uow_factory, seeded):
    await _route(uow_factory, "payment.failed", {"id": "pay_123"})
    state = await reload(uow_factory, payment_id=seeded.payment.id)
    assert state.payment.failure_reason == "Payment failed"


@pytest.mark.asyncio
async def test_cancelled_updates_status_only(uow_factory, seeded):
    outcome = await _route(uow_factory, "payment.cancelled", {"id": "pay_123"})

    assert outcome.notifications == []
    state = await reload(
        uow_factory, payment_id=seeded.payment.id, transaction_id=seeded.tx.id, order_id=seeded.order.id
    )
    assert state.tx.status == InternalStatus.CANCELLED
    assert state.payment.status == InternalStatus.CANCELLED
    assert state.order.status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_unknown_transaction_raises_and_changes_nothing(uow_factory, seeded):
    with pytest.raises(TransactionNotFoundException):
        await _route(uow_factory, "payment.succeeded", {"id": "pay_missing"})

    state = await reload(uow_factory, payment_id=seeded.payment.id, order_id=seeded.order.id)
    assert state.payment.status == InternalStatus.PROCESSING
    assert state.order.status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_unknown_event_type_returns_none(uow_factory, seeded):
    assert await _route(uow_factory, "payment.exploded", {"id": "pay_123"}) is None
    state = await reload(uow_factory, payment_id=seeded.payment.id)
    assert state.payment.status == InternalStatus.PROCESSING


@pytest.mark.asyncio
async def test_refund_creates_new_payment_and_transaction(uow_factory, seeded):
    await _route(uow_factory, "payment.succeeded", {"id": "pay_123"})
    outcome = await _route(
        uow_factory,
        "payment.refunded",
        {"id": "ref_1", "payment_id": "pay_123", "amount": {"value": 10, "currency": "USD"}, "reason": "damaged"},
    )

    assert outcome.payment_id != seeded.payment.id
    assert outcome.transaction_id != seeded.tx.id
    assert _methods(outcome) == ["send_refund_notice"]

    refund = await reload(uow_factory, payment_id=outcome.payment_id, transaction_id=outcome.transaction_id)
    assert refund.payment.payment_type == PaymentType.REFUND
    assert refund.payment.status == InternalStatus.COMPLETED
    assert refund.payment.amount == Decimal("10.00")
    assert refund.payment.metadata["original_payment_id"] == seeded.payment.id
    assert refund.payment.metadata["refund_reason"] == "damaged"
    assert refund.tx.provider_transaction_id == "ref_1"
    assert refund.tx.amount == Decimal("10.00")

    original = await reload(
        uow_factory, payment_id=seeded.payment.id, transaction_id=seeded.tx.id, order_id=seeded.order.id
    )
    assert original.payment.status == InternalStatus.REFUNDED
    assert original.payment.amount == seeded.payment.amount
    assert original.payment.refund_amount == Decimal("10.00")
    assert original.tx.status == InternalStatus.REFUNDED
    assert original.tx.amount == seeded.tx.amount
    assert original.tx.net_amount == seeded.tx.net_amount
    # Order follows only successful payments
    assert original.order.status == OrderStatus.PAID


@pytest.mark.asyncio
async def test_refund_reusing_the_payment_id_gets_distinct_transaction(uow_factory, seeded):
    await _route(uow_factory, "payment.succeeded", {"id": "pay_123"})
    outcome = await _route(uow_factory, "payment.refunded", {"id": "pay_123"})

    refund = await reload(uow_factory, transaction_id=outcome.transaction_id)
    assert refund.tx.provider_transaction_id == "pay_123-refund"
    # Full refund when the event carries no amount
    assert refund.tx.amount == seeded.tx.amount

    again = await _route(uow_factory, "payment.refunded", {"id": "pay_123"})
    assert again.action == "noop"
    assert again.transaction_id == outcome.transaction_id


@pytest.mark.asyncio
async def test_dispute_marks_payment_and_transaction(uow_factory, seeded):
    await _route(uow_factory, "payment.succeeded", {"id": "pay_123"})
    outcome = await _route(
        uow_factory,
        "payment.dispute_created",
        {"id": "dsp_1", "payment_id": "pay_123", "reason": "fraudulent", "amount": 47.5},
    )

    assert _methods(outcome) == ["notify_dispute_team"]
    dispute = outcome.notifications[0].kwargs["dispute"]
    assert dispute["dispute_id"] == "dsp_1"
    assert dispute["dispute_reason"] == "fraudulent"

    state = await reload(
        uow_factory, payment_id=seeded.payment.id, transaction_id=seeded.tx.id, order_id=seeded.order.id
    )
    assert state.payment.status == InternalStatus.DISPUTED
    assert state.payment.metadata["dispute_id"] == "dsp_1"
    assert state.tx.status == InternalStatus.DISPUTED
    assert state.order.status == OrderStatus.PAID


@pytest.mark.asyncio
async def test_chargeback_flags_payment_type(uow_factory, seeded):
    await _route(uow_factory, "payment.succeeded", {"id": "pay_123"})
    outcome = await _route(
        uow_factory,
        "payment.chargeback",
        {"id": "cb_1", "payment_id": "pay_123", "reason": "not received", "amount": "47.50"},
    )

    assert _methods(outcome) == ["process_chargeback"]
    state = await reload(uow_factory, payment_id=seeded.payment.id)
    assert state.payment.status == InternalStatus.DISPUTED
    assert state.payment.payment_type == PaymentType.CHARGEBACK
    assert state.payment.metadata["chargeback_id"] == "cb_1"
    assert state.payment.metadata["chargeback_amount"] == "47.50"


@pytest.mark.asyncio
async def test_late_succeeded_does_not_clear_a_dispute(uow_factory, seeded):
    await _route(uow_factory, "payment.succeeded", {"id": "pay_123"})
    await _route(uow_factory, "payment.dispute_created", {"id": "dsp_1", "payment_id": "pay_123"})

    late = await _route(uow_factory, "payment.succeeded", {"id": "pay_123", "status": "SUCCEEDED"})

    assert late.notifications == []
    state = await reload(uow_factory, payment_id=seeded.payment.id, transaction_id=seeded.tx.id)
    assert state.payment.status == InternalStatus.DISPUTED
    assert state.tx.status == InternalStatus.DISPUTED


@pytest.mark.asyncio
async def test_partial_refund_uses_refund_amount(uow_factory, seeded):
    await _route(uow_factory, "payment.succeeded", {"id": "pay_123"})
    outcome = await _route(
        uow_factory,
        "payment.refunded",
        {"id": "rf_1", "original_payment_id": "pay_123", "refund_amount": "10.00", "amount": "47.50"},
    )

    refund = await reload(uow_factory, payment_id=outcome.payment_id, transaction_id=outcome.transaction_id)
    assert refund.payment.amount == Decimal("10.00")
    assert refund.tx.amount == Decimal("10.00")

    original = await reload(uow_factory, payment_id=seeded.payment.id)
    assert original.payment.refund_amount == Decimal("10.00")
    assert original.payment.amount == Decimal("47.50")
