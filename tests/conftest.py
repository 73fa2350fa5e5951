"""Pytest bootstrap configuration.

Environment variables are set before any application module is imported,
since settings are read at import time.
"""
import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("PAYMENT__WEBHOOK__SECRET", "whsec_test")
os.environ.setdefault("PAYMENT__GATEWAY__PUBLIC_API_KEY", "pk_test")
os.environ.setdefault("PAYMENT__GATEWAY__PRIVATE_SECRET_KEY", "sk_test")
os.environ.setdefault("PAYMENT__GATEWAY__ACCOUNT_ID", "acc_test")

from decimal import Decimal  # noqa: E402
from functools import partial  # noqa: E402
from types import SimpleNamespace  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from domain.customer.entity import Customer  # noqa: E402
from domain.order.entity import Order, OrderItem  # noqa: E402
from domain.payment.entity import Payment  # noqa: E402
from domain.payment.status import InternalStatus  # noqa: E402
from domain.transaction.entity import Transaction  # noqa: E402
from infrastructure.database import build_engine, build_session_factory, create_tables  # noqa: E402
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork  # noqa: E402


WEBHOOK_SECRET = os.environ["PAYMENT__WEBHOOK__SECRET"]


class RecordingDispatcher:
    """NotificationDispatcher that remembers every call."""

    def __init__(self):
        self.calls = []

    def _record(self, method, **kwargs):
        self.calls.append((method, kwargs))

    def send_payment_confirmation(self, **kwargs):
        self._record("send_payment_confirmation", **kwargs)

    def send_payment_failure(self, **kwargs):
        self._record("send_payment_failure", **kwargs)

    def send_refund_notice(self, **kwargs):
        self._record("send_refund_notice", **kwargs)

    def notify_dispute_team(self, **kwargs):
        self._record("notify_dispute_team", **kwargs)

    def process_chargeback(self, **kwargs):
        self._record("process_chargeback", **kwargs)

    def update_inventory(self, **kwargs):
        self._record("update_inventory", **kwargs)

    def named(self, method):
        return [kwargs for name, kwargs in self.calls if name == method]


@pytest_asyncio.fixture
async def uow_factory():
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await create_tables(engine)
    try:
        yield partial(SQLAlchemyUnitOfWork, build_session_factory(engine))
    finally:
        await engine.dispose()


@pytest.fixture
def dispatcher():
    return RecordingDispatcher()


async def seed_order(uow_factory, *, gateway_customer_id="cus_123", email="ada@example.com"):
    async with uow_factory() as uow:
        customer = Customer.register(
            name="Ada Lovelace",
            email=email,
            address={"address_line_1": "1 Main St", "city": "Austin", "country": "US"},
        )
        if gateway_customer_id:
            customer.link_gateway_customer(gateway_customer_id)
        customer = await uow.customer_repository.create(customer)
        order = await uow.order_repository.create(
            Order.create(
                owner_id=customer.id,
                items=[OrderItem(name="Widget", price=Decimal("20.00"), quantity=2)],
                tax=Decimal("3.50"),
                shipping=Decimal("5.00"),
                discount=Decimal("1.00"),
            )
        )
    return customer, order


@pytest_asyncio.fixture
async def seeded(uow_factory):
    """Customer, order, pending payment and its pending gateway transaction."""
    customer, order = await seed_order(uow_factory)
    async with uow_factory() as uow:
        payment = Payment.new(
            owner_id=customer.id,
            order_id=order.id,
            amount=order.total_amount,
            currency=order.currency,
            status=InternalStatus.PROCESSING,
        )
        payment.gateway_payment_id = "pay_123"
        payment = await uow.payment_repository.create(payment)
        tx = await uow.transaction_repository.create(
            Transaction.new(
                payment_id=payment.id,
                provider_transaction_id="pay_123",
                amount=order.total_amount,
                currency=order.currency,
                status=InternalStatus.PROCESSING,
                gateway_status="PENDING",
                idempotency_key="key-123",
            )
        )
        order.attach_payment(payment.id)
        order = await uow.order_repository.update(order)
    return SimpleNamespace(customer=customer, order=order, payment=payment, tx=tx)


async def reload(uow_factory, *, payment_id=None, transaction_id=None, order_id=None):
    async with uow_factory(readonly=True) as uow:
        return SimpleNamespace(
            payment=await uow.payment_repository.get_by_id(payment_id) if payment_id else None,
            tx=await uow.transaction_repository.get_by_id(transaction_id) if transaction_id else None,
            order=await uow.order_repository.get_by_id(order_id) if order_id else None,
        )
