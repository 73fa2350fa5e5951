import pytest

from application.dtos.payments import (
    CheckoutSession,
    CheckoutSessionRequest,
    CreateCheckoutSessionIn,
    CreateCustomerIn,
    CreatePaymentIn,
    GatewayCustomer,
    GatewayCustomerRequest,
    GatewayPayment,
    GatewayPaymentRequest,
)
from application.ports.payment_gateway import PaymentGateway
from application.services.payment_service import PaymentApplicationService
from domain.common.exceptions import CustomerNotReadyException, OrderNotFoundException
from domain.payment.status import InternalStatus
from infrastructure.external.payments.exceptions import GatewayRejectedError, GatewayUnavailableError

from conftest import seed_order


class StubGateway:
    provider = "yuno"

    def __init__(self, *, payment_id="pay_1", status="PENDING", error=None):
        self.payment_id = payment_id
        self.status = status
        self.error = error
        self.customer_requests = []
        self.session_requests = []
        self.payment_requests = []

    async def create_customer(self, req: GatewayCustomerRequest) -> GatewayCustomer:
        self.customer_requests.append(req)
        return GatewayCustomer(id=f"cus_{len(self.customer_requests)}", raw={})

    async def create_checkout_session(self, req: CheckoutSessionRequest) -> CheckoutSession:
        self.session_requests.append(req)
        return CheckoutSession(checkout_session="cs_1", client_secret="secret_1", raw={})

    async def create_payment(self, req: GatewayPaymentRequest) -> GatewayPayment:
        self.payment_requests.append(req)
        if self.error is not None:
            raise self.error
        return GatewayPayment(id=self.payment_id, status=self.status, raw={"id": self.payment_id})

    async def aclose(self) -> None:
        return None


def test_stub_gateway_satisfies_port():
    assert isinstance(StubGateway(), PaymentGateway)


@pytest.mark.asyncio
async def test_initiate_payment_persists_payment_and_transaction(uow_factory):
    customer, order = await seed_order(uow_factory)
    gateway = StubGateway()
    service = PaymentApplicationService(uow_factory, gateway)

    result = await service.initiate_payment(
        CreatePaymentIn(order_id=order.id, customer_session="sess_1"), idempotency_key="key-1"
    )

    assert result.replayed is False
    assert result.gateway_payment_id == "pay_1"
    assert result.idempotency_key == "key-1"
    assert result.status == InternalStatus.PROCESSING.value
    req = gateway.payment_requests[0]
    assert req.idempotency_key == "key-1"
    assert req.merchant_order_id == order.order_number
    assert req.amount == order.total_amount

    async with uow_factory(readonly=True) as uow:
        tx = await uow.transaction_repository.get_by_idempotency_key("key-1")
        payment = await uow.payment_repository.get_by_id(result.payment_id)
        stored_order = await uow.order_repository.get_by_id(order.id)
    assert tx.provider_transaction_id == "pay_1"
    assert tx.status == InternalStatus.PROCESSING
    assert tx.gateway_status == "PENDING"
    assert payment.gateway_payment_id == "pay_1"
    assert payment.owner_id == customer.id
    assert stored_order.payment_id == payment.id


@pytest.mark.asyncio
async def test_same_key_returns_existing_without_calling_gateway(uow_factory):
    _, order = await seed_order(uow_factory)
    gateway = StubGateway()
    service = PaymentApplicationService(uow_factory, gateway)
    payload = CreatePaymentIn(order_id=order.id, customer_session="sess_1")

    first = await service.initiate_payment(payload, idempotency_key="key-1")
    second = await service.initiate_payment(payload, idempotency_key="key-1")

    assert len(gateway.payment_requests) == 1
    assert second.replayed is True
    assert second.transaction_id == first.transaction_id
    assert second.payment_id == first.payment_id


@pytest.mark.asyncio
async def test_derived_key_is_stable_across_retries(uow_factory):
    _, order = await seed_order(uow_factory)
    gateway = StubGateway()
    service = PaymentApplicationService(uow_factory, gateway)
    payload = CreatePaymentIn(order_id=order.id, customer_session="sess_1")

    first = await service.initiate_payment(payload)
    second = await service.initiate_payment(payload)

    assert len(first.idempotency_key) == 64
    assert second.idempotency_key == first.idempotency_key
    assert second.replayed is True
    assert len(gateway.payment_requests) == 1


@pytest.mark.asyncio
async def test_gateway_replaying_payment_id_returns_existing_transaction(uow_factory):
    _, order = await seed_order(uow_factory)
    gateway = StubGateway(payment_id="pay_same")
    service = PaymentApplicationService(uow_factory, gateway)
    payload = CreatePaymentIn(order_id=order.id, customer_session="sess_1")

    first = await service.initiate_payment(payload, idempotency_key="key-1")
    second = await service.initiate_payment(payload, idempotency_key="key-2")

    assert len(gateway.payment_requests) == 2
    assert second.replayed is True
    assert second.transaction_id == first.transaction_id


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error",
    [
        GatewayUnavailableError(provider="yuno", timeout=True),
        GatewayRejectedError("Invalid customer session", provider="yuno", status_code=400),
    ],
)
async def test_gateway_failure_persists_nothing(uow_factory, error):
    _, order = await seed_order(uow_factory)
    service = PaymentApplicationService(uow_factory, StubGateway(error=error))

    with pytest.raises(type(error)):
        await service.initiate_payment(
            CreatePaymentIn(order_id=order.id, customer_session="sess_1"), idempotency_key="key-1"
        )

    async with uow_factory(readonly=True) as uow:
        assert await uow.transaction_repository.get_by_idempotency_key("key-1") is None
        assert await uow.payment_repository.find_open_for_order(order.id) is None


@pytest.mark.asyncio
async def test_customer_without_gateway_id_is_not_ready(uow_factory):
    _, order = await seed_order(uow_factory, gateway_customer_id=None)
    gateway = StubGateway()
    service = PaymentApplicationService(uow_factory, gateway)

    with pytest.raises(CustomerNotReadyException):
        await service.initiate_payment(CreatePaymentIn(order_id=order.id, customer_session="sess_1"))
    assert gateway.payment_requests == []


@pytest.mark.asyncio
async def test_missing_order(uow_factory):
    service = PaymentApplicationService(uow_factory, StubGateway())
    with pytest.raises(OrderNotFoundException):
        await service.create_checkout_session(CreateCheckoutSessionIn(order_id=404))


@pytest.mark.asyncio
async def test_checkout_session_payment_is_reused_by_initiation(uow_factory):
    customer, order = await seed_order(uow_factory)
    gateway = StubGateway()
    service = PaymentApplicationService(uow_factory, gateway)

    session = await service.create_checkout_session(CreateCheckoutSessionIn(order_id=order.id))

    req = gateway.session_requests[0]
    assert req.country == "US"
    assert req.customer_id == "cus_123"
    assert req.merchant_order_id == order.order_number
    assert req.payment_description == f"Payment for order {order.order_number}"
    assert req.customer["first_name"] == "Ada"
    assert req.customer["last_name"] == "Lovelace"
    assert req.customer["billing_address"] == {"address_line_1": "1 Main St", "city": "Austin", "country": "US"}
    assert "phone" not in req.customer

    async with uow_factory(readonly=True) as uow:
        payment = await uow.payment_repository.get_by_id(session.payment_id)
    assert payment.status == InternalStatus.PENDING
    assert payment.metadata["checkout_session"] == "cs_1"
    assert payment.metadata["expires_at"] == session.expires_at.isoformat()

    result = await service.initiate_payment(CreatePaymentIn(order_id=order.id, customer_session="cs_1"))
    assert result.payment_id == session.payment_id


@pytest.mark.asyncio
async def test_create_customer_is_idempotent_by_email(uow_factory):
    gateway = StubGateway()
    service = PaymentApplicationService(uow_factory, gateway)
    payload = CreateCustomerIn(
        name="Grace Brewster Hopper",
        email="Grace@Example.com",
        phone={"country_code": "1", "number": "5551234"},
        document={"type": "PASSPORT", "number": "X123"},
        address={"street": "2 Navy Way", "zip": "20001", "country": "usa"},
    )

    first = await service.create_customer(payload)
    second = await service.create_customer(payload)

    assert first.created is True
    assert second.created is False
    assert second.customer.id == first.customer.id
    assert first.customer.email == "grace@example.com"
    assert first.customer.gateway_customer_id == "cus_1"
    assert len(gateway.customer_requests) == 1

    req = gateway.customer_requests[0]
    assert req.first_name == "Grace"
    assert req.last_name == "Brewster Hopper"
    # Three-letter country is dropped, so the configured default applies
    assert req.country == "US"
    assert req.billing_address == {"address_line_1": "2 Navy Way", "zip_code": "20001"}
    assert req.document == {"document_type": "PASSPORT", "document_number": "X123"}
    assert req.phone == {"country_code": "1", "number": "5551234"}
