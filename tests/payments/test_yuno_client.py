import json
from decimal import Decimal

import httpx
import pytest

from application.dtos.payments import CheckoutSessionRequest, GatewayCustomerRequest, GatewayPaymentRequest
from core.settings import GatewayRetry, GatewaySettings, PaymentSettings
from domain.common.values import Currency
from infrastructure.external.payments import get_payment_gateway
from infrastructure.external.payments.exceptions import GatewayRejectedError, GatewayUnavailableError
from infrastructure.external.payments.yuno_client import YunoClient
from shared.codes.payment_codes import PaymentCode


def _settings():
    return PaymentSettings(
        gateway=GatewaySettings(
            base_url="https://gateway.test/v1",
            public_api_key="pk_live",
            private_secret_key="sk_live",
            account_id="acc_1",
        ),
        retry=GatewayRetry(max=1, base_backoff=0.01),
    )


def _payment_request(**overrides):
    data = dict(
        merchant_order_id="ORD123456ABCD",
        description="Payment for order ORD123456ABCD",
        amount=Decimal("47.50"),
        currency=Currency.USD,
        customer_session="sess_1",
        idempotency_key="key-1",
    )
    data.update(overrides)
    return GatewayPaymentRequest(**data)


def test_factory_returns_yuno_client():
    assert isinstance(get_payment_gateway("yuno"), YunoClient)
    with pytest.raises(ValueError):
        get_payment_gateway("paypal")


@pytest.mark.asyncio
async def test_create_payment_sends_auth_and_idempotency_headers():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "pay_1", "status": "PENDING"})

    client = YunoClient(_settings(), transport=httpx.MockTransport(handler))
    try:
        result = await client.create_payment(_payment_request())
    finally:
        await client.aclose()

    assert result.id == "pay_1"
    assert result.status == "PENDING"
    request = seen[0]
    assert request.url == httpx.URL("https://gateway.test/v1/payments")
    assert request.headers["public-api-key"] == "pk_live"
    assert request.headers["private-secret-key"] == "sk_live"
    assert request.headers["X-Idempotency-Key"] == "key-1"
    body = json.loads(request.content)
    assert body["amount"] == {"currency": "USD", "value": 47.5}
    assert body["account_id"] == "acc_1"
    assert body["customer_session"] == "sess_1"
    assert body["payment_method"]["detail"] == {"type": "CARD", "capture": True}


@pytest.mark.asyncio
async def test_customer_and_checkout_calls():
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if request.url.path.endswith("/customers"):
            assert "x-idempotency-key" not in request.headers
            assert "document" not in body
            return httpx.Response(200, json={"id": "cus_9", "merchant_customer_id": body["merchant_customer_id"]})
        assert body["workflow"] == "CHECKOUT"
        assert body["amount"] == {"currency": "EUR", "value": 10.0}
        return httpx.Response(200, json={"checkout_session": "cs_9", "client_secret": "sec"})

    client = YunoClient(_settings(), transport=httpx.MockTransport(handler))
    try:
        customer = await client.create_customer(
            GatewayCustomerRequest(merchant_customer_id="m1", first_name="Ada", email="ada@example.com")
        )
        session = await client.create_checkout_session(
            CheckoutSessionRequest(
                country="DE",
                amount=Decimal("10.00"),
                currency=Currency.EUR,
                customer_id="cus_9",
                customer={"first_name": "Ada"},
                merchant_order_id="ORD1",
                payment_description="Payment for order ORD1",
            )
        )
    finally:
        await client.aclose()

    assert customer.id == "cus_9"
    assert session.checkout_session == "cs_9"
    assert session.client_secret == "sec"


@pytest.mark.asyncio
async def test_gateway_error_status_is_surfaced_verbatim():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"code": "INVALID_REQUEST", "message": "Invalid customer session"})

    client = YunoClient(_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(GatewayRejectedError) as exc_info:
        await client.create_payment(_payment_request())
    await client.aclose()

    assert exc_info.value.status_code == 400
    assert exc_info.value.http_status == 400
    assert exc_info.value.message == "Invalid customer session"
    assert exc_info.value.code == PaymentCode.GATEWAY_REJECTED


@pytest.mark.asyncio
async def test_response_without_id_is_rejected():
    client = YunoClient(_settings(), transport=httpx.MockTransport(lambda r: httpx.Response(200, json={"status": "X"})))
    with pytest.raises(GatewayRejectedError) as exc_info:
        await client.create_payment(_payment_request())
    await client.aclose()
    assert exc_info.value.status_code == 502


@pytest.mark.asyncio
async def test_unreachable_gateway_is_retried_then_unavailable():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        raise httpx.ConnectError("connection refused", request=request)

    client = YunoClient(_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(GatewayUnavailableError) as exc_info:
        await client.create_customer(
            GatewayCustomerRequest(merchant_customer_id="m1", first_name="Ada", email="ada@example.com")
        )
    await client.aclose()

    assert len(attempts) == 2
    assert exc_info.value.http_status == 503
    assert exc_info.value.code == PaymentCode.GATEWAY_UNAVAILABLE


@pytest.mark.asyncio
async def test_read_timeout_only_retried_for_idempotent_calls():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request.url.path)
        raise httpx.ReadTimeout("timed out", request=request)

    client = YunoClient(_settings(), transport=httpx.MockTransport(handler))
    with pytest.raises(GatewayUnavailableError) as customer_exc:
        await client.create_customer(
            GatewayCustomerRequest(merchant_customer_id="m1", first_name="Ada", email="ada@example.com")
        )
    with pytest.raises(GatewayUnavailableError):
        await client.create_payment(_payment_request())
    await client.aclose()

    assert attempts.count("/v1/customers") == 1
    assert attempts.count("/v1/payments") == 2
    assert customer_exc.value.code == PaymentCode.GATEWAY_TIMEOUT
