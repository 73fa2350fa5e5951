"""
Yuno REST adapter.

Every call authenticates with the ``public-api-key`` / ``private-secret-key``
header pair. Payment creation additionally sends ``X-Idempotency-Key`` so a
retried request is deduplicated by the gateway.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

import httpx

from application.dtos.payments import (
    CheckoutSession,
    CheckoutSessionRequest,
    GatewayCustomer,
    GatewayCustomerRequest,
    GatewayPayment,
    GatewayPaymentRequest,
)
from core.settings import PaymentSettings, payment_settings
from infrastructure.external.payments.base import BasePaymentClient
from infrastructure.external.payments.exceptions import GatewayRejectedError


def _money(amount: Decimal, currency: str) -> dict[str, Any]:
    # Major units, e.g. {"currency": "USD", "value": 12.5}
    return {"currency": currency, "value": float(amount)}


class YunoClient(BasePaymentClient):
    provider = "yuno"

    def __init__(
        self,
        settings: Optional[PaymentSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        cfg = settings or payment_settings
        super().__init__(
            base_url=cfg.gateway.base_url,
            timeouts=cfg.timeouts.model_dump(),
            retry={"max": cfg.retry.max, "base": cfg.retry.base_backoff},
            transport=transport,
        )
        self._public_api_key = cfg.gateway.public_api_key or ""
        self._private_secret_key = cfg.gateway.private_secret_key or ""
        self._account_id = cfg.gateway.account_id

    def _default_headers(self) -> dict[str, str]:
        headers = super()._default_headers()
        headers["public-api-key"] = self._public_api_key
        headers["private-secret-key"] = self._private_secret_key
        return headers

    async def create_customer(self, req: GatewayCustomerRequest) -> GatewayCustomer:
        payload = req.model_dump(exclude_none=True)
        body = await self._post("/customers", payload)
        customer_id = body.get("id")
        if not customer_id:
            raise GatewayRejectedError(
                "Invalid gateway response: missing customer id",
                provider=self.provider,
                status_code=502,
                gateway_response=body,
            )
        self._log("gateway_customer_created", gateway_customer_id=customer_id)
        return GatewayCustomer(id=str(customer_id), raw=body)

    async def create_checkout_session(self, req: CheckoutSessionRequest) -> CheckoutSession:
        payload: dict[str, Any] = {
            "country": req.country,
            "amount": _money(req.amount, req.currency.value),
            "customer_id": req.customer_id,
            "customer": req.customer,
            "merchant_order_id": req.merchant_order_id,
            "payment_description": req.payment_description,
            "workflow": req.workflow,
        }
        account_id = req.account_id or self._account_id
        if account_id:
            payload["account_id"] = account_id
        body = await self._post("/checkout/sessions", payload)
        session_id = body.get("checkout_session")
        if not session_id:
            raise GatewayRejectedError(
                "Invalid gateway response: missing checkout_session",
                provider=self.provider,
                status_code=502,
                gateway_response=body,
            )
        self._log("gateway_checkout_session_created", merchant_order_id=req.merchant_order_id)
        return CheckoutSession(
            checkout_session=str(session_id),
            client_secret=body.get("client_secret"),
            raw=body,
        )

    async def create_payment(self, req: GatewayPaymentRequest) -> GatewayPayment:
        payload: dict[str, Any] = {
            "description": req.description,
            "merchant_order_id": req.merchant_order_id,
            "amount": _money(req.amount, req.currency.value),
            "payment_method": {"detail": {"type": "CARD", "capture": req.capture}},
        }
        if req.customer_session:
            payload["customer_session"] = req.customer_session
        if req.one_time_token:
            payload["payment_method"]["token"] = req.one_time_token
        account_id = req.account_id or self._account_id
        if account_id:
            payload["account_id"] = account_id

        body = await self._post(
            "/payments",
            payload,
            timeout_kind="payment",
            headers={"X-Idempotency-Key": req.idempotency_key},
            idempotent=True,
        )
        payment_id = body.get("id")
        if not payment_id:
            raise GatewayRejectedError(
                "Invalid gateway response: missing payment id",
                provider=self.provider,
                status_code=502,
                gateway_response=body,
            )
        self._log(
            "gateway_payment_created",
            gateway_payment_id=payment_id,
            status=body.get("status"),
            merchant_order_id=req.merchant_order_id,
        )
        return GatewayPayment(
            id=str(payment_id),
            status=body.get("status"),
            client_secret=body.get("client_secret"),
            raw=body,
        )
