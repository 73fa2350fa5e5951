"""
Payments API routes.

Checkout sessions, idempotent payment initiation, read endpoints and the
gateway webhook. Keep this thin: no gateway details here.
"""
from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, Header, Request

from api.dependencies import (
    enforce_payment_rate_limit,
    get_payment_service,
    get_webhook_service,
)
from application.dtos.payments import (
    CheckoutSessionOut,
    CreateCheckoutSessionIn,
    CreatePaymentIn,
    PaymentInitiationOut,
    PaymentOut,
    TransactionOut,
    WebhookAck,
)
from application.services.payment_service import PaymentApplicationService
from application.services.webhook_service import WebhookApplicationService
from core.response import Response as ApiResponse, success_response


router = APIRouter(prefix="/payments", tags=["Payments"])


@router.post(
    "/checkout-sessions",
    summary="Create checkout session",
    response_model=ApiResponse[CheckoutSessionOut],
    dependencies=[Depends(enforce_payment_rate_limit)],
)
async def create_checkout_session(
    payload: CreateCheckoutSessionIn,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    session = await service.create_checkout_session(payload)
    return success_response(data=session, message="Checkout session created")


@router.post(
    "",
    summary="Create payment",
    response_model=ApiResponse[PaymentInitiationOut],
    dependencies=[Depends(enforce_payment_rate_limit)],
)
async def create_payment(
    payload: CreatePaymentIn,
    idempotency_key: Optional[str] = Header(default=None, alias="X-Idempotency-Key"),
    service: PaymentApplicationService = Depends(get_payment_service),
):
    """
    Retries with the same ``X-Idempotency-Key`` (or, without the header, for
    the same order and amount) return the first attempt's result.
    """
    result = await service.initiate_payment(payload, idempotency_key=idempotency_key)
    message = "Payment already initiated" if result.replayed else "Payment initiated"
    return success_response(data=result, message=message)


@router.post("/webhook", summary="Gateway webhook", response_model=ApiResponse[WebhookAck])
async def payments_webhook(
    request: Request,
    service: WebhookApplicationService = Depends(get_webhook_service),
):
    # Signature is computed over the exact bytes received
    raw_body = await request.body()
    ack = await service.ingest(raw_body, request.headers)
    return success_response(data=ack, message=ack.message)


@router.get("/{payment_id}", summary="Get payment", response_model=ApiResponse[PaymentOut])
async def get_payment(
    payment_id: int,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    payment = await service.get_payment(payment_id)
    return success_response(data=payment)


@router.get(
    "/{payment_id}/transactions",
    summary="List payment transactions",
    response_model=ApiResponse[List[TransactionOut]],
)
async def list_payment_transactions(
    payment_id: int,
    service: PaymentApplicationService = Depends(get_payment_service),
):
    transactions = await service.list_transactions(payment_id)
    return success_response(data=transactions)
