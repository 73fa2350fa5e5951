"""
Payment gateway port (application/ports) exposing a replaceable protocol.

Application depends on this Protocol; infrastructure implements adapters.
"""
from __future__ import annotations

from typing import Protocol, runtime_checkable

from application.dtos.payments import (
    CheckoutSession,
    CheckoutSessionRequest,
    GatewayCustomer,
    GatewayCustomerRequest,
    GatewayPayment,
    GatewayPaymentRequest,
)


@runtime_checkable
class PaymentGateway(Protocol):
    """Gateway protocol for the third-party payment provider.

    Implementations raise ``GatewayRejectedError`` when the gateway answers
    with an error status and ``GatewayUnavailableError`` when it cannot be
    reached.
    """

    provider: str

    async def create_customer(self, req: GatewayCustomerRequest) -> GatewayCustomer: ...

    async def create_checkout_session(self, req: CheckoutSessionRequest) -> CheckoutSession: ...

    async def create_payment(self, req: GatewayPaymentRequest) -> GatewayPayment: ...

    async def aclose(self) -> None: ...
