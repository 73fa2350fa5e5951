"""
Payment DTOs (Pydantic v2) used at application boundaries.

Two families live here: the requests/results exchanged with the gateway port,
and the request/response bodies of the HTTP API.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pydantic.types import condecimal, conint

from domain.common.values import Currency


def _upper_currency(v: Any) -> Any:
    if isinstance(v, str):
        return v.strip().upper()
    return v


# --- Gateway port -----------------------------------------------------------

class GatewayCustomerRequest(BaseModel):
    merchant_customer_id: str
    first_name: str
    last_name: str = ""
    email: str
    country: str = "US"
    document: Optional[dict[str, str]] = None
    phone: Optional[dict[str, str]] = None
    billing_address: Optional[dict[str, str]] = None
    shipping_address: Optional[dict[str, str]] = None


class GatewayCustomer(BaseModel):
    id: str
    raw: dict[str, Any] = Field(default_factory=dict)


class CheckoutSessionRequest(BaseModel):
    country: str
    amount: Decimal
    currency: Currency
    customer_id: str
    customer: dict[str, Any]
    merchant_order_id: str
    payment_description: str
    account_id: Optional[str] = None
    workflow: str = "CHECKOUT"


class CheckoutSession(BaseModel):
    checkout_session: str
    client_secret: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)


class GatewayPaymentRequest(BaseModel):
    merchant_order_id: str
    description: str
    amount: Decimal
    currency: Currency
    customer_session: Optional[str] = None
    one_time_token: Optional[str] = None
    account_id: Optional[str] = None
    capture: bool = True
    idempotency_key: str


class GatewayPayment(BaseModel):
    """Payment as returned by the gateway; ``status`` is the raw gateway string."""
    id: str
    status: Optional[str] = None
    client_secret: Optional[str] = None
    raw: dict[str, Any] = Field(default_factory=dict)


# --- HTTP API inputs --------------------------------------------------------

class DocumentIn(BaseModel):
    type: str
    number: str


class PhoneIn(BaseModel):
    country_code: str
    number: str


class AddressIn(BaseModel):
    street: Optional[str] = None
    address_line_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    country: Optional[str] = None


class CreateCustomerIn(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    email: EmailStr
    phone: Optional[PhoneIn] = None
    document: Optional[DocumentIn] = None
    address: Optional[AddressIn] = None
    billing_address: Optional[AddressIn] = None
    shipping_address: Optional[AddressIn] = None


class OrderItemIn(BaseModel):
    name: str = Field(..., min_length=1)
    price: condecimal(ge=0, decimal_places=2)  # type: ignore[valid-type]
    quantity: conint(ge=1)  # type: ignore[valid-type]
    description: Optional[str] = None
    sku: Optional[str] = None
    category: Optional[str] = None


class CreateOrderIn(BaseModel):
    customer_id: int
    items: list[OrderItemIn] = Field(..., min_length=1)
    currency: Currency = Currency.USD
    tax: condecimal(ge=0, decimal_places=2) = Decimal("0")  # type: ignore[valid-type]
    shipping: condecimal(ge=0, decimal_places=2) = Decimal("0")  # type: ignore[valid-type]
    discount: condecimal(ge=0, decimal_places=2) = Decimal("0")  # type: ignore[valid-type]
    shipping_address: Optional[AddressIn] = None
    billing_address: Optional[AddressIn] = None
    notes: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, v: Any) -> Any:
        return _upper_currency(v)


class CreateCheckoutSessionIn(BaseModel):
    order_id: int
    country: Optional[str] = Field(default=None, min_length=2, max_length=2)


class CreatePaymentIn(BaseModel):
    order_id: int
    customer_session: str = Field(..., min_length=1)
    one_time_token: Optional[str] = None


# --- HTTP API outputs -------------------------------------------------------

class _Out(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    @field_validator("*", mode="before")
    @classmethod
    def _enum_to_value(cls, v: Any) -> Any:
        return v.value if isinstance(v, Enum) else v


class CustomerOut(_Out):
    id: int
    name: str
    email: str
    merchant_customer_id: str
    gateway_customer_id: Optional[str] = None
    address: Optional[dict[str, str]] = None
    created_at: Optional[datetime] = None


class CreateCustomerOut(BaseModel):
    customer: CustomerOut
    created: bool


class OrderItemOut(_Out):
    name: str
    price: Decimal
    quantity: int
    description: Optional[str] = None
    sku: Optional[str] = None
    category: Optional[str] = None


class OrderOut(_Out):
    id: int
    owner_id: int
    order_number: str
    items: list[OrderItemOut]
    subtotal: Decimal
    tax: Decimal
    shipping: Decimal
    discount: Decimal
    total_amount: Decimal
    currency: str
    status: str
    payment_id: Optional[int] = None
    paid_at: Optional[datetime] = None
    shipping_address: Optional[dict[str, str]] = None
    billing_address: Optional[dict[str, str]] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None


class PaymentOut(_Out):
    id: int
    owner_id: int
    order_id: Optional[int] = None
    amount: Decimal
    currency: str
    status: str
    payment_type: str
    gateway_payment_id: Optional[str] = None
    confirmation_number: str
    description: Optional[str] = None
    failure_reason: Optional[str] = None
    processed_at: Optional[datetime] = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class TransactionOut(_Out):
    id: int
    payment_id: int
    provider: str
    provider_transaction_id: str
    amount: Decimal
    currency: str
    status: str
    gateway_status: Optional[str] = None
    failure_reason: Optional[str] = None
    processed_at: Optional[datetime] = None
    net_amount: Optional[Decimal] = None
    created_at: Optional[datetime] = None


class CheckoutSessionOut(BaseModel):
    checkout_session: str
    client_secret: Optional[str] = None
    payment_id: int
    expires_at: datetime


class PaymentInitiationOut(BaseModel):
    payment_id: int
    transaction_id: int
    gateway_payment_id: str
    status: str
    client_secret: Optional[str] = None
    idempotency_key: str
    replayed: bool = False


class WebhookAck(BaseModel):
    status: str
    event_id: Optional[int] = None
    message: str
