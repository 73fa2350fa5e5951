"""
Order aggregate.

An order is created once with its line items; totals are computed here and
never recomputed by storage.
"""
from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional

from domain.common.exceptions import DomainValidationException, InvalidStateTransitionException
from domain.common.values import Currency, ensure_utc, quantize_money, utcnow


class OrderStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.PAID, OrderStatus.CANCELLED}),
    OrderStatus.PAID: frozenset({OrderStatus.SHIPPED, OrderStatus.REFUNDED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.REFUNDED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.REFUNDED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.REFUNDED: frozenset(),
}

_ORDER_NUMBER_ALPHABET = string.ascii_uppercase + string.digits


def generate_order_number() -> str:
    """``ORD`` + last 6 digits of the epoch millis + 4 random characters."""
    stamp = str(int(time.time() * 1000))[-6:]
    suffix = "".join(secrets.choice(_ORDER_NUMBER_ALPHABET) for _ in range(4))
    return f"ORD{stamp}{suffix}"


@dataclass
class OrderItem:
    name: str
    price: Decimal
    quantity: int
    description: Optional[str] = None
    sku: Optional[str] = None
    category: Optional[str] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise DomainValidationException("Item name is required", field="items.name")
        self.price = quantize_money(self.price)
        if self.price < 0:
            raise DomainValidationException("Item price cannot be negative", field="items.price")
        if int(self.quantity) < 1:
            raise DomainValidationException("Item quantity must be at least 1", field="items.quantity")
        self.quantity = int(self.quantity)

    @property
    def line_total(self) -> Decimal:
        return quantize_money(self.price * self.quantity)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "price": str(self.price),
            "quantity": self.quantity,
        }
        for key in ("description", "sku", "category"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderItem":
        return cls(
            name=data["name"],
            price=Decimal(str(data["price"])),
            quantity=int(data["quantity"]),
            description=data.get("description"),
            sku=data.get("sku"),
            category=data.get("category"),
        )


@dataclass
class Order:
    """
    Order aggregate root.

    Business rules:
    1. subtotal = sum(price * quantity) over the items
    2. total_amount = subtotal + tax + shipping - discount, never negative
    3. order_number is assigned once and never changes
    4. status only moves along ORDER_TRANSITIONS
    """

    id: Optional[int]
    owner_id: int
    order_number: str
    items: list[OrderItem]
    subtotal: Decimal
    total_amount: Decimal
    currency: Currency
    tax: Decimal = field(default_factory=lambda: Decimal("0.00"))
    shipping: Decimal = field(default_factory=lambda: Decimal("0.00"))
    discount: Decimal = field(default_factory=lambda: Decimal("0.00"))
    status: OrderStatus = OrderStatus.PENDING
    payment_id: Optional[int] = None
    paid_at: Optional[datetime] = None
    shipping_address: Optional[dict[str, str]] = None
    billing_address: Optional[dict[str, str]] = None
    notes: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.currency = Currency.parse(self.currency)
        self.paid_at = ensure_utc(self.paid_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)
        if self.metadata is None:
            self.metadata = {}

    @classmethod
    def create(
        cls,
        *,
        owner_id: int,
        items: Iterable[OrderItem],
        currency: Currency | str = Currency.USD,
        tax: Decimal | int | str = 0,
        shipping: Decimal | int | str = 0,
        discount: Decimal | int | str = 0,
        shipping_address: Optional[dict[str, str]] = None,
        billing_address: Optional[dict[str, str]] = None,
        notes: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> "Order":
        """Build a new pending order, computing its totals from the items."""
        items = list(items)
        if not items:
            raise DomainValidationException("Order must contain at least one item", field="items")

        tax = quantize_money(tax)
        shipping = quantize_money(shipping)
        discount = quantize_money(discount)
        for name, value in (("tax", tax), ("shipping", shipping), ("discount", discount)):
            if value < 0:
                raise DomainValidationException(f"{name} cannot be negative", field=name)

        subtotal = quantize_money(sum((item.line_total for item in items), Decimal("0")))
        total = quantize_money(subtotal + tax + shipping - discount)
        if total <= 0:
            raise DomainValidationException(
                "Order total must be greater than 0",
                field="discount",
                details={"subtotal": str(subtotal), "total": str(total)},
            )

        now = utcnow()
        return cls(
            id=None,
            owner_id=owner_id,
            order_number=generate_order_number(),
            items=items,
            subtotal=subtotal,
            tax=tax,
            shipping=shipping,
            discount=discount,
            total_amount=total,
            currency=Currency.parse(currency),
            shipping_address=shipping_address,
            billing_address=billing_address,
            notes=notes,
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
        )

    def can_transition_to(self, target: OrderStatus) -> bool:
        if target == self.status:
            return True
        return target in ORDER_TRANSITIONS[self.status]

    def mark_paid(self, payment_id: Optional[int], paid_at: Optional[datetime] = None) -> bool:
        """Returns False when the order is already past ``paid`` (stale event)."""
        if self.status == OrderStatus.PAID:
            return False
        if not self.can_transition_to(OrderStatus.PAID):
            return False
        now = utcnow()
        self.status = OrderStatus.PAID
        self.paid_at = ensure_utc(paid_at) or now
        if payment_id is not None:
            self.payment_id = payment_id
        self.updated_at = now
        return True

    def cancel(self) -> None:
        if self.status == OrderStatus.CANCELLED:
            return
        if not self.can_transition_to(OrderStatus.CANCELLED):
            raise InvalidStateTransitionException("order", self.status.value, OrderStatus.CANCELLED.value)
        self.status = OrderStatus.CANCELLED
        self.updated_at = utcnow()

    def attach_payment(self, payment_id: int) -> None:
        self.payment_id = payment_id
        self.updated_at = utcnow()
