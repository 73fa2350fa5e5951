"""
Payment aggregate root.
"""
from __future__ import annotations

import secrets
import string
import time
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException
from domain.common.values import Currency, ensure_utc, quantize_money, utcnow
from domain.payment.status import InternalStatus, can_transition


class PaymentType(str, Enum):
    PURCHASE = "purchase"
    REFUND = "refund"
    CHARGEBACK = "chargeback"


_CONFIRMATION_ALPHABET = string.ascii_uppercase + string.digits


def generate_confirmation_number(prefix: str = "YUN") -> str:
    """Human-readable reference, e.g. ``YUN483920K7Q2ZD``.

    Uniqueness is finally guaranteed by the unique index on the column.
    """
    stamp = str(int(time.time() * 1000))[-6:]
    suffix = "".join(secrets.choice(_CONFIRMATION_ALPHABET) for _ in range(6))
    return f"{prefix}{stamp}{suffix}"


@dataclass
class PaymentFees:
    provider: Decimal = field(default_factory=lambda: Decimal("0"))
    processing: Decimal = field(default_factory=lambda: Decimal("0"))
    total: Decimal = field(default_factory=lambda: Decimal("0"))

    def to_dict(self) -> dict[str, str]:
        return {
            "provider": str(self.provider),
            "processing": str(self.processing),
            "total": str(self.total),
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "PaymentFees":
        data = data or {}
        return cls(
            provider=Decimal(str(data.get("provider", "0"))),
            processing=Decimal(str(data.get("processing", "0"))),
            total=Decimal(str(data.get("total", "0"))),
        )


@dataclass
class Payment:
    """
    Payment aggregate root.

    Business rules:
    1. amount must be > 0 and the currency part of the closed set
    2. status only moves forward along the shared state machine
    3. confirmation_number is assigned at creation and never changes
    4. metadata is merged, never replaced
    """

    id: Optional[int]
    owner_id: int
    amount: Decimal
    currency: Currency
    confirmation_number: str
    order_id: Optional[int] = None
    status: InternalStatus = InternalStatus.PENDING
    payment_type: PaymentType = PaymentType.PURCHASE
    gateway_payment_id: Optional[str] = None
    description: Optional[str] = None
    processed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    refund_amount: Decimal = field(default_factory=lambda: Decimal("0"))
    fees: PaymentFees = field(default_factory=PaymentFees)
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.currency = Currency.parse(self.currency)
        self.amount = quantize_money(self.amount)
        if self.amount <= 0:
            raise DomainValidationException(
                f"Payment amount must be greater than 0: {self.amount}",
                field="amount",
            )
        if self.metadata is None:
            self.metadata = {}
        self.processed_at = ensure_utc(self.processed_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    @classmethod
    def new(
        cls,
        *,
        owner_id: int,
        amount: Decimal,
        currency: Currency | str,
        order_id: Optional[int] = None,
        payment_type: PaymentType = PaymentType.PURCHASE,
        status: InternalStatus = InternalStatus.PENDING,
        description: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> "Payment":
        now = utcnow()
        return cls(
            id=None,
            owner_id=owner_id,
            order_id=order_id,
            amount=amount,
            currency=currency,
            confirmation_number=generate_confirmation_number(),
            status=status,
            payment_type=payment_type,
            description=description,
            metadata=dict(metadata or {}),
            created_at=now,
            updated_at=now,
        )

    def can_advance_to(self, target: InternalStatus) -> bool:
        return can_transition(self.status, target)

    def advance_status(self, target: InternalStatus, *, failure_reason: Optional[str] = None) -> bool:
        """Move to ``target`` if the state machine allows it.

        Returns False (and leaves the payment untouched) for a regression,
        which is how stale or out-of-order webhook deliveries are absorbed.
        """
        if not self.can_advance_to(target):
            return False
        now = utcnow()
        if target != self.status:
            self.status = target
            if target in (InternalStatus.COMPLETED, InternalStatus.REFUNDED, InternalStatus.FAILED):
                self.processed_at = now
        if target == InternalStatus.FAILED:
            self.failure_reason = failure_reason or self.failure_reason
        elif target == InternalStatus.COMPLETED:
            self.failure_reason = None
        self.updated_at = now
        return True

    def merge_metadata(self, values: dict[str, Any]) -> None:
        merged = dict(self.metadata or {})
        merged.update(values)
        self.metadata = merged
        self.updated_at = utcnow()

    def is_open_purchase(self) -> bool:
        """A purchase that can still be (re)attempted at the gateway."""
        return self.payment_type == PaymentType.PURCHASE and self.status in (
            InternalStatus.PENDING,
            InternalStatus.PROCESSING,
            InternalStatus.FAILED,
        )
