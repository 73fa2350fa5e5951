"""
Transaction entity: one gateway-side payment attempt, owned by a Payment.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from domain.common.exceptions import DomainValidationException
from domain.common.values import Currency, ensure_utc, quantize_money, utcnow
from domain.payment.status import InternalStatus, can_transition

PROVIDER_YUNO = "yuno"


@dataclass
class Transaction:
    """
    ``status`` always holds the internal vocabulary; the raw gateway string
    reported with the last applied update is kept in ``gateway_status``.

    Monetary fields are written at creation only. Refunds get their own
    Transaction instead of touching these.
    """

    id: Optional[int]
    payment_id: int
    provider_transaction_id: str
    amount: Decimal
    currency: Currency
    provider: str = PROVIDER_YUNO
    status: InternalStatus = InternalStatus.PENDING
    gateway_status: Optional[str] = None
    provider_response: Optional[dict[str, Any]] = None
    failure_reason: Optional[str] = None
    processed_at: Optional[datetime] = None
    idempotency_key: Optional[str] = None
    provider_fee: Decimal = field(default_factory=lambda: Decimal("0.00"))
    net_amount: Optional[Decimal] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.provider_transaction_id:
            raise DomainValidationException(
                "provider_transaction_id is required",
                field="provider_transaction_id",
            )
        self.currency = Currency.parse(self.currency)
        self.amount = quantize_money(self.amount)
        self.provider_fee = quantize_money(self.provider_fee or 0)
        if self.net_amount is None:
            self.net_amount = quantize_money(self.amount - self.provider_fee)
        else:
            self.net_amount = quantize_money(self.net_amount)
        if self.metadata is None:
            self.metadata = {}
        self.processed_at = ensure_utc(self.processed_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    @classmethod
    def new(
        cls,
        *,
        payment_id: int,
        provider_transaction_id: str,
        amount: Decimal,
        currency: Currency | str,
        status: InternalStatus = InternalStatus.PENDING,
        gateway_status: Optional[str] = None,
        provider_response: Optional[dict[str, Any]] = None,
        idempotency_key: Optional[str] = None,
        metadata: Optional[dict[str, Any]] = None,
    ) -> "Transaction":
        now = utcnow()
        return cls(
            id=None,
            payment_id=payment_id,
            provider_transaction_id=provider_transaction_id,
            amount=amount,
            currency=currency,
            status=status,
            gateway_status=gateway_status,
            provider_response=provider_response,
            idempotency_key=idempotency_key,
            metadata=dict(metadata or {}),
            processed_at=now if status == InternalStatus.COMPLETED else None,
            created_at=now,
            updated_at=now,
        )

    def apply_gateway_update(
        self,
        target: InternalStatus,
        *,
        gateway_status: Optional[str],
        provider_response: Optional[dict[str, Any]],
        failure_reason: Optional[str] = None,
    ) -> bool:
        """Apply a webhook-reported status.

        The raw payload is retained even when the status itself is stale, so
        the audit trail shows every delivery. Returns whether the status was
        accepted.
        """
        now = utcnow()
        if provider_response is not None:
            self.provider_response = provider_response
        self.updated_at = now
        if not can_transition(self.status, target):
            return False
        if target != self.status and target in (InternalStatus.COMPLETED, InternalStatus.FAILED, InternalStatus.REFUNDED):
            self.processed_at = now
        self.status = target
        if gateway_status is not None:
            self.gateway_status = gateway_status
        if target == InternalStatus.FAILED:
            self.failure_reason = failure_reason or self.failure_reason
        return True
