"""
Webhook event audit record.

Rows are appended once per distinct (provider, provider_event_id) and are
only ever status-updated afterwards.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from domain.common.values import ensure_utc, utcnow


class WebhookEventStatus(str, Enum):
    RECEIVED = "received"
    PROCESSING = "processing"
    PROCESSED = "processed"
    FAILED = "failed"
    RETRYING = "retrying"


DEFAULT_MAX_RETRIES = 3


@dataclass
class WebhookEvent:
    id: Optional[int]
    provider: str
    event_type: str
    provider_event_id: str
    payload: dict[str, Any]
    status: WebhookEventStatus = WebhookEventStatus.RECEIVED
    processing_attempts: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    error_message: Optional[str] = None
    signature: Optional[str] = None
    signature_verified: bool = False
    related_payment_id: Optional[int] = None
    related_transaction_id: Optional[int] = None
    processed_at: Optional[datetime] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        self.status = WebhookEventStatus(self.status)
        if self.metadata is None:
            self.metadata = {}
        self.processed_at = ensure_utc(self.processed_at)
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    @classmethod
    def received(
        cls,
        *,
        provider: str,
        event_type: str,
        provider_event_id: str,
        payload: dict[str, Any],
        signature: Optional[str],
        signature_verified: bool,
        max_retries: int = DEFAULT_MAX_RETRIES,
    ) -> "WebhookEvent":
        now = utcnow()
        return cls(
            id=None,
            provider=provider,
            event_type=event_type,
            provider_event_id=provider_event_id,
            payload=payload,
            signature=signature,
            signature_verified=signature_verified,
            max_retries=max_retries,
            created_at=now,
            updated_at=now,
        )

    def mark_processing(self) -> None:
        """Start an attempt. Attempts are counted here so a run that dies
        before ``mark_failed`` still uses up one of ``max_retries``."""
        self.status = (
            WebhookEventStatus.RETRYING if self.processing_attempts > 0 else WebhookEventStatus.PROCESSING
        )
        self.processing_attempts += 1
        self.updated_at = utcnow()

    def mark_processed(
        self,
        related_payment_id: Optional[int] = None,
        related_transaction_id: Optional[int] = None,
    ) -> None:
        now = utcnow()
        self.status = WebhookEventStatus.PROCESSED
        self.error_message = None
        self.processed_at = now
        if related_payment_id is not None:
            self.related_payment_id = related_payment_id
        if related_transaction_id is not None:
            self.related_transaction_id = related_transaction_id
        self.updated_at = now

    def mark_failed(self, reason: str) -> None:
        self.status = WebhookEventStatus.FAILED
        self.error_message = reason
        self.updated_at = utcnow()

    def can_retry(self) -> bool:
        return (
            self.status == WebhookEventStatus.FAILED
            and self.processing_attempts < self.max_retries
        )

    @property
    def data(self) -> dict[str, Any]:
        data = (self.payload or {}).get("data")
        return data if isinstance(data, dict) else {}
