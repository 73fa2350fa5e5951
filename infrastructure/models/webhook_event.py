"""
Webhook event audit table.
"""
from sqlalchemy import Column, Integer, String, DateTime, Text, JSON, Boolean, Index, UniqueConstraint
from datetime import datetime, timezone

from .base import Base


class WebhookEventModel(Base):
    __tablename__ = "webhook_events"

    id = Column(Integer, primary_key=True, index=True)
    provider = Column(String(50), nullable=False)
    event_type = Column(String(100), nullable=False)
    provider_event_id = Column(String(200), nullable=False)
    payload = Column(JSON, nullable=False)

    status = Column(String(20), nullable=False, default="received", index=True)
    processing_attempts = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=False, default=3)
    error_message = Column(Text, nullable=True)

    signature = Column(String(256), nullable=True)
    signature_verified = Column(Boolean, nullable=False, default=False)

    related_payment_id = Column(Integer, nullable=True)
    related_transaction_id = Column(Integer, nullable=True)
    extra_metadata = Column("metadata", JSON, nullable=True)

    processed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
        index=True,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    # The idempotency gate for inbound deliveries
    __table_args__ = (
        UniqueConstraint("provider", "provider_event_id", name="uq_webhook_events_provider_event"),
        Index("ix_webhook_events_provider_type", "provider", "event_type"),
    )

    def __repr__(self):
        return (
            f"<WebhookEventModel(id={self.id}, provider_event_id='{self.provider_event_id}', "
            f"status='{self.status}')>"
        )
