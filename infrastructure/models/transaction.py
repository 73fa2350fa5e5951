"""
Transaction database model.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, JSON, ForeignKey, Index
from datetime import datetime, timezone

from .base import Base


class TransactionModel(Base):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    payment_id = Column(Integer, ForeignKey("payments.id"), nullable=False, index=True)

    provider = Column(String(50), nullable=False, default="yuno")
    provider_transaction_id = Column(String(200), nullable=False, unique=True, comment="Webhook matching key")
    idempotency_key = Column(String(128), nullable=True, unique=True)

    amount = Column(Numeric(precision=15, scale=2), nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    provider_fee = Column(Numeric(precision=15, scale=2), nullable=False, default=0)
    net_amount = Column(Numeric(precision=15, scale=2), nullable=False)

    status = Column(String(20), nullable=False, default="pending", index=True, comment="Internal vocabulary")
    gateway_status = Column(String(32), nullable=True, comment="Raw gateway vocabulary")

    provider_response = Column(JSON, nullable=True, comment="Last raw gateway payload")
    failure_reason = Column(Text, nullable=True)
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

    __table_args__ = (
        Index("ix_transactions_payment_created", "payment_id", "created_at"),
    )

    def __repr__(self):
        return (
            f"<TransactionModel(id={self.id}, provider_transaction_id='{self.provider_transaction_id}', "
            f"status='{self.status}')>"
        )
