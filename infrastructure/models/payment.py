"""
Payment database model - SQLAlchemy ORM mapping.
Business rules live in domain.payment.entity.Payment, not here.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, JSON, Index
from datetime import datetime, timezone

from .base import Base


class PaymentModel(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)

    # Weak references, no FK cascades
    owner_id = Column(Integer, nullable=False, index=True, comment="Customer id")
    order_id = Column(Integer, nullable=True, index=True, comment="Order id")

    amount = Column(Numeric(precision=15, scale=2), nullable=False, comment="Payment amount")
    currency = Column(String(3), nullable=False, default="USD", comment="ISO-4217 code")

    status = Column(
        String(20),
        nullable=False,
        default="pending",
        index=True,
        comment="pending/processing/completed/failed/cancelled/refunded/disputed",
    )
    payment_type = Column(String(20), nullable=False, default="purchase", comment="purchase/refund/chargeback")

    gateway_payment_id = Column(String(200), nullable=True, unique=True, comment="Gateway payment id")
    confirmation_number = Column(String(32), nullable=False, unique=True, comment="Local confirmation number")
    description = Column(String(500), nullable=True)

    failure_reason = Column(Text, nullable=True)
    refund_amount = Column(Numeric(precision=15, scale=2), nullable=False, default=0)
    fees = Column(JSON, nullable=True, comment="provider/processing/total")

    # "metadata" is reserved on declarative classes
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
        Index("ix_payments_owner_created", "owner_id", "created_at"),
        Index("ix_payments_order_type", "order_id", "payment_type"),
    )

    def __repr__(self):
        return (
            f"<PaymentModel(id={self.id}, confirmation_number='{self.confirmation_number}', "
            f"amount={self.amount}, status='{self.status}')>"
        )
