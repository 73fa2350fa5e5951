"""
Customer database model.
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON
from datetime import datetime, timezone

from .base import Base


class CustomerModel(Base):
    __tablename__ = "customers"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(200), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    merchant_customer_id = Column(String(64), nullable=False, unique=True)
    gateway_customer_id = Column(String(200), nullable=True, unique=True)

    phone = Column(JSON, nullable=True)
    document = Column(JSON, nullable=True)
    address = Column(JSON, nullable=True)
    billing_address = Column(JSON, nullable=True)
    shipping_address = Column(JSON, nullable=True)

    created_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        nullable=False,
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
        nullable=False,
    )

    def __repr__(self):
        return f"<CustomerModel(id={self.id}, email='{self.email}')>"
