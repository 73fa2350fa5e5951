"""
Customer entity - the owner of orders and payments.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from domain.common.exceptions import DomainValidationException
from domain.common.values import ensure_utc, utcnow


def split_name(name: str) -> tuple[str, str]:
    """First word is the first name, the rest (possibly empty) the last name."""
    parts = name.strip().split()
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


@dataclass
class Customer:
    id: Optional[int]
    name: str
    email: str
    merchant_customer_id: str
    gateway_customer_id: Optional[str] = None
    phone: Optional[dict[str, str]] = None
    document: Optional[dict[str, str]] = None
    address: Optional[dict[str, str]] = None
    billing_address: Optional[dict[str, str]] = None
    shipping_address: Optional[dict[str, str]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        if not self.name or not self.name.strip():
            raise DomainValidationException("Name is required", field="name")
        if not self.email or "@" not in self.email:
            raise DomainValidationException("A valid email is required", field="email")
        self.name = self.name.strip()
        self.email = self.email.strip().lower()
        self.created_at = ensure_utc(self.created_at)
        self.updated_at = ensure_utc(self.updated_at)

    @classmethod
    def register(cls, *, name: str, email: str, **profile) -> "Customer":
        now = utcnow()
        return cls(
            id=None,
            name=name,
            email=email,
            merchant_customer_id=uuid.uuid4().hex,
            created_at=now,
            updated_at=now,
            **profile,
        )

    @property
    def first_name(self) -> str:
        return split_name(self.name)[0]

    @property
    def last_name(self) -> str:
        return split_name(self.name)[1]

    @property
    def country(self) -> Optional[str]:
        return (self.address or {}).get("country")

    def is_payment_ready(self) -> bool:
        return bool(self.gateway_customer_id)

    def link_gateway_customer(self, gateway_customer_id: str) -> None:
        self.gateway_customer_id = gateway_customer_id
        self.updated_at = utcnow()
