"""
Small value types shared by the order/payment/transaction aggregates.
"""
from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from domain.common.exceptions import DomainValidationException


class Currency(str, Enum):
    """Currencies accepted by the merchant (closed set)."""
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    CAD = "CAD"
    AUD = "AUD"

    @classmethod
    def parse(cls, value: "str | Currency | None") -> "Currency":
        if isinstance(value, Currency):
            return value
        try:
            return cls((value or "").strip().upper())
        except ValueError:
            raise DomainValidationException(
                f"Unsupported currency: {value}",
                field="currency",
            )


CENT = Decimal("0.01")


def quantize_money(value: Decimal | int | float | str) -> Decimal:
    """Round an amount to two decimals (half-up)."""
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(dt: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to UTC; naive values are assumed to be UTC."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
