"""
Payment specific codes.
"""
from __future__ import annotations

from enum import IntEnum


class PaymentCode(IntEnum):
    # Generic success
    SUCCESS = 0

    # Gateway/Webhook errors (6xxxx)
    GATEWAY_REJECTED = 60000
    GATEWAY_UNAVAILABLE = 60001
    SIGNATURE_INVALID = 60002
    GATEWAY_TIMEOUT = 60003
    MALFORMED_EVENT = 60005
    DUPLICATE_EVENT = 60006
    TRANSACTION_NOT_FOUND = 60007
    CUSTOMER_NOT_READY = 60008


__all__ = ["PaymentCode"]
