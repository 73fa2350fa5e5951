"""
Payment status vocabularies and the state machine shared by Payment and
Transaction.

The gateway reports upper-case statuses (``GatewayStatus``); the system
stores its own lower-case vocabulary (``InternalStatus``). The two are only
ever joined through ``GATEWAY_TO_INTERNAL``; no field holds both.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class GatewayStatus(str, Enum):
    """Status vocabulary emitted by the gateway."""
    CREATED = "CREATED"
    PENDING = "PENDING"
    SUCCEEDED = "SUCCEEDED"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"
    REFUNDED = "REFUNDED"

    @classmethod
    def parse(cls, raw: "str | GatewayStatus | None") -> Optional["GatewayStatus"]:
        """Return the matching member, or None when the value is not part of
        the known vocabulary."""
        if isinstance(raw, GatewayStatus):
            return raw
        if not isinstance(raw, str):
            return None
        try:
            return cls(raw.strip().upper())
        except ValueError:
            return None


class InternalStatus(str, Enum):
    """Status vocabulary stored on Payment and Transaction."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    DISPUTED = "disputed"


GATEWAY_TO_INTERNAL: dict[GatewayStatus, InternalStatus] = {
    GatewayStatus.CREATED: InternalStatus.PENDING,
    GatewayStatus.PENDING: InternalStatus.PROCESSING,
    GatewayStatus.SUCCEEDED: InternalStatus.COMPLETED,
    GatewayStatus.FAILED: InternalStatus.FAILED,
    GatewayStatus.CANCELLED: InternalStatus.CANCELLED,
    GatewayStatus.REFUNDED: InternalStatus.REFUNDED,
}

# Forward-only transitions; re-applying the current status is always a no-op.
ALLOWED_TRANSITIONS: dict[InternalStatus, frozenset[InternalStatus]] = {
    InternalStatus.PENDING: frozenset({
        InternalStatus.PROCESSING,
        InternalStatus.COMPLETED,
        InternalStatus.FAILED,
        InternalStatus.CANCELLED,
    }),
    InternalStatus.PROCESSING: frozenset({
        InternalStatus.COMPLETED,
        InternalStatus.FAILED,
        InternalStatus.CANCELLED,
    }),
    # The gateway may retry a declined attempt under the same payment id
    InternalStatus.FAILED: frozenset({
        InternalStatus.PROCESSING,
        InternalStatus.COMPLETED,
        InternalStatus.CANCELLED,
    }),
    InternalStatus.COMPLETED: frozenset({
        InternalStatus.REFUNDED,
        InternalStatus.DISPUTED,
    }),
    # No event reports a won dispute, so a later succeeded event is stale
    InternalStatus.DISPUTED: frozenset({
        InternalStatus.REFUNDED,
    }),
    InternalStatus.CANCELLED: frozenset(),
    InternalStatus.REFUNDED: frozenset(),
}


def can_transition(current: InternalStatus, target: InternalStatus) -> bool:
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())
