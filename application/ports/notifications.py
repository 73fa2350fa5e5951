"""
Notification dispatcher port.

Calls are fire-and-forget: implementations enqueue work and return at once.
They must never raise back into the webhook path; a failed enqueue is logged
by the implementation.
"""
from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class NotificationDispatcher(Protocol):

    def send_payment_confirmation(self, *, payment_id: int, order_id: Optional[int], owner_id: int) -> None: ...

    def send_payment_failure(self, *, payment_id: int, order_id: Optional[int], owner_id: int, reason: str) -> None: ...

    def send_refund_notice(self, *, refund_payment_id: int, original_payment_id: int, owner_id: int) -> None: ...

    def notify_dispute_team(self, *, payment_id: int, dispute: dict[str, Any]) -> None: ...

    def process_chargeback(self, *, payment_id: int, chargeback: dict[str, Any]) -> None: ...

    def update_inventory(self, *, order_id: int) -> None: ...
