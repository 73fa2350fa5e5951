"""Small dispatching helpers to decouple Celery from callers."""
from __future__ import annotations

from typing import Any, Dict, Optional

from core.logging_config import get_logger
from ..config.celery import celery_app

logger = get_logger(__name__)


class TaskDispatcher:
    """Internal facade used by application layer to schedule tasks.

    Implements the ``NotificationDispatcher`` port. Every method is
    fire-and-forget: a broker failure is logged and never propagated.
    """

    def send_payment_confirmation(self, *, payment_id: int, order_id: Optional[int], owner_id: int) -> None:
        self.enqueue(
            "notifications.send_payment_confirmation",
            kwargs={"payment_id": payment_id, "order_id": order_id, "owner_id": owner_id},
        )

    def send_payment_failure(self, *, payment_id: int, order_id: Optional[int], owner_id: int, reason: str) -> None:
        self.enqueue(
            "notifications.send_payment_failure",
            kwargs={"payment_id": payment_id, "order_id": order_id, "owner_id": owner_id, "reason": reason},
        )

    def send_refund_notice(self, *, refund_payment_id: int, original_payment_id: int, owner_id: int) -> None:
        self.enqueue(
            "notifications.send_refund_notice",
            kwargs={
                "refund_payment_id": refund_payment_id,
                "original_payment_id": original_payment_id,
                "owner_id": owner_id,
            },
        )

    def notify_dispute_team(self, *, payment_id: int, dispute: dict[str, Any]) -> None:
        self.enqueue("notifications.notify_dispute_team", kwargs={"payment_id": payment_id, "dispute": dispute})

    def process_chargeback(self, *, payment_id: int, chargeback: dict[str, Any]) -> None:
        self.enqueue(
            "notifications.process_chargeback",
            kwargs={"payment_id": payment_id, "chargeback": chargeback},
        )

    def update_inventory(self, *, order_id: int) -> None:
        self.enqueue("notifications.update_inventory", kwargs={"order_id": order_id})

    def enqueue(self, task_name: str, *, args: tuple | None = None, kwargs: Dict[str, Any] | None = None) -> None:
        """Schedule a registered task by name.

        In eager mode the registered task object is applied in-process, since
        ``send_task`` always goes through the broker.
        """
        try:
            if celery_app.conf.task_always_eager:
                # Registers the shared tasks with this app
                from .. import tasks  # noqa: F401
                celery_app.tasks[task_name].apply(args=args or (), kwargs=kwargs or {})
            else:
                celery_app.send_task(task_name, args=args or (), kwargs=kwargs or {})
        except Exception as exc:
            logger.error("task_dispatch_failed", task_name=task_name, error=str(exc))
