"""Customer and operations notifications emitted after reconciliation.

The bodies log a structured event; delivery channels (email, chat, ERP)
are plugged in behind these task names.
"""
from __future__ import annotations

from typing import Any, Optional

from celery import shared_task

from ..utils.base_task import BaseTask
from core.logging_config import get_logger

logger = get_logger(__name__)

_RETRY_OPTIONS = dict(
    bind=True,
    base=BaseTask,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=600,
    retry_jitter=True,
    retry_kwargs={"max_retries": 5},
)


@shared_task(name="notifications.send_payment_confirmation", **_RETRY_OPTIONS)
def send_payment_confirmation(self, payment_id: int, order_id: Optional[int], owner_id: int) -> None:
    logger.info("payment_confirmation_sent", payment_id=payment_id, order_id=order_id, owner_id=owner_id)


@shared_task(name="notifications.send_payment_failure", **_RETRY_OPTIONS)
def send_payment_failure(self, payment_id: int, order_id: Optional[int], owner_id: int, reason: str) -> None:
    logger.info(
        "payment_failure_notice_sent",
        payment_id=payment_id,
        order_id=order_id,
        owner_id=owner_id,
        reason=reason,
    )


@shared_task(name="notifications.send_refund_notice", **_RETRY_OPTIONS)
def send_refund_notice(self, refund_payment_id: int, original_payment_id: int, owner_id: int) -> None:
    logger.info(
        "refund_notice_sent",
        refund_payment_id=refund_payment_id,
        original_payment_id=original_payment_id,
        owner_id=owner_id,
    )


@shared_task(name="notifications.notify_dispute_team", **_RETRY_OPTIONS)
def notify_dispute_team(self, payment_id: int, dispute: dict[str, Any]) -> None:
    logger.warning("dispute_team_notified", payment_id=payment_id, dispute=dispute)


@shared_task(name="notifications.process_chargeback", **_RETRY_OPTIONS)
def process_chargeback(self, payment_id: int, chargeback: dict[str, Any]) -> None:
    logger.warning("chargeback_processing_started", payment_id=payment_id, chargeback=chargeback)


@shared_task(name="notifications.update_inventory", **_RETRY_OPTIONS)
def update_inventory(self, order_id: int) -> None:
    logger.info("inventory_update_requested", order_id=order_id)
