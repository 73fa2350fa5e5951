"""
Durable append log of inbound webhook events.

Every operation commits in its own unit of work: the audit row must survive
a rollback of the reconciliation that follows it.
"""
from __future__ import annotations

from datetime import datetime
from typing import Callable, List, Optional

from core.logging_config import get_logger
from domain.common.exceptions import DuplicateEventException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.webhook.entity import WebhookEvent


logger = get_logger(__name__)


class EventStore:

    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def record(self, event: WebhookEvent) -> WebhookEvent:
        """Insert ``event`` with status ``received``.

        Raises DuplicateEventException if (provider, provider_event_id) is
        already recorded; this is the idempotency gate for re-deliveries.
        """
        try:
            async with self._uow_factory() as uow:
                stored = await uow.webhook_event_repository.add(event)
        except DuplicateEventException:
            logger.info(
                "webhook_event_duplicate",
                provider=event.provider,
                provider_event_id=event.provider_event_id,
                event_type=event.event_type,
            )
            raise
        logger.info(
            "webhook_event_recorded",
            event_id=stored.id,
            provider=stored.provider,
            provider_event_id=stored.provider_event_id,
            event_type=stored.event_type,
        )
        return stored

    async def get(self, provider: str, provider_event_id: str) -> Optional[WebhookEvent]:
        async with self._uow_factory(readonly=True) as uow:
            return await uow.webhook_event_repository.get_by_provider_event_id(provider, provider_event_id)

    async def get_by_id(self, event_id: int) -> Optional[WebhookEvent]:
        async with self._uow_factory(readonly=True) as uow:
            return await uow.webhook_event_repository.get_by_id(event_id)

    async def mark_processing(self, event_id: int) -> WebhookEvent:
        async with self._uow_factory() as uow:
            event = await self._load(uow, event_id)
            event.mark_processing()
            return await uow.webhook_event_repository.update(event)

    async def mark_processed(
        self,
        event_id: int,
        related_payment_id: Optional[int] = None,
        related_transaction_id: Optional[int] = None,
    ) -> WebhookEvent:
        async with self._uow_factory() as uow:
            event = await self._load(uow, event_id)
            event.mark_processed(related_payment_id, related_transaction_id)
            stored = await uow.webhook_event_repository.update(event)
        logger.info(
            "webhook_event_processed",
            event_id=event_id,
            related_payment_id=related_payment_id,
            related_transaction_id=related_transaction_id,
        )
        return stored

    async def mark_failed(self, event_id: int, reason: str) -> WebhookEvent:
        async with self._uow_factory() as uow:
            event = await self._load(uow, event_id)
            event.mark_failed(reason)
            stored = await uow.webhook_event_repository.update(event)
        logger.warning(
            "webhook_event_failed",
            event_id=event_id,
            attempts=stored.processing_attempts,
            max_retries=stored.max_retries,
            reason=reason,
        )
        return stored

    async def list_retryable(self, stale_before: datetime, limit: int = 50) -> List[WebhookEvent]:
        async with self._uow_factory(readonly=True) as uow:
            return await uow.webhook_event_repository.list_retryable(stale_before, limit)

    @staticmethod
    async def _load(uow: AbstractUnitOfWork, event_id: int) -> WebhookEvent:
        event = await uow.webhook_event_repository.get_by_id(event_id)
        if event is None:
            raise ValueError(f"Webhook event {event_id} not found")
        return event
