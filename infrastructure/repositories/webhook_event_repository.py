"""
Webhook event repository - SQLAlchemy implementation.

The (provider, provider_event_id) unique constraint turns a concurrent
re-delivery into an IntegrityError, surfaced as DuplicateEventException.
"""
from datetime import datetime
from typing import Optional, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, or_, and_
from sqlalchemy.exc import IntegrityError

from domain.common.exceptions import DuplicateEventException
from domain.webhook.entity import WebhookEvent, WebhookEventStatus
from domain.webhook.repository import WebhookEventRepository
from infrastructure.models.webhook_event import WebhookEventModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyWebhookEventRepository(WebhookEventRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: WebhookEventModel) -> WebhookEvent:
        return WebhookEvent(
            id=model.id,
            provider=model.provider,
            event_type=model.event_type,
            provider_event_id=model.provider_event_id,
            payload=model.payload or {},
            status=WebhookEventStatus(model.status),
            processing_attempts=model.processing_attempts or 0,
            max_retries=model.max_retries,
            error_message=model.error_message,
            signature=model.signature,
            signature_verified=bool(model.signature_verified),
            related_payment_id=model.related_payment_id,
            related_transaction_id=model.related_transaction_id,
            processed_at=model.processed_at,
            metadata=dict(model.extra_metadata or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: WebhookEvent) -> WebhookEventModel:
        return WebhookEventModel(
            id=entity.id,
            provider=entity.provider,
            event_type=entity.event_type,
            provider_event_id=entity.provider_event_id,
            payload=entity.payload,
            status=entity.status.value,
            processing_attempts=entity.processing_attempts,
            max_retries=entity.max_retries,
            error_message=entity.error_message,
            signature=entity.signature,
            signature_verified=entity.signature_verified,
            related_payment_id=entity.related_payment_id,
            related_transaction_id=entity.related_transaction_id,
            processed_at=entity.processed_at,
            extra_metadata=dict(entity.metadata or {}),
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def add(self, event: WebhookEvent) -> WebhookEvent:
        try:
            db_event = self._to_model(event)
            self.session.add(db_event)
            await self.session.flush()
            await self.session.refresh(db_event)
        except IntegrityError:
            await self.session.rollback()
            raise DuplicateEventException(event.provider, event.provider_event_id)
        return self._to_entity(db_event)

    async def get_by_id(self, event_id: int) -> Optional[WebhookEvent]:
        result = await self.session.execute(
            select(WebhookEventModel).where(WebhookEventModel.id == event_id)
        )
        db_event = result.scalar_one_or_none()
        return self._to_entity(db_event) if db_event else None

    async def get_by_provider_event_id(self, provider: str, provider_event_id: str) -> Optional[WebhookEvent]:
        result = await self.session.execute(
            select(WebhookEventModel).where(
                WebhookEventModel.provider == provider,
                WebhookEventModel.provider_event_id == provider_event_id,
            )
        )
        db_event = result.scalar_one_or_none()
        return self._to_entity(db_event) if db_event else None

    async def list_retryable(self, stale_before: datetime, limit: int = 50) -> List[WebhookEvent]:
        query = (
            select(WebhookEventModel)
            .where(
                or_(
                    WebhookEventModel.status == WebhookEventStatus.FAILED.value,
                    # Rows still in flight are only taken over once they go stale
                    and_(
                        WebhookEventModel.status.in_(
                            (
                                WebhookEventStatus.RECEIVED.value,
                                WebhookEventStatus.PROCESSING.value,
                                WebhookEventStatus.RETRYING.value,
                            )
                        ),
                        WebhookEventModel.updated_at < stale_before,
                    ),
                ),
                WebhookEventModel.processing_attempts < WebhookEventModel.max_retries,
            )
            .order_by(WebhookEventModel.created_at.asc(), WebhookEventModel.id.asc())
            .limit(limit)
        )
        result = await self.session.execute(query)
        return [self._to_entity(e) for e in result.scalars().all()]

    async def update(self, event: WebhookEvent) -> WebhookEvent:
        result = await self.session.execute(
            select(WebhookEventModel).where(WebhookEventModel.id == event.id)
        )
        db_event = result.scalar_one_or_none()

        if not db_event:
            raise ValueError(f"Webhook event with id {event.id} not found")

        db_event.status = event.status.value
        db_event.processing_attempts = event.processing_attempts
        db_event.error_message = event.error_message
        db_event.related_payment_id = event.related_payment_id
        db_event.related_transaction_id = event.related_transaction_id
        db_event.processed_at = event.processed_at
        db_event.extra_metadata = dict(event.metadata or {})
        db_event.updated_at = event.updated_at

        await self.session.flush()
        await self.session.refresh(db_event)
        return self._to_entity(db_event)
