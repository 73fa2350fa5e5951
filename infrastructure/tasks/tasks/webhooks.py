"""Background re-processing of webhook events that did not reach ``processed``."""
from __future__ import annotations

import asyncio
from functools import partial

from celery import shared_task

from ..utils.base_task import BaseTask
from ..utils.dispatcher import TaskDispatcher
from core.config import settings
from core.logging_config import get_logger

logger = get_logger(__name__)


async def _retry_failed_events() -> dict[str, int]:
    # Each worker run owns its event loop, so it gets its own engine too
    from application.services.webhook_service import WebhookApplicationService
    from infrastructure.database import build_engine, build_session_factory
    from infrastructure.unit_of_work import SQLAlchemyUnitOfWork

    engine = build_engine(settings.database.url, echo=settings.database.echo)
    try:
        uow_factory = partial(SQLAlchemyUnitOfWork, build_session_factory(engine))
        service = WebhookApplicationService(uow_factory, TaskDispatcher())
        return await service.retry_failed()
    finally:
        await engine.dispose()


@shared_task(
    bind=True,
    base=BaseTask,
    name="webhooks.retry_failed",
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def retry_failed(self) -> dict[str, int]:
    summary = asyncio.run(_retry_failed_events())
    logger.info("webhook_retry_task_done", task_id=self.request.id, **summary)
    return summary
