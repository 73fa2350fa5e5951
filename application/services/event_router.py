"""
Webhook event type -> reconciliation handler.
"""
from __future__ import annotations

from typing import Any, Awaitable, Callable, Dict, Optional

from application.services.reconciliation import HandlerOutcome, ReconciliationHandlers
from core.logging_config import get_logger
from domain.common.unit_of_work import AbstractUnitOfWork


logger = get_logger(__name__)

Handler = Callable[[ReconciliationHandlers, Dict[str, Any]], Awaitable[HandlerOutcome]]

EVENT_HANDLERS: Dict[str, Handler] = {
    "payment.succeeded": ReconciliationHandlers.payment_succeeded,
    "payment.failed": ReconciliationHandlers.payment_failed,
    "payment.cancelled": ReconciliationHandlers.payment_cancelled,
    "payment.refunded": ReconciliationHandlers.payment_refunded,
    "payment.dispute_created": ReconciliationHandlers.dispute_created,
    "payment.chargeback": ReconciliationHandlers.chargeback,
}


class EventRouter:

    def __init__(self, handlers: Optional[Dict[str, Handler]] = None):
        self._handlers = dict(handlers if handlers is not None else EVENT_HANDLERS)

    def supports(self, event_type: str) -> bool:
        return event_type in self._handlers

    async def route(
        self,
        uow: AbstractUnitOfWork,
        event_type: str,
        data: Dict[str, Any],
    ) -> Optional[HandlerOutcome]:
        """Run the handler for ``event_type`` inside ``uow``.

        Unknown types return None and change nothing.
        """
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.info("webhook_event_type_unhandled", event_type=event_type, data_id=data.get("id"))
            return None
        return await handler(ReconciliationHandlers(uow), data)
