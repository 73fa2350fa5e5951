"""
Webhook ingestion: verify -> record -> route -> reconcile -> mark -> notify.
"""
from __future__ import annotations

import hashlib
import json
from datetime import timedelta
from typing import Any, Callable, Mapping, Optional

from application.dtos.payments import WebhookAck
from application.ports.notifications import NotificationDispatcher
from application.services.event_router import EventRouter
from application.services.event_store import EventStore
from application.services.reconciliation import HandlerOutcome
from application.services.webhook_signature import extract_signature, verify_signature
from core.logging_config import get_logger
from core.settings import PaymentSettings, payment_settings
from domain.common.exceptions import (
    BusinessException,
    DuplicateEventException,
    InvalidSignatureException,
    MalformedEventException,
    StoreUnavailableException,
    TransactionNotFoundException,
)
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.common.values import utcnow
from domain.webhook.entity import WebhookEvent


logger = get_logger(__name__)


def parse_envelope(raw_body: bytes) -> dict[str, Any]:
    """Decode and shape-check a webhook body ``{type, data: {id, ...}, id?}``.

    Raises MalformedEventException for anything else.
    """
    try:
        payload = json.loads(raw_body)
    except (ValueError, UnicodeDecodeError) as exc:
        raise MalformedEventException("body is not valid JSON") from exc
    if not isinstance(payload, dict):
        raise MalformedEventException("body is not a JSON object")
    event_type = payload.get("type")
    if not isinstance(event_type, str) or not event_type:
        raise MalformedEventException("missing type")
    data = payload.get("data")
    if not isinstance(data, dict):
        raise MalformedEventException("missing data")
    if data.get("id") in (None, ""):
        raise MalformedEventException("missing data.id")
    return payload


def derive_event_id(payload: Mapping[str, Any], raw_body: bytes) -> str:
    """Envelope id when present, otherwise a digest of the exact body."""
    event_id = payload.get("id")
    if event_id not in (None, ""):
        return str(event_id)
    return "evt_" + hashlib.sha256(raw_body).hexdigest()


class WebhookApplicationService:

    def __init__(
        self,
        uow_factory: Callable[..., AbstractUnitOfWork],
        dispatcher: NotificationDispatcher,
        *,
        event_store: Optional[EventStore] = None,
        router: Optional[EventRouter] = None,
        settings: Optional[PaymentSettings] = None,
    ):
        self._uow_factory = uow_factory
        self._dispatcher = dispatcher
        self._event_store = event_store or EventStore(uow_factory)
        self._router = router or EventRouter()
        self._settings = settings or payment_settings

    @property
    def provider(self) -> str:
        return self._settings.gateway.provider

    async def ingest(self, raw_body: bytes, headers: Mapping[str, str]) -> WebhookAck:
        """Handle one delivery.

        Raises InvalidSignatureException (401) before anything is parsed or
        stored, and StoreUnavailableException (503) when the database cannot
        be reached. Every other outcome is acknowledged.
        """
        signature = extract_signature(headers, self._settings.webhook.signature_headers)
        if not verify_signature(raw_body, signature, self._settings.webhook.secret):
            logger.warning(
                "webhook_signature_invalid",
                provider=self.provider,
                signature_present=signature is not None,
                secret_configured=bool(self._settings.webhook.secret),
            )
            raise InvalidSignatureException()

        try:
            payload = parse_envelope(raw_body)
        except MalformedEventException as exc:
            logger.warning("webhook_event_malformed", provider=self.provider, reason=exc.details["reason"])
            return WebhookAck(status="ignored", message=exc.message)

        event = WebhookEvent.received(
            provider=self.provider,
            event_type=payload["type"],
            provider_event_id=derive_event_id(payload, raw_body),
            payload=payload,
            signature=signature,
            signature_verified=True,
            max_retries=self._settings.webhook.max_retries,
        )
        try:
            event = await self._event_store.record(event)
        except DuplicateEventException:
            prior = await self._event_store.get(event.provider, event.provider_event_id)
            prior_status = prior.status.value if prior else "unknown"
            return WebhookAck(
                status="duplicate",
                event_id=prior.id if prior else None,
                message=f"Event already received ({prior_status})",
            )

        return await self.process(event)

    async def process(self, event: WebhookEvent) -> WebhookAck:
        """Reconcile a recorded event and update its audit row."""
        await self._event_store.mark_processing(event.id)
        log = logger.bind(event_id=event.id, event_type=event.event_type, provider_event_id=event.provider_event_id)

        try:
            async with self._uow_factory() as uow:
                outcome = await self._router.route(uow, event.event_type, event.data)
        except StoreUnavailableException:
            raise
        except TransactionNotFoundException as exc:
            # The initiating call may not have persisted its Transaction yet
            log.error("webhook_transaction_not_found", alert=True, **exc.details)
            await self._event_store.mark_failed(event.id, exc.message)
            return WebhookAck(status="failed", event_id=event.id, message=exc.message)
        except BusinessException as exc:
            log.warning("webhook_event_rejected", error_type=exc.error_type, reason=exc.message)
            await self._event_store.mark_failed(event.id, exc.message)
            return WebhookAck(status="failed", event_id=event.id, message=exc.message)
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            log.exception("webhook_event_processing_error")
            await self._event_store.mark_failed(event.id, f"{type(exc).__name__}: {exc}")
            return WebhookAck(status="failed", event_id=event.id, message="Event could not be processed")

        if outcome is None:
            await self._event_store.mark_processed(event.id)
            return WebhookAck(status="ignored", event_id=event.id, message=f"Unhandled event type {event.event_type}")

        await self._event_store.mark_processed(event.id, outcome.payment_id, outcome.transaction_id)
        self._dispatch(outcome)
        return WebhookAck(status="processed", event_id=event.id, message=f"Event {outcome.action}")

    def _dispatch(self, outcome: HandlerOutcome) -> None:
        for notification in outcome.notifications:
            try:
                notification.dispatch(self._dispatcher)
            except Exception:
                logger.exception("notification_dispatch_failed", method=notification.method)

    async def retry_failed(self, limit: Optional[int] = None) -> dict[str, int]:
        """Re-run reconciliation for retryable and stale events from their stored payload."""
        stale_before = utcnow() - timedelta(seconds=self._settings.webhook.retry_stale_seconds)
        events = await self._event_store.list_retryable(
            stale_before, limit or self._settings.webhook.retry_batch_size
        )
        summary = {"picked": len(events), "processed": 0, "ignored": 0, "failed": 0}
        for event in events:
            ack = await self.process(event)
            summary[ack.status] = summary.get(ack.status, 0) + 1
        if events:
            logger.info("webhook_retry_completed", **summary)
        return summary
