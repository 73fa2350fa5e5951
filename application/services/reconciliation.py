"""
Reconciliation handlers: apply a gateway-reported payment event to the local
Transaction -> Payment -> Order chain.

Handlers run inside the caller's unit of work and never commit. Status
changes are monotonic; a stale or out-of-order event is logged and skipped
for the entity it would regress. Notifications are returned in the outcome
and dispatched by the caller after commit.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from application.ports.notifications import NotificationDispatcher
from application.services.status_mapper import map_gateway_status
from core.logging_config import get_logger
from domain.common.exceptions import TransactionNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.common.values import quantize_money, utcnow
from domain.payment.entity import Payment, PaymentType
from domain.payment.status import GatewayStatus, InternalStatus
from domain.transaction.entity import Transaction


logger = get_logger(__name__)


@dataclass(frozen=True)
class PendingNotification:
    """A NotificationDispatcher call deferred until after commit."""
    method: str
    kwargs: dict[str, Any]

    def dispatch(self, dispatcher: NotificationDispatcher) -> None:
        getattr(dispatcher, self.method)(**self.kwargs)


@dataclass
class HandlerOutcome:
    action: str
    payment_id: Optional[int] = None
    transaction_id: Optional[int] = None
    notifications: list[PendingNotification] = field(default_factory=list)

    def notify(self, method: str, **kwargs: Any) -> None:
        self.notifications.append(PendingNotification(method, kwargs))


def _parse_amount(raw: Any, default: Decimal) -> Decimal:
    if isinstance(raw, dict):
        raw = raw.get("value")
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = quantize_money(raw)
    except (InvalidOperation, ValueError, TypeError):
        return default
    return value if value > 0 else default


class ReconciliationHandlers:
    """One coroutine per event category; each takes the event ``data`` object."""

    def __init__(self, uow: AbstractUnitOfWork):
        self.uow = uow

    async def _require_transaction(self, provider_transaction_id: str) -> Transaction:
        tx = await self.uow.transaction_repository.get_by_provider_transaction_id(str(provider_transaction_id))
        if tx is None:
            raise TransactionNotFoundException(str(provider_transaction_id))
        return tx

    async def _load_payment(self, tx: Transaction) -> Optional[Payment]:
        payment = await self.uow.payment_repository.get_by_id(tx.payment_id)
        if payment is None:
            logger.error(
                "reconciliation_payment_missing",
                transaction_id=tx.id,
                payment_id=tx.payment_id,
                alert=True,
            )
        return payment

    async def _apply_to_transaction(
        self,
        tx: Transaction,
        gateway_status: GatewayStatus,
        data: dict[str, Any],
        *,
        failure_reason: Optional[str] = None,
    ) -> bool:
        target = map_gateway_status(gateway_status, context={"transaction_id": tx.id})
        accepted = tx.apply_gateway_update(
            target,
            gateway_status=data.get("status") or gateway_status.value,
            provider_response=data,
            failure_reason=failure_reason,
        )
        if not accepted:
            logger.info(
                "reconciliation_stale_status",
                entity="transaction",
                transaction_id=tx.id,
                current=tx.status.value,
                target=target.value,
            )
        await self.uow.transaction_repository.update(tx)
        return accepted

    def _advance_payment(
        self,
        payment: Payment,
        target: InternalStatus,
        *,
        failure_reason: Optional[str] = None,
    ) -> bool:
        """Returns True only when the status actually changed."""
        before = payment.status
        if not payment.advance_status(target, failure_reason=failure_reason):
            logger.info(
                "reconciliation_stale_status",
                entity="payment",
                payment_id=payment.id,
                current=before.value,
                target=target.value,
            )
            return False
        return before != target

    async def payment_succeeded(self, data: dict[str, Any]) -> HandlerOutcome:
        tx = await self._require_transaction(data["id"])
        await self._apply_to_transaction(tx, GatewayStatus.SUCCEEDED, data)
        outcome = HandlerOutcome("reconciled", payment_id=tx.payment_id, transaction_id=tx.id)

        payment = await self._load_payment(tx)
        if payment is None:
            return outcome

        target = map_gateway_status(GatewayStatus.SUCCEEDED)
        now = utcnow()
        payment_changed = self._advance_payment(payment, target)
        if payment_changed:
            payment.merge_metadata({"webhook_confirmed": True, "confirmed_at": now.isoformat()})
            payment = await self.uow.payment_repository.update(payment)

        # The payment may already be completed from a synchronous gateway
        # answer; the order still has to follow it exactly once.
        order_changed = False
        if payment.status == InternalStatus.COMPLETED and payment.order_id is not None:
            order = await self.uow.order_repository.get_by_id(payment.order_id)
            if order is None:
                logger.error("reconciliation_order_missing", order_id=payment.order_id, payment_id=payment.id)
            elif order.mark_paid(payment.id, paid_at=now):
                await self.uow.order_repository.update(order)
                order_changed = True
                outcome.notify("update_inventory", order_id=order.id)
            elif payment_changed:
                logger.info(
                    "reconciliation_stale_status",
                    entity="order",
                    order_id=order.id,
                    current=order.status.value,
                    target="paid",
                )

        if not (payment_changed or order_changed):
            return outcome

        outcome.notify(
            "send_payment_confirmation",
            payment_id=payment.id,
            order_id=payment.order_id,
            owner_id=payment.owner_id,
        )
        logger.info("payment_reconciled", event_type="payment.succeeded", payment_id=payment.id, transaction_id=tx.id)
        return outcome

    async def payment_failed(self, data: dict[str, Any]) -> HandlerOutcome:
        reason = data.get("failure_reason") or "Payment failed"
        tx = await self._require_transaction(data["id"])
        await self._apply_to_transaction(tx, GatewayStatus.FAILED, data, failure_reason=reason)
        outcome = HandlerOutcome("reconciled", payment_id=tx.payment_id, transaction_id=tx.id)

        payment = await self._load_payment(tx)
        if payment is None:
            return outcome

        if not self._advance_payment(payment, map_gateway_status(GatewayStatus.FAILED), failure_reason=reason):
            return outcome

        payment.merge_metadata({"failed_at": utcnow().isoformat()})
        payment = await self.uow.payment_repository.update(payment)
        outcome.notify(
            "send_payment_failure",
            payment_id=payment.id,
            order_id=payment.order_id,
            owner_id=payment.owner_id,
            reason=reason,
        )
        logger.info("payment_reconciled", event_type="payment.failed", payment_id=payment.id, transaction_id=tx.id)
        return outcome

    async def payment_cancelled(self, data: dict[str, Any]) -> HandlerOutcome:
        tx = await self._require_transaction(data["id"])
        await self._apply_to_transaction(tx, GatewayStatus.CANCELLED, data)
        outcome = HandlerOutcome("reconciled", payment_id=tx.payment_id, transaction_id=tx.id)

        payment = await self._load_payment(tx)
        if payment is None:
            return outcome

        if self._advance_payment(payment, map_gateway_status(GatewayStatus.CANCELLED)):
            payment.merge_metadata({"cancelled_at": utcnow().isoformat()})
            await self.uow.payment_repository.update(payment)
            logger.info(
                "payment_reconciled",
                event_type="payment.cancelled",
                payment_id=payment.id,
                transaction_id=tx.id,
            )
        return outcome

    async def payment_refunded(self, data: dict[str, Any]) -> HandlerOutcome:
        lookup_id = data.get("original_payment_id") or data.get("payment_id") or data["id"]
        original_tx = await self._require_transaction(lookup_id)

        refund_id = str(data.get("refund_id") or data["id"])
        refund_tx_id = refund_id
        if refund_tx_id == original_tx.provider_transaction_id:
            refund_tx_id = f"{refund_id}-refund"

        existing = await self.uow.transaction_repository.get_by_provider_transaction_id(refund_tx_id)
        if existing is not None:
            logger.info("refund_already_recorded", refund_transaction_id=existing.id, provider_transaction_id=refund_tx_id)
            return HandlerOutcome("noop", payment_id=existing.payment_id, transaction_id=existing.id)

        original_payment = await self._load_payment(original_tx)
        if original_payment is None:
            return HandlerOutcome("noop", transaction_id=original_tx.id)

        refunded = map_gateway_status(GatewayStatus.REFUNDED)
        if not original_payment.can_advance_to(refunded):
            logger.warning(
                "refund_rejected_for_status",
                payment_id=original_payment.id,
                current=original_payment.status.value,
            )
            return HandlerOutcome("stale", payment_id=original_payment.id, transaction_id=original_tx.id)

        amount = _parse_amount(data.get("refund_amount") or data.get("amount"), original_tx.amount)
        now = utcnow()

        refund_payment = Payment.new(
            owner_id=original_payment.owner_id,
            order_id=original_payment.order_id,
            amount=amount,
            currency=original_payment.currency,
            payment_type=PaymentType.REFUND,
            status=InternalStatus.COMPLETED,
            description=f"Refund for payment {original_payment.confirmation_number}",
            metadata={
                "original_payment_id": original_payment.id,
                "refund_reason": data.get("reason"),
                "gateway_refund_id": refund_id,
            },
        )
        refund_payment.processed_at = now
        refund_payment = await self.uow.payment_repository.create(refund_payment)

        refund_tx = Transaction.new(
            payment_id=refund_payment.id,
            provider_transaction_id=refund_tx_id,
            amount=amount,
            currency=original_payment.currency,
            status=InternalStatus.COMPLETED,
            gateway_status=data.get("status") or GatewayStatus.REFUNDED.value,
            provider_response=data,
            metadata={"original_transaction_id": original_tx.id},
        )
        refund_tx = await self.uow.transaction_repository.create(refund_tx)

        self._advance_payment(original_payment, refunded)
        original_payment.refund_amount = quantize_money(original_payment.refund_amount + amount)
        original_payment.merge_metadata({"refunded_at": now.isoformat(), "refund_payment_id": refund_payment.id})
        await self.uow.payment_repository.update(original_payment)

        # Status only; the original's monetary fields stay as recorded
        await self._apply_to_transaction(original_tx, GatewayStatus.REFUNDED, data)

        outcome = HandlerOutcome("reconciled", payment_id=refund_payment.id, transaction_id=refund_tx.id)
        outcome.notify(
            "send_refund_notice",
            refund_payment_id=refund_payment.id,
            original_payment_id=original_payment.id,
            owner_id=original_payment.owner_id,
        )
        logger.info(
            "payment_reconciled",
            event_type="payment.refunded",
            payment_id=original_payment.id,
            refund_payment_id=refund_payment.id,
            amount=str(amount),
        )
        return outcome

    async def _mark_disputed(self, data: dict[str, Any], event_type: str, details: dict[str, Any], *, chargeback: bool):
        lookup_id = data.get("payment_id") or data["id"]
        tx = await self._require_transaction(lookup_id)
        outcome = HandlerOutcome("reconciled", payment_id=tx.payment_id, transaction_id=tx.id)

        accepted = tx.apply_gateway_update(
            InternalStatus.DISPUTED,
            gateway_status=data.get("status") or ("CHARGEBACK" if chargeback else "DISPUTED"),
            provider_response=data,
        )
        if not accepted:
            logger.info(
                "reconciliation_stale_status",
                entity="transaction",
                transaction_id=tx.id,
                current=tx.status.value,
                target=InternalStatus.DISPUTED.value,
            )
        await self.uow.transaction_repository.update(tx)

        payment = await self._load_payment(tx)
        if payment is None:
            return outcome

        # Dispute details are kept even when the status cannot move
        self._advance_payment(payment, InternalStatus.DISPUTED)
        payment.merge_metadata(details)
        if chargeback:
            payment.payment_type = PaymentType.CHARGEBACK
        await self.uow.payment_repository.update(payment)

        if chargeback:
            outcome.notify("process_chargeback", payment_id=payment.id, chargeback=details)
        else:
            outcome.notify("notify_dispute_team", payment_id=payment.id, dispute=details)
        logger.warning("payment_reconciled", event_type=event_type, payment_id=payment.id, transaction_id=tx.id)
        return outcome

    async def dispute_created(self, data: dict[str, Any]) -> HandlerOutcome:
        now = utcnow()
        details = {
            "dispute_id": data.get("dispute_id") or data["id"],
            "dispute_reason": data.get("reason"),
            "dispute_amount": str(_parse_amount(data.get("amount"), Decimal("0"))),
            "disputed_at": now.isoformat(),
        }
        return await self._mark_disputed(data, "payment.dispute_created", details, chargeback=False)

    async def chargeback(self, data: dict[str, Any]) -> HandlerOutcome:
        now = utcnow()
        details = {
            "chargeback_id": data.get("chargeback_id") or data["id"],
            "chargeback_reason": data.get("reason"),
            "chargeback_amount": str(_parse_amount(data.get("amount"), Decimal("0"))),
            "chargeback_at": now.isoformat(),
        }
        return await self._mark_disputed(data, "payment.chargeback", details, chargeback=True)
