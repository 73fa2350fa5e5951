"""
Payment repository - SQLAlchemy implementation.
"""
from typing import Optional, List
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from domain.common.values import Currency
from domain.payment.entity import Payment, PaymentFees, PaymentType
from domain.payment.repository import PaymentRepository
from domain.payment.status import InternalStatus
from infrastructure.models.payment import PaymentModel
from core.logging_config import get_logger


logger = get_logger(__name__)

_OPEN_STATUSES = (
    InternalStatus.PENDING.value,
    InternalStatus.PROCESSING.value,
    InternalStatus.FAILED.value,
)


class SQLAlchemyPaymentRepository(PaymentRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: PaymentModel) -> Payment:
        return Payment(
            id=model.id,
            owner_id=model.owner_id,
            order_id=model.order_id,
            amount=Decimal(str(model.amount)),
            currency=Currency(model.currency),
            confirmation_number=model.confirmation_number,
            status=InternalStatus(model.status),
            payment_type=PaymentType(model.payment_type),
            gateway_payment_id=model.gateway_payment_id,
            description=model.description,
            processed_at=model.processed_at,
            failure_reason=model.failure_reason,
            refund_amount=Decimal(str(model.refund_amount or 0)),
            fees=PaymentFees.from_dict(model.fees),
            metadata=dict(model.extra_metadata or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _apply(self, model: PaymentModel, entity: Payment) -> None:
        model.owner_id = entity.owner_id
        model.order_id = entity.order_id
        model.amount = entity.amount
        model.currency = entity.currency.value
        model.confirmation_number = entity.confirmation_number
        model.status = entity.status.value
        model.payment_type = entity.payment_type.value
        model.gateway_payment_id = entity.gateway_payment_id
        model.description = entity.description
        model.processed_at = entity.processed_at
        model.failure_reason = entity.failure_reason
        model.refund_amount = entity.refund_amount
        model.fees = entity.fees.to_dict()
        model.extra_metadata = dict(entity.metadata or {})
        if entity.created_at is not None:
            model.created_at = entity.created_at
        if entity.updated_at is not None:
            model.updated_at = entity.updated_at

    async def create(self, payment: Payment) -> Payment:
        db_payment = PaymentModel()
        self._apply(db_payment, payment)
        self.session.add(db_payment)
        await self.session.flush()
        await self.session.refresh(db_payment)
        logger.info(
            "payment_created",
            payment_id=db_payment.id,
            order_id=db_payment.order_id,
            payment_type=db_payment.payment_type,
            confirmation_number=db_payment.confirmation_number,
        )
        return self._to_entity(db_payment)

    async def get_by_id(self, payment_id: int) -> Optional[Payment]:
        result = await self.session.execute(
            select(PaymentModel).where(PaymentModel.id == payment_id)
        )
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Optional[Payment]:
        result = await self.session.execute(
            select(PaymentModel).where(PaymentModel.gateway_payment_id == gateway_payment_id)
        )
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def find_open_for_order(self, order_id: int) -> Optional[Payment]:
        result = await self.session.execute(
            select(PaymentModel)
            .where(
                PaymentModel.order_id == order_id,
                PaymentModel.payment_type == PaymentType.PURCHASE.value,
                PaymentModel.status.in_(_OPEN_STATUSES),
            )
            .order_by(PaymentModel.id.desc())
            .limit(1)
        )
        db_payment = result.scalar_one_or_none()
        return self._to_entity(db_payment) if db_payment else None

    async def list_by_owner(self, owner_id: int, skip: int = 0, limit: int = 100) -> List[Payment]:
        result = await self.session.execute(
            select(PaymentModel)
            .where(PaymentModel.owner_id == owner_id)
            .order_by(PaymentModel.created_at.desc(), PaymentModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(p) for p in result.scalars().all()]

    async def update(self, payment: Payment) -> Payment:
        result = await self.session.execute(
            select(PaymentModel).where(PaymentModel.id == payment.id)
        )
        db_payment = result.scalar_one_or_none()

        if not db_payment:
            raise ValueError(f"Payment with id {payment.id} not found")

        self._apply(db_payment, payment)
        await self.session.flush()
        await self.session.refresh(db_payment)

        logger.info(
            "payment_updated",
            payment_id=db_payment.id,
            status=db_payment.status,
        )
        return self._to_entity(db_payment)
