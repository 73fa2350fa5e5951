"""
Order repository - SQLAlchemy implementation.
"""
from typing import Optional, List
from decimal import Decimal
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from domain.common.values import Currency
from domain.order.entity import Order, OrderItem, OrderStatus
from domain.order.repository import OrderRepository
from infrastructure.models.order import OrderModel
from core.logging_config import get_logger


logger = get_logger(__name__)


class SQLAlchemyOrderRepository(OrderRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    def _to_entity(self, model: OrderModel) -> Order:
        return Order(
            id=model.id,
            owner_id=model.owner_id,
            order_number=model.order_number,
            items=[OrderItem.from_dict(item) for item in (model.items or [])],
            subtotal=Decimal(str(model.subtotal)),
            tax=Decimal(str(model.tax or 0)),
            shipping=Decimal(str(model.shipping or 0)),
            discount=Decimal(str(model.discount or 0)),
            total_amount=Decimal(str(model.total_amount)),
            currency=Currency(model.currency),
            status=OrderStatus(model.status),
            payment_id=model.payment_id,
            paid_at=model.paid_at,
            shipping_address=model.shipping_address,
            billing_address=model.billing_address,
            notes=model.notes,
            metadata=dict(model.extra_metadata or {}),
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    def _to_model(self, entity: Order) -> OrderModel:
        return OrderModel(
            id=entity.id,
            owner_id=entity.owner_id,
            order_number=entity.order_number,
            items=[item.to_dict() for item in entity.items],
            subtotal=entity.subtotal,
            tax=entity.tax,
            shipping=entity.shipping,
            discount=entity.discount,
            total_amount=entity.total_amount,
            currency=entity.currency.value,
            status=entity.status.value,
            payment_id=entity.payment_id,
            paid_at=entity.paid_at,
            shipping_address=entity.shipping_address,
            billing_address=entity.billing_address,
            notes=entity.notes,
            extra_metadata=dict(entity.metadata or {}),
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    async def create(self, order: Order) -> Order:
        db_order = self._to_model(order)
        self.session.add(db_order)
        await self.session.flush()
        await self.session.refresh(db_order)
        logger.info(
            "order_created",
            order_id=db_order.id,
            order_number=db_order.order_number,
            total_amount=str(db_order.total_amount),
        )
        return self._to_entity(db_order)

    async def get_by_id(self, order_id: int) -> Optional[Order]:
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.id == order_id)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def get_by_order_number(self, order_number: str) -> Optional[Order]:
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.order_number == order_number)
        )
        db_order = result.scalar_one_or_none()
        return self._to_entity(db_order) if db_order else None

    async def list_by_owner(self, owner_id: int, skip: int = 0, limit: int = 100) -> List[Order]:
        result = await self.session.execute(
            select(OrderModel)
            .where(OrderModel.owner_id == owner_id)
            .order_by(OrderModel.created_at.desc(), OrderModel.id.desc())
            .offset(skip)
            .limit(limit)
        )
        return [self._to_entity(o) for o in result.scalars().all()]

    async def update(self, order: Order) -> Order:
        result = await self.session.execute(
            select(OrderModel).where(OrderModel.id == order.id)
        )
        db_order = result.scalar_one_or_none()

        if not db_order:
            raise ValueError(f"Order with id {order.id} not found")

        # order_number and totals are fixed at creation
        db_order.status = order.status.value
        db_order.payment_id = order.payment_id
        db_order.paid_at = order.paid_at
        db_order.notes = order.notes
        db_order.extra_metadata = dict(order.metadata or {})
        db_order.updated_at = order.updated_at

        await self.session.flush()
        await self.session.refresh(db_order)

        logger.info("order_updated", order_id=db_order.id, status=db_order.status)
        return self._to_entity(db_order)
