"""
订单应用服务 - 下单、查询与取消
"""
from __future__ import annotations

from typing import Callable, List

from application.dtos.payments import CreateOrderIn, OrderOut
from application.utils.address import build_partial_address
from core.logging_config import get_logger
from domain.common.exceptions import CustomerNotFoundException, OrderNotFoundException
from domain.common.unit_of_work import AbstractUnitOfWork
from domain.order.entity import Order, OrderItem


logger = get_logger(__name__)


class OrderApplicationService:
    """订单用例编排；金额由 Order.create 统一计算与校验。"""

    def __init__(self, uow_factory: Callable[..., AbstractUnitOfWork]):
        self._uow_factory = uow_factory

    async def create_order(self, data: CreateOrderIn) -> OrderOut:
        items = [
            OrderItem(
                name=item.name,
                price=item.price,
                quantity=item.quantity,
                description=item.description,
                sku=item.sku,
                category=item.category,
            )
            for item in data.items
        ]
        async with self._uow_factory() as uow:
            customer = await uow.customer_repository.get_by_id(data.customer_id)
            if customer is None:
                raise CustomerNotFoundException(data.customer_id)

            order = Order.create(
                owner_id=customer.id,
                items=items,
                currency=data.currency,
                tax=data.tax,
                shipping=data.shipping,
                discount=data.discount,
                shipping_address=build_partial_address(data.shipping_address) or customer.shipping_address,
                billing_address=build_partial_address(data.billing_address) or customer.billing_address,
                notes=data.notes,
                metadata=data.metadata,
            )
            order = await uow.order_repository.create(order)

        logger.info(
            "order_created",
            order_id=order.id,
            order_number=order.order_number,
            owner_id=order.owner_id,
            total_amount=str(order.total_amount),
            currency=order.currency.value,
        )
        return OrderOut.model_validate(order)

    async def get_order(self, order_id: int) -> OrderOut:
        async with self._uow_factory(readonly=True) as uow:
            order = await uow.order_repository.get_by_id(order_id)
        if order is None:
            raise OrderNotFoundException(order_id)
        return OrderOut.model_validate(order)

    async def list_orders(self, owner_id: int, skip: int = 0, limit: int = 100) -> List[OrderOut]:
        """按创建时间倒序返回客户的订单。"""
        async with self._uow_factory(readonly=True) as uow:
            orders = await uow.order_repository.list_by_owner(owner_id, skip=skip, limit=limit)
        return [OrderOut.model_validate(order) for order in orders]

    async def cancel_order(self, order_id: int) -> OrderOut:
        """仅 pending/processing 状态可取消，其它状态抛出 InvalidStateTransitionException。"""
        async with self._uow_factory() as uow:
            order = await uow.order_repository.get_by_id(order_id)
            if order is None:
                raise OrderNotFoundException(order_id)
            order.cancel()
            order = await uow.order_repository.update(order)
        logger.info("order_cancelled", order_id=order.id, order_number=order.order_number)
        return OrderOut.model_validate(order)
