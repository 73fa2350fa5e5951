"""
API依赖项 - 应用服务装配与限流
"""
from typing import AsyncIterator, Callable

from fastapi import Depends, Request

from api.middleware.request_id import resolve_client_ip
from application.ports.notifications import NotificationDispatcher
from application.ports.payment_gateway import PaymentGateway
from application.services.order_service import OrderApplicationService
from application.services.payment_service import PaymentApplicationService
from application.services.webhook_service import WebhookApplicationService
from core.config import settings
from domain.common.exceptions import RateLimitException
from domain.common.unit_of_work import AbstractUnitOfWork
from infrastructure.cache import FixedWindowRateLimiter, get_redis_cache
from infrastructure.external.payments import get_payment_gateway
from infrastructure.tasks import TaskDispatcher
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork


def get_uow_factory() -> Callable[..., AbstractUnitOfWork]:
    return SQLAlchemyUnitOfWork


async def get_gateway() -> AsyncIterator[PaymentGateway]:
    gateway = get_payment_gateway()
    try:
        yield gateway
    finally:
        await gateway.aclose()


def get_notification_dispatcher() -> NotificationDispatcher:
    return TaskDispatcher()


async def get_payment_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    gateway: PaymentGateway = Depends(get_gateway),
) -> PaymentApplicationService:
    return PaymentApplicationService(uow_factory, gateway)


async def get_order_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
) -> OrderApplicationService:
    return OrderApplicationService(uow_factory)


async def get_webhook_service(
    uow_factory: Callable[..., AbstractUnitOfWork] = Depends(get_uow_factory),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
) -> WebhookApplicationService:
    return WebhookApplicationService(uow_factory, dispatcher)


def get_rate_limiter() -> FixedWindowRateLimiter:
    # 未初始化 Redis 或显式关闭时限流器为空操作
    cache = get_redis_cache() if settings.rate_limit.enabled else None
    return FixedWindowRateLimiter(
        cache,
        scope="payments",
        max_requests=settings.rate_limit.max_requests,
        window_seconds=settings.rate_limit.window_seconds,
    )


async def enforce_payment_rate_limit(
    request: Request,
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
) -> None:
    """支付类接口按客户端 IP 做固定窗口限流，超限抛出 RateLimitException (429)。"""
    decision = await limiter.hit(resolve_client_ip(request))
    if not decision.allowed:
        raise RateLimitException(retry_after=decision.retry_after, limit=decision.limit)
