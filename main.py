"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.routes import customers as customers_routes
from api.routes import orders as orders_routes
from api.routes import payments as payments_routes
from api.routes import transactions as transactions_routes
from api.middleware import RequestIDMiddleware, LoggingMiddleware
from core.config import settings
from core.exceptions import register_exception_handlers
from core.response import success_response
from core.logging_config import get_logger, configure_logging
from infrastructure.database import create_tables
from infrastructure.cache import get_redis_cache, init_redis_cache, shutdown_redis_cache


# 初始化日志：在入口处显式配置
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    # 启动时创建数据库表（仅开发环境）
    if settings.DEBUG:
        await create_tables()
        logger.info("database_initialized", message="Database tables created (development)")
    else:
        logger.info("database_schema_managed_externally")

    # 限流计数依赖 Redis；未配置时限流关闭，连接失败时限流按放行处理
    redis_started = False
    if settings.redis.url:
        try:
            cache = await init_redis_cache()
            redis_started = True
            if not await cache.ping():
                logger.warning("redis_unreachable_at_startup", rate_limit="fail_open")
        except Exception as exc:
            logger.error("redis_cache_init_failed", error=str(exc))
    if settings.rate_limit.enabled and not redis_started:
        logger.warning("rate_limit_disabled", reason="redis not configured")

    yield

    if redis_started:
        await shutdown_redis_cache()
        logger.info("redis_cache_shutdown", message="Redis cache shutdown")
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="Merchant payments service with gateway webhook reconciliation",
)

# 添加中间件（注意顺序：后添加的先执行）
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册全局异常处理器
register_exception_handlers(app)

# 注册路由
app.include_router(customers_routes.router, prefix="/api/v1")
app.include_router(orders_routes.router, prefix="/api/v1")
app.include_router(payments_routes.router, prefix="/api/v1")
app.include_router(transactions_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc",
        },
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点；Redis 不可用时服务仍可用，只是限流关闭"""
    cache = get_redis_cache()
    redis_state = "disabled" if cache is None else ("up" if await cache.ping() else "down")
    return success_response(
        data={
            "status": "healthy",
            "redis": redis_state,
            "rate_limit": settings.rate_limit.enabled and redis_state == "up",
        },
        message="OK",
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
