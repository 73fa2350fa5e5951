"""Celery application for notifications and webhook retries"""
from __future__ import annotations

import os

from celery import Celery
from kombu import Queue

from core.config import settings
from core.logging_config import get_logger
from .beat import CELERY_BEAT_SCHEDULE


logger = get_logger(__name__)

CELERY_IMPORTS = (
    "infrastructure.tasks.tasks",
)


def _broker_url() -> str | None:
    return settings.celery.broker_url or settings.redis.url or os.getenv("CELERY_BROKER_URL")


def _result_backend() -> str | None:
    return settings.celery.result_backend or settings.redis.url or os.getenv("CELERY_RESULT_BACKEND")


celery_app = Celery("merchant_payments")

celery_app.conf.update(
    broker_url=_broker_url(),
    result_backend=_result_backend(),
    # Task kwargs carry only ids and plain dicts
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    # A notification lost with its worker is redelivered
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,
    task_soft_time_limit=60,
    task_time_limit=120,
    result_expires=3600,
    worker_prefetch_multiplier=1,
    task_default_queue="default",
    task_default_retry_delay=5,
    task_queues=(
        Queue("high"),
        Queue("default"),
        Queue("low"),
    ),
    # Customer-facing notices first; inventory and webhook retries can lag
    task_routes={
        "notifications.send_payment_confirmation": {"queue": "high"},
        "notifications.send_payment_failure": {"queue": "high"},
        "notifications.*": {"queue": "default"},
        "webhooks.*": {"queue": "low"},
    },
    beat_schedule=CELERY_BEAT_SCHEDULE,
    imports=CELERY_IMPORTS,
    task_always_eager=settings.is_eager_tasks,
    # Eager mode surfaces task errors to the dispatcher, which logs them
    task_eager_propagates=False,
)

celery_app.autodiscover_tasks(packages=CELERY_IMPORTS)


@celery_app.on_after_configure.connect
def _log_configuration(sender, **kwargs):
    logger.info(
        "celery_configured",
        broker=sender.conf.broker_url,
        result_backend=sender.conf.result_backend,
        eager=sender.conf.task_always_eager,
    )
