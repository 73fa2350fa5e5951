"""Celery beat schedule configuration."""
from __future__ import annotations

CELERY_BEAT_SCHEDULE = {
    # Re-run reconciliation for failed or stuck webhook events
    "webhooks-retry-failed": {
        "task": "webhooks.retry_failed",
        "schedule": 300.0,
        "options": {"queue": "low", "expires": 240},
    },
}
