"""
Celery configuration for background tasks
"""
from celery import Celery
import logging

from dairydesk.core.config import settings

logger = logging.getLogger(__name__)

celery_app = Celery(
    "dairydesk",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=[
        "dairydesk.modules.receipts.tasks",
    ]
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,  # 30 minutes
    task_soft_time_limit=25 * 60,  # 25 minutes
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,

    result_expires=3600,  # 1 hour

    task_routes={
        "dairydesk.modules.receipts.tasks.*": {"queue": "ledger"},
    },

    beat_schedule={
        "audit-all-ledgers": {
            "task": "dairydesk.modules.receipts.tasks.audit_all_tenants",
            "schedule": 86400.0,  # Run daily
        },
    }
)

if __name__ == "__main__":
    celery_app.start()
