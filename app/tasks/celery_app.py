from celery import Celery
from celery.schedules import crontab

from app.config import get_settings

settings = get_settings()

# Create Celery application
celery_app = Celery(
    "pos_backoffice",
    broker=settings.CELERY_BROKER_URL,
    backend=settings.CELERY_RESULT_BACKEND,
    include=["app.tasks.alert_tasks"]
)

# Celery configuration
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Keep task results for a day
    result_expires=86400,

    # Task settings
    task_track_started=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,  # Soft limit 4 minutes

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Retry settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,

    # Expiry alerts are polled, not pushed
    beat_schedule={
        "scan-expiring-products": {
            "task": "scan_expiring_products",
            "schedule": crontab(hour=6, minute=0),
            "kwargs": {"days": settings.EXPIRY_WINDOW_DAYS},
        },
    },
)
