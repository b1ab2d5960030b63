"""Celery worker configuration.

Runs periodic inventory maintenance:
- Occupancy health checks
- Nightly room aggregate recounts
"""

from celery import Celery
from celery.schedules import crontab

from hostelhub.config import settings

# Create Celery app
celery_app = Celery(
    "hostelhub_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["hostelhub.tasks"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Asia/Kolkata",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,

    # Worker settings
    worker_prefetch_multiplier=1,

    result_expires=3600,

    # Retry settings
    task_default_retry_delay=60,
    task_max_retries=3,

    beat_schedule={
        "occupancy-health-check": {
            "task": "hostelhub.tasks.run_occupancy_health_check",
            "schedule": crontab(minute=0),
        },
        # Repair room counts at 3 AM, when the front desk is quiet
        "recount-all-hostels": {
            "task": "hostelhub.tasks.recount_all_hostels",
            "schedule": crontab(hour=3, minute=0),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
