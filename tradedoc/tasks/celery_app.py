"""
TradeDoc Tracker - Celery Configuration

Celery configuration for background task processing.
Uses Redis as the message broker and result backend.
"""

from celery import Celery
from celery.schedules import crontab

from tradedoc.config import settings


# Create Celery app
celery_app = Celery(
    'tradedoc_tracker',
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=['tradedoc.tasks.celery_tasks'],
)

# Celery configuration
celery_app.conf.update(
    # Serialization
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    # Timezone
    timezone=settings.business_timezone,
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,  # 5 minutes
    task_soft_time_limit=240,  # 4 minutes (warning before hard limit)

    # Worker settings
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=86400,  # 24 hours

    # Beat schedule for periodic tasks
    beat_schedule={
        # Reminder sweep every day at 10 AM business time
        'reminder-sweep-daily': {
            'task': 'tradedoc.tasks.celery_tasks.reminder_sweep_task',
            'schedule': crontab(hour=10, minute=0),
        },
    },
)


# Task routing
celery_app.conf.task_routes = {
    'tradedoc.tasks.celery_tasks.dispatch_reminder_task': {'queue': 'email'},
    'tradedoc.tasks.celery_tasks.*': {'queue': 'default'},
}
