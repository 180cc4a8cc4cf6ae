"""
Celery application configuration for background tasks
"""

from celery import Celery
from celery.schedules import crontab
from expense_api.core.config import settings

# Create Celery app instance
celery_app = Celery(
    'expense_api',
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=['expense_api.tasks.maintenance_tasks'],
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone=settings.TIMEZONE,
    enable_utc=True,
    task_track_started=True,
    task_time_limit=15 * 60,
    task_soft_time_limit=10 * 60,
)

# Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    'sync-fallback-receipts': {
        'task': 'expense_api.tasks.maintenance_tasks.sync_fallback_receipts',
        'schedule': crontab(minute='*/15'),
    },
    'purge-expired-sessions-daily': {
        'task': 'expense_api.tasks.maintenance_tasks.purge_expired_sessions',
        'schedule': crontab(hour=3, minute=0),
    },
}
