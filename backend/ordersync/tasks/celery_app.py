from celery import Celery
from celery.schedules import crontab
from ordersync.core.config import settings

celery_app = Celery(
    "ordersync",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=['ordersync.tasks.scheduled_tasks']
)

celery_app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',
    timezone='UTC',
    enable_utc=True,
    worker_prefetch_multiplier=1,
    # Re-delivered after a worker crash; sync tasks tolerate duplicates via status_version
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    # Above PROVIDER_HTTP_TIMEOUT_SECONDS for the token call plus the action call
    task_time_limit=120,
    task_soft_time_limit=90,
)

# Celery Beat
celery_app.conf.beat_schedule = {
    'retry-provider-sync': {
        'task': 'retry_provider_sync',
        'schedule': crontab(minute=f'*/{settings.SYNC_RETRY_INTERVAL_MINUTES}'),
        'options': {'queue': 'default'}
    },
}
