"""Celery application configuration.

Runs the periodic maintenance work that does not belong in the API process:
- Project status re-evaluation (hourly)
- On-demand reconciliation cycles
"""

from celery import Celery
from celery.schedules import crontab
from kombu import Exchange, Queue

from crowdsync.core.config import get_settings

settings = get_settings()

# Create Celery application
celery_app = Celery(
    "crowdsync",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["crowdsync.tasks.reconciliation_tasks"],
)

default_exchange = Exchange("default", type="direct")

celery_app.conf.task_queues = (
    Queue("sync", exchange=default_exchange, routing_key="sync"),
    Queue("maintenance", exchange=default_exchange, routing_key="maintenance"),
)

# Default queue
celery_app.conf.task_default_queue = "maintenance"
celery_app.conf.task_default_exchange = "default"
celery_app.conf.task_default_routing_key = "maintenance"

# Task routing
celery_app.conf.task_routes = {
    "crowdsync.tasks.reconciliation_tasks.run_reconciliation_cycle": {"queue": "sync"},
    "crowdsync.tasks.reconciliation_tasks.update_expired_projects": {
        "queue": "maintenance"
    },
}

celery_app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task execution
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_track_started=True,

    # Result backend
    result_expires=86400,

    # Worker configuration
    worker_prefetch_multiplier=1,  # Sync cycles are long and must not pile up

    # Logging
    worker_hijack_root_logger=False,

    # Broker settings
    broker_connection_retry_on_startup=True,
)

# Celery Beat schedule (periodic tasks)
celery_app.conf.beat_schedule = {
    # Project status re-evaluation at the top of every hour
    "update-expired-projects": {
        "task": "crowdsync.tasks.reconciliation_tasks.update_expired_projects",
        "schedule": crontab(minute=0),
        "options": {"queue": "maintenance"},
    },
}
