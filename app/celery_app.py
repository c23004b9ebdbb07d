"""Celery application configuration."""

from celery import Celery
from celery.signals import setup_logging

from app.core.config import settings

# Create Celery instance
celery_app = Celery(
    "llm_chat",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["app.tasks.chat_tasks"],
)

# Configure Celery
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=15 * 60,  # 15 minutes
    task_soft_time_limit=10 * 60,  # 10 minutes
    task_ignore_result=True,
    worker_prefetch_multiplier=1,
    worker_max_tasks_per_child=1000,
)

# Configure Celery Beat schedule for periodic tasks
celery_app.conf.beat_schedule = {
    "sweep-stale-generations": {
        "task": "app.tasks.chat_tasks.sweep_stale_generations_task",
        "schedule": float(settings.sweep_interval_seconds),
        "options": {"expires": settings.sweep_interval_seconds},
    },
}

# Streaming runs are long; keep them off the queue used by titles and sweeps
celery_app.conf.task_routes = {
    "app.tasks.chat_tasks.generate_response_task": {"queue": "generation"},
    "app.tasks.chat_tasks.*": {"queue": "chat"},
}


@setup_logging.connect
def configure_worker_logging(**_kwargs):
    """Use the application's log format inside workers."""
    from app.core.logging import configure_logging

    configure_logging()
