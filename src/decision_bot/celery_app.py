"""Celery application configuration."""
from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from decision_bot.config import get_settings
from decision_bot.core.logging import setup_logging

settings = get_settings()

celery_app = Celery(
    "decision_bot",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=["decision_bot.tasks.jobs"],
)

celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Reliability settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    # Result backend settings
    result_expires=3600,

    task_routes={
        "decision_bot.tasks.jobs.*": {"queue": "default"},
    },

    # Task time limits
    task_soft_time_limit=300,
    task_time_limit=600,
)

celery_app.conf.beat_schedule = {
    "run-scheduled-jobs": {
        "task": "decision_bot.tasks.jobs.run_scheduled_jobs",
        "schedule": settings.job_poll_interval_seconds,
    },
}


@celery_setup_logging.connect
def _configure_logging(**_kwargs) -> None:
    setup_logging()
