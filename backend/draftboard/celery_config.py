"""
Celery app for the reconciliation sweeps.

Webhooks are the primary path for settling payouts and funding; these jobs
catch whatever the webhooks missed. Everything runs on the ``reconciliation``
queue with Redis as broker and result backend.
"""

import logfire
from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init

from draftboard.config import get_settings
from draftboard.observability import initialize_logfire

settings = get_settings()

celery_app = Celery(
    "draftboard",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["draftboard.tasks.reconciliation_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    result_serializer="json",
    accept_content=["json"],
    timezone="UTC",
    enable_utc=True,
    result_expires=3600,
    task_default_queue="reconciliation",
    # A sweep killed mid-run is safe to redeliver: every transition is a CAS
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
)

celery_app.conf.beat_schedule = {
    "refresh-processing-payouts": {
        "task": "tasks.refresh_processing_payouts",
        "schedule": 600.0,
    },
    "expire-stale-funding-sessions": {
        "task": "tasks.expire_stale_funding_sessions",
        "schedule": crontab(minute="*/15"),
    },
}


@worker_process_init.connect
def init_worker_process(**kwargs) -> None:
    """Configure Logfire once per worker process."""
    worker_settings = get_settings()
    initialize_logfire(worker_settings)
    logfire.info("Reconciliation worker started", sandbox=worker_settings.processor.sandbox)
