"""Celery application for the CCPP worker.

Shares ``ccpp_api`` settings. Beat re-verifies the logbook chain every
``LEDGER_VERIFY_INTERVAL_SECONDS`` (0 disables the schedule).
"""

from celery import Celery

from ccpp_api.celery_client import VERIFY_LEDGER_TASK
from ccpp_api.settings import get_settings

settings = get_settings()

celery_app = Celery(
    "ccpp_worker",
    broker=settings.redis_url,
    backend=settings.redis_url,
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=30 * 60,
    task_soft_time_limit=25 * 60,
    # Fingerprinting is CPU bound; one task at a time per worker process
    worker_prefetch_multiplier=1,
)

if settings.ledger_verify_interval_seconds > 0:
    celery_app.conf.beat_schedule = {
        "verify-ledger": {
            "task": VERIFY_LEDGER_TASK,
            "schedule": float(settings.ledger_verify_interval_seconds),
        },
    }

# Tasks register on import, so this stays below the app definition
from ccpp_worker import tasks  # noqa: F401, E402
