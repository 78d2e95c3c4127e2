"""Shared Celery client for API to enqueue tasks.

Configured to match the worker (JSON serializer, UTC, Redis broker and
backend). Tasks are sent by name so the API does not import worker code.
"""

import logging
from typing import Optional

from celery import Celery

from ccpp_api.settings import get_settings

logger = logging.getLogger(__name__)

_celery_app: Optional[Celery] = None

BACKFILL_FINGERPRINTS_TASK = "ccpp_worker.tasks.backfill_fingerprints"
VERIFY_LEDGER_TASK = "ccpp_worker.tasks.verify_ledger"


def get_celery_app() -> Celery:
    """Get or create singleton Celery app instance."""
    global _celery_app

    if _celery_app is None:
        settings = get_settings()

        _celery_app = Celery("ccpp_api")
        _celery_app.conf.update(
            broker_url=settings.redis_url,
            result_backend=settings.redis_url,
            task_serializer="json",
            accept_content=["json"],
            result_serializer="json",
            timezone="UTC",
            enable_utc=True,
            task_track_started=True,
            task_time_limit=30 * 60,  # 30 minutes (matches worker config)
            task_soft_time_limit=25 * 60,  # 25 minutes (matches worker config)
        )

        logger.info("Initialized Celery client for ccpp_api")

    return _celery_app
