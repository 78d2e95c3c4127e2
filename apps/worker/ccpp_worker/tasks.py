"""Celery tasks for background maintenance."""

import logging
from typing import Optional

from celery import Task
from sqlalchemy.orm import Session

from ccpp_worker.celery_app import celery_app

logger = logging.getLogger(__name__)


class DatabaseTask(Task):
    """Task with database session."""

    _db: Optional[Session] = None

    @property
    def db(self) -> Session:
        """Get database session."""
        if self._db is None:
            from ccpp_api.db.session import get_session_factory

            self._db = get_session_factory()()
        return self._db

    def after_return(self, *args, **kwargs):
        """Close database session after task."""
        if self._db:
            self._db.close()
            self._db = None


@celery_app.task(base=DatabaseTask, bind=True, max_retries=3)
def backfill_fingerprints(self, limit: Optional[int] = None):
    """Fingerprint documents that have an image but no perceptual hash."""
    from ccpp_api.errors import PersistenceError
    from ccpp_api.services.backfill import backfill_document_fingerprints
    from ccpp_api.storage.images import get_image_store
    from ccpp_api.vision import PerceptualMatcher

    try:
        return backfill_document_fingerprints(
            self.db,
            get_image_store(),
            PerceptualMatcher.from_settings(),
            limit=limit,
        )
    except PersistenceError as e:
        logger.error(f"Fingerprint backfill failed: {e}", extra={"task": "backfill_fingerprints"})
        raise self.retry(exc=e, countdown=60)


@celery_app.task
def verify_ledger():
    """Verify the logbook chain and log the outcome."""
    from ccpp_api.db.session import get_session_factory
    from ccpp_api.storage.backend import LocalBackend

    report = LocalBackend(get_session_factory()).verify_ledger()
    if not report["valid"]:
        logger.error(f"Logbook chain broken: {report['error']}", extra={"task": "verify_ledger"})
    return report
