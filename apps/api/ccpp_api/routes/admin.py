"""Admin routes for background maintenance tasks."""

import logging

from fastapi import APIRouter, HTTPException, status

from ccpp_api.celery_client import (
    BACKFILL_FINGERPRINTS_TASK,
    VERIFY_LEDGER_TASK,
    get_celery_app,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


def _enqueue(task_name: str) -> dict:
    try:
        result = get_celery_app().send_task(task_name)
    except Exception as e:
        logger.error(f"Failed to enqueue {task_name}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Task queue unavailable",
        )
    return {"task_id": result.id, "task": task_name, "status": "queued"}


@router.post("/fingerprints/backfill", status_code=status.HTTP_202_ACCEPTED)
def backfill_fingerprints():
    """Queue fingerprinting of documents that have an image but no hash."""
    return _enqueue(BACKFILL_FINGERPRINTS_TASK)


@router.post("/ledger/verify", status_code=status.HTTP_202_ACCEPTED)
def verify_ledger():
    """Queue a background verification of the logbook chain."""
    return _enqueue(VERIFY_LEDGER_TASK)
