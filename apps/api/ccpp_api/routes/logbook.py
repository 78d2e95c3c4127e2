"""Logbook endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from ccpp_api.deps import get_local_backend
from ccpp_api.ledger.schemas import ChainReport, LogEntryCreate, LogEntryOut
from ccpp_api.storage.backend import LocalBackend

router = APIRouter(prefix="/v1/logbook", tags=["logbook"])


@router.get("", response_model=list[LogEntryOut], response_model_by_alias=True)
def list_log_entries(
    equipment_id: Optional[str] = Query(None, alias="equipmentId"),
    backend: LocalBackend = Depends(get_local_backend),
):
    """Log entries, newest first."""
    return backend.list_log_entries(equipment_id=equipment_id)


@router.post(
    "",
    response_model=LogEntryOut,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
def append_log_entry(
    entry: LogEntryCreate,
    backend: LocalBackend = Depends(get_local_backend),
):
    """Append a signed entry to the logbook."""
    return backend.append_log_entry(entry.model_dump())


@router.get("/verify", response_model=ChainReport, response_model_by_alias=True)
def verify_logbook(backend: LocalBackend = Depends(get_local_backend)):
    """Re-verify the whole signature chain."""
    return backend.verify_ledger()
