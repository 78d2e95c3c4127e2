"""Bulk data pull for local stores."""

from fastapi import APIRouter, Depends

from ccpp_api.deps import get_local_backend
from ccpp_api.storage.backend import LocalBackend

router = APIRouter(prefix="/v1/sync", tags=["sync"])


@router.get("/data")
def sync_data(backend: LocalBackend = Depends(get_local_backend)):
    """Equipments, documents and log entries (chain order)."""
    return backend.snapshot()
