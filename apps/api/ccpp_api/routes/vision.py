"""Visual fingerprint and identification endpoints."""

from fastapi import APIRouter, Depends, File, UploadFile

from ccpp_api.deps import get_local_backend
from ccpp_api.storage.backend import LocalBackend

router = APIRouter(prefix="/v1/vision", tags=["vision"])


@router.post("/fingerprint")
def fingerprint(
    image: UploadFile = File(...),
    backend: LocalBackend = Depends(get_local_backend),
):
    """Perceptual hash of an uploaded image."""
    return {"hash": backend.fingerprint(image.file.read())}


@router.post("/identify")
def identify(
    image: UploadFile = File(...),
    backend: LocalBackend = Depends(get_local_backend),
):
    """Match an uploaded photo against the known equipment photos."""
    return backend.identify(image.file.read())
