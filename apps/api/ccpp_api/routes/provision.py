"""Equipment provisioning endpoint."""

from fastapi import APIRouter, Depends, File, Form, UploadFile, status

from ccpp_api.deps import get_local_backend
from ccpp_api.storage.backend import LocalBackend

router = APIRouter(prefix="/v1", tags=["provisioning"])


@router.post("/provision", status_code=status.HTTP_201_CREATED)
def provision(
    image: UploadFile = File(...),
    external_id: str = Form("", alias="externalId"),
    name: str = Form(""),
    type: str = Form(""),
    ocr_text: str = Form("", alias="ocrText"),
    description: str = Form(""),
    backend: LocalBackend = Depends(get_local_backend),
):
    """Create equipment, its reference photo and a DOCUMENT_ADDED log entry."""
    return backend.provision(
        {"externalId": external_id, "name": name, "type": type},
        image.file.read(),
        content_type=image.content_type,
        ocr_text=ocr_text or None,
        description=description or None,
    )
