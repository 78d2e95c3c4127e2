"""Storage backend selected once at startup.

``LocalBackend`` talks to the embedded SQL store directly; ``RemoteBackend``
goes through the HTTP API of a server running ``LocalBackend``. Callers
(CLI, worker) use whichever ``get_backend()`` returns and never branch on the
environment themselves.
"""

import logging
from functools import lru_cache
from typing import Optional

import httpx
from sqlalchemy.orm import sessionmaker

from ccpp_api.errors import ConflictError, DecodeError, PersistenceError, RenderError, ValidationError
from ccpp_api.ledger import HashChainLedger, SqlLedgerRepository
from ccpp_api.services.identification import IdentificationService
from ccpp_api.services.provisioning import ComponentIn, ProvisioningService
from ccpp_api.services.sync import build_snapshot, import_snapshot
from ccpp_api.settings import Settings, get_settings
from ccpp_api.storage.images import ImageStore, get_image_store
from ccpp_api.utils.event_log import EventLogger
from ccpp_api.vision import Detector, PerceptualMatcher

logger = logging.getLogger(__name__)

REMOTE_ERRORS = {
    cls.__name__: cls
    for cls in (ValidationError, PersistenceError, ConflictError, DecodeError, RenderError)
}
STATUS_ERRORS = {409: ConflictError, 422: ValidationError}


class StorageBackend:
    """Operations the application needs from a logbook/visual store."""

    def append_log_entry(self, entry_data: dict) -> dict:
        raise NotImplementedError

    def list_log_entries(self, equipment_id: Optional[str] = None) -> list[dict]:
        raise NotImplementedError

    def verify_ledger(self) -> dict:
        raise NotImplementedError

    def fingerprint(self, image_bytes: bytes) -> str:
        raise NotImplementedError

    def identify(self, image_bytes: bytes) -> dict:
        raise NotImplementedError

    def provision(
        self,
        component: dict,
        image_bytes: bytes,
        content_type: Optional[str] = None,
        ocr_text: Optional[str] = None,
        description: Optional[str] = None,
    ) -> dict:
        raise NotImplementedError

    def snapshot(self) -> dict:
        raise NotImplementedError


class LocalBackend(StorageBackend):
    """Embedded SQL store plus object storage for images."""

    def __init__(
        self,
        session_factory: sessionmaker,
        settings: Optional[Settings] = None,
        image_store: Optional[ImageStore] = None,
        detector: Optional[Detector] = None,
        event_logger: Optional[EventLogger] = None,
    ):
        """Initialize local backend."""
        settings = settings or get_settings()
        self.session_factory = session_factory
        self._image_store = image_store
        self.ledger = HashChainLedger(
            SqlLedgerRepository(session_factory),
            event_logger=event_logger,
            max_retries=settings.ledger_append_retries,
        )
        self.matcher = PerceptualMatcher.from_settings(settings, event_logger=event_logger)
        self.identification = IdentificationService(session_factory, self.matcher, detector)

    @property
    def image_store(self) -> ImageStore:
        # MinIO is only contacted when an operation actually needs images
        if self._image_store is None:
            self._image_store = get_image_store()
        return self._image_store

    def append_log_entry(self, entry_data: dict) -> dict:
        return self.ledger.append(entry_data).to_dict()

    def list_log_entries(self, equipment_id: Optional[str] = None) -> list[dict]:
        entries = self.ledger.entries(equipment_id=equipment_id, newest_first=True)
        return [entry.to_dict() for entry in entries]

    def verify_ledger(self) -> dict:
        return self.ledger.verify().to_dict()

    def fingerprint(self, image_bytes: bytes) -> str:
        return self.matcher.compute_fingerprint(image_bytes)

    def identify(self, image_bytes: bytes) -> dict:
        return IdentificationService.describe(self.identification.identify(image_bytes))

    def provision(
        self,
        component: dict,
        image_bytes: bytes,
        content_type: Optional[str] = None,
        ocr_text: Optional[str] = None,
        description: Optional[str] = None,
    ) -> dict:
        service = ProvisioningService(self.session_factory, self.ledger, self.matcher, self.image_store)
        result = service.provision(
            ComponentIn.model_validate(component),
            image_bytes,
            content_type=content_type,
            ocr_text=ocr_text,
            description=description,
        )
        return result.to_dict()

    def snapshot(self) -> dict:
        return build_snapshot(self.session_factory)

    def pull_from(self, remote: StorageBackend) -> dict:
        """Copy missing records from another backend and re-verify the chain."""
        return import_snapshot(self.ledger, remote.snapshot())


class RemoteBackend(StorageBackend):
    """HTTP client for a server exposing the ``/v1`` API."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        client: Optional[httpx.Client] = None,
    ):
        """Initialize remote backend."""
        self.base_url = base_url.rstrip("/")
        self.client = client or httpx.Client(base_url=self.base_url, timeout=timeout)

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = self.client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"Remote {method} {path} failed: {e}")
            raise PersistenceError(f"Remote server unreachable: {e}") from e

        if response.status_code < 400:
            return response

        try:
            body = response.json()
        except ValueError:
            body = {"detail": response.text}
        message = f"{method} {path} -> {response.status_code}: {body.get('detail')}"
        error_class = REMOTE_ERRORS.get(body.get("error"))
        if error_class is None:
            error_class = STATUS_ERRORS.get(response.status_code, PersistenceError)
        raise error_class(message)

    def append_log_entry(self, entry_data: dict) -> dict:
        return self._request("POST", "/v1/logbook", json=entry_data).json()

    def list_log_entries(self, equipment_id: Optional[str] = None) -> list[dict]:
        params = {"equipmentId": equipment_id} if equipment_id else None
        return self._request("GET", "/v1/logbook", params=params).json()

    def verify_ledger(self) -> dict:
        return self._request("GET", "/v1/logbook/verify").json()

    def fingerprint(self, image_bytes: bytes) -> str:
        files = {"image": ("image", image_bytes, "application/octet-stream")}
        return self._request("POST", "/v1/vision/fingerprint", files=files).json()["hash"]

    def identify(self, image_bytes: bytes) -> dict:
        files = {"image": ("image", image_bytes, "application/octet-stream")}
        return self._request("POST", "/v1/vision/identify", files=files).json()

    def provision(
        self,
        component: dict,
        image_bytes: bytes,
        content_type: Optional[str] = None,
        ocr_text: Optional[str] = None,
        description: Optional[str] = None,
    ) -> dict:
        data = {
            "externalId": component.get("externalId") or component.get("external_id") or "",
            "name": component.get("name") or "",
            "type": component.get("type") or "",
            "ocrText": ocr_text or "",
            "description": description or "",
        }
        files = {"image": ("image", image_bytes, content_type or "application/octet-stream")}
        return self._request("POST", "/v1/provision", data=data, files=files).json()

    def snapshot(self) -> dict:
        return self._request("GET", "/v1/sync/data").json()

    def close(self) -> None:
        self.client.close()


@lru_cache()
def get_backend() -> StorageBackend:
    """Backend chosen by ``STORAGE_BACKEND`` (``local`` or ``remote``)."""
    settings = get_settings()
    if settings.storage_backend == "remote":
        logger.info(f"Using remote storage backend at {settings.remote_api_url}")
        return RemoteBackend(settings.remote_api_url, timeout=settings.remote_timeout_seconds)

    from ccpp_api.db.session import get_session_factory

    logger.info("Using local storage backend")
    return LocalBackend(get_session_factory(), settings)
