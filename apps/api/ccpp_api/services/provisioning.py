"""Provisioning of new equipment from a captured photo."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session, sessionmaker

from ccpp_api.errors import ConflictError
from ccpp_api.ledger import HashChainLedger
from ccpp_api.ledger.schemas import utc_now
from ccpp_api.models import Document, Equipment, LogEntryType
from ccpp_api.services.visual_db import as_candidates, load_visual_database
from ccpp_api.storage.images import ImageStore
from ccpp_api.utils import metrics
from ccpp_api.utils.hashing import checksum
from ccpp_api.vision import PerceptualMatcher

logger = logging.getLogger(__name__)

PROVISIONING_SOURCE = "Provisioning"


class ComponentIn(BaseModel):
    """Equipment fields entered by the operator; all optional."""

    model_config = ConfigDict(populate_by_name=True)

    external_id: Optional[str] = Field(None, alias="externalId")
    name: Optional[str] = None
    type: Optional[str] = None

    def resolved(self) -> dict:
        """Fill blanks with provisioning defaults."""
        external_id = (self.external_id or "").strip() or f"PROV-{int(time.time() * 1000)}"
        return {
            "externalId": external_id,
            "name": (self.name or "").strip() or f"Unspecified equipment - {external_id}",
            "type": (self.type or "").strip() or "UNKNOWN",
        }


@dataclass
class ProvisionResult:
    """Records created by a provisioning action."""

    equipment: dict
    document: dict
    log_entry: dict
    duplicate_of: Optional[dict] = None

    def to_dict(self) -> dict:
        return {
            "success": True,
            "equipment": self.equipment,
            "document": self.document,
            "logEntry": self.log_entry,
            "duplicateOf": self.duplicate_of,
        }


class ProvisioningService:
    """Creates equipment + document + chained log entry in one transaction."""

    def __init__(
        self,
        session_factory: sessionmaker,
        ledger: HashChainLedger,
        matcher: PerceptualMatcher,
        image_store: ImageStore,
    ):
        """Initialize provisioning service."""
        self.session_factory = session_factory
        self.ledger = ledger
        self.matcher = matcher
        self.image_store = image_store

    def _find_duplicate(self, fingerprint: str) -> Optional[dict]:
        """Known document whose photo matches the new one, if any."""
        references = load_visual_database(self.session_factory)
        match = self.matcher.find_best_match(fingerprint, as_candidates(references))
        if match is None:
            return None
        similarity = self.matcher.similarity(match.distance, len(fingerprint))
        if not self.matcher.is_match(similarity):
            return None
        reference = match.id
        return {
            "documentId": reference.document_id,
            "equipmentId": reference.equipment_id,
            "distance": match.distance,
            "similarity": round(similarity, 2),
        }

    def _equipment_exists(self, external_id: str) -> bool:
        db = self.session_factory()
        try:
            return db.get(Equipment, external_id) is not None
        finally:
            db.close()

    def provision(
        self,
        component: ComponentIn,
        image_bytes: bytes,
        content_type: Optional[str] = None,
        ocr_text: Optional[str] = None,
        description: Optional[str] = None,
    ) -> ProvisionResult:
        """
        Provision equipment from a photo.

        Raises:
            DecodeError: If the photo cannot be decoded
            ConflictError: If the equipment id already exists
            PersistenceError: If storage or database writes fail
        """
        fields = component.resolved()
        external_id = fields["externalId"]

        # Fingerprint first: nothing is stored for an unreadable photo
        fingerprint = self.matcher.compute_fingerprint(image_bytes)
        duplicate_of = self._find_duplicate(fingerprint)
        if duplicate_of:
            logger.warning(
                f"Photo for '{external_id}' matches known document {duplicate_of['documentId']} "
                f"of '{duplicate_of['equipmentId']}' (similarity {duplicate_of['similarity']}%)"
            )

        if self._equipment_exists(external_id):
            raise ConflictError(f"Equipment '{external_id}' already exists")

        object_key = self.image_store.build_object_key(external_id, content_type)
        self.image_store.put_image(object_key, image_bytes, content_type or "application/octet-stream")

        description = description or f"Photo provisioning - {utc_now()}"
        created: dict = {}

        def stage(db: Session) -> None:
            # Re-checked under the ledger lock; the pre-check above is advisory
            if db.get(Equipment, external_id) is not None:
                raise ConflictError(f"Equipment '{external_id}' already exists")
            equipment = Equipment(
                external_id=external_id,
                name=fields["name"],
                type=fields["type"],
                version=1,
                is_immutable=False,
                checksum=checksum(fields),
            )
            db.add(equipment)
            db.flush()
            document = Document(
                equipment_id=external_id,
                image_key=object_key,
                content_type=content_type,
                ocr_text=ocr_text,
                description=description,
                perceptual_hash=fingerprint,
            )
            db.add(document)
            db.flush()
            created["equipment"] = equipment.to_dict()
            created["document"] = document.to_dict()

        try:
            entry = self.ledger.append(
                {
                    "type": LogEntryType.DOCUMENT_ADDED,
                    "source": PROVISIONING_SOURCE,
                    "message": f"New equipment '{external_id}' added via provisioning.",
                    "equipment_id": external_id,
                },
                stage=stage,
            )
        except Exception:
            # Nothing was committed; drop the uploaded photo with it
            self.image_store.delete_image(object_key)
            raise

        metrics.provisionings.inc()
        logger.info(f"Provisioned equipment {external_id} with document {created['document']['id']}")
        return ProvisionResult(
            equipment=created["equipment"],
            document=created["document"],
            log_entry=entry.to_dict(),
            duplicate_of=duplicate_of,
        )
