"""Reference visual database: fingerprinted documents joined with equipment."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ccpp_api.errors import PersistenceError
from ccpp_api.models import Document, Equipment
from ccpp_api.vision import Candidate

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VisualReference:
    """Known equipment photo."""

    document_id: int
    equipment_id: str
    equipment_name: Optional[str]
    perceptual_hash: str
    description: Optional[str] = None


def load_visual_database(session_factory: sessionmaker) -> list[VisualReference]:
    """All documents with a perceptual hash, in document id order."""
    db = session_factory()
    try:
        rows = (
            db.query(Document, Equipment)
            .join(Equipment, Document.equipment_id == Equipment.external_id)
            .filter(Document.perceptual_hash.isnot(None))
            .order_by(Document.id.asc())
            .all()
        )
        references = [
            VisualReference(
                document_id=document.id,
                equipment_id=equipment.external_id,
                equipment_name=equipment.name,
                perceptual_hash=document.perceptual_hash,
                description=document.description,
            )
            for document, equipment in rows
        ]
    except SQLAlchemyError as e:
        logger.error(f"Visual database query failed: {e}")
        raise PersistenceError(f"Visual database unavailable: {e}") from e
    finally:
        db.close()

    logger.debug(f"Loaded {len(references)} entries from visual database")
    return references


def as_candidates(references: list[VisualReference]) -> list[Candidate]:
    return [Candidate(ref, ref.perceptual_hash) for ref in references]
