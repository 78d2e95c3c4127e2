"""Fingerprinting of documents stored without a perceptual hash."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ccpp_api.errors import DecodeError, RenderError
from ccpp_api.models import Document
from ccpp_api.storage.images import ImageStore
from ccpp_api.vision import PerceptualMatcher

logger = logging.getLogger(__name__)


def backfill_document_fingerprints(
    db: Session,
    image_store: ImageStore,
    matcher: PerceptualMatcher,
    limit: Optional[int] = None,
) -> dict:
    """Compute missing hashes for documents that have a stored image.

    Unreadable images are left without a hash and counted as failed.
    """
    query = (
        db.query(Document)
        .filter(Document.perceptual_hash.is_(None), Document.image_key.isnot(None))
        .order_by(Document.id.asc())
    )
    if limit:
        query = query.limit(limit)

    updated, failed = 0, []
    for document in query.all():
        try:
            image_bytes = image_store.get_image(document.image_key)
            document.perceptual_hash = matcher.compute_fingerprint(image_bytes)
            updated += 1
        except (FileNotFoundError, DecodeError, RenderError) as e:
            logger.warning(f"Cannot fingerprint document {document.id} ({document.image_key}): {e}")
            failed.append(document.id)
    db.commit()

    logger.info(f"Fingerprint backfill: {updated} updated, {len(failed)} failed")
    return {"updated": updated, "failed": failed}
