"""Bulk pull of reference data between a remote server and a local store."""

import logging
from datetime import datetime, timezone

from sqlalchemy import text
from sqlalchemy.orm import Session, sessionmaker

from ccpp_api.ledger import HashChainLedger
from ccpp_api.models import Document, Equipment, LogEntry

logger = logging.getLogger(__name__)


def build_snapshot(session_factory: sessionmaker) -> dict:
    """Everything a local store needs; log entries in chain order."""
    db = session_factory()
    try:
        equipments = db.query(Equipment).order_by(Equipment.external_id.asc()).all()
        documents = db.query(Document).order_by(Document.id.asc()).all()
        log_entries = db.query(LogEntry).order_by(LogEntry.id.asc()).all()
        snapshot = {
            "equipments": [e.to_dict() for e in equipments],
            "documents": [d.to_dict() for d in documents],
            "logEntries": [entry.to_dict() for entry in log_entries],
        }
    finally:
        db.close()

    logger.info(
        f"Built sync snapshot: {len(snapshot['equipments'])} equipments, "
        f"{len(snapshot['documents'])} documents, {len(snapshot['logEntries'])} log entries"
    )
    return snapshot


def advance_id_sequences(db: Session) -> None:
    """Move Postgres id sequences past rows inserted with explicit ids.

    SQLite hands out max(id) + 1 by itself, so only Postgres needs this.
    """
    if db.get_bind().dialect.name != "postgresql":
        return
    for model in (Document, LogEntry):
        table = model.__tablename__
        db.execute(
            text(
                f"SELECT setval(pg_get_serial_sequence('{table}', 'id'), "
                f"COALESCE(MAX(id), 0) + 1, false) FROM {table}"
            )
        )


def _parse_datetime(value):
    return datetime.fromisoformat(value) if value else None


def import_snapshot(ledger: HashChainLedger, snapshot: dict) -> dict:
    """Insert records missing locally, then re-verify the chain.

    Existing rows are left untouched (insert-or-ignore). Log entries are
    copied with their stored signatures; verification reports any break.
    """
    synced = 0
    with ledger.repository.transaction() as db:
        for item in snapshot.get("equipments") or []:
            if db.get(Equipment, item["externalId"]) is not None:
                continue
            db.add(
                Equipment(
                    external_id=item["externalId"],
                    name=item["name"],
                    type=item.get("type"),
                    version=item.get("version") or 1,
                    is_immutable=bool(item.get("isImmutable")),
                    checksum=item.get("checksum"),
                )
            )
            synced += 1
        db.flush()

        for item in snapshot.get("documents") or []:
            if db.get(Document, item["id"]) is not None:
                continue
            db.add(
                Document(
                    id=item["id"],
                    equipment_id=item["equipmentId"],
                    image_key=item.get("imageKey"),
                    content_type=item.get("contentType"),
                    ocr_text=item.get("ocrText"),
                    description=item.get("description"),
                    perceptual_hash=item.get("perceptualHash"),
                    created_at=_parse_datetime(item.get("createdAt")) or datetime.now(timezone.utc),
                )
            )
            synced += 1
        db.flush()

        for item in snapshot.get("logEntries") or []:
            if db.get(LogEntry, item["id"]) is not None:
                continue
            if db.query(LogEntry.id).filter(LogEntry.signature == item["signature"]).first():
                continue
            db.add(
                LogEntry(
                    id=item["id"],
                    timestamp=item["timestamp"],
                    type=item["type"],
                    source=item["source"],
                    message=item["message"],
                    equipment_id=item.get("equipmentId"),
                    signature=item["signature"],
                )
            )
            synced += 1
        db.flush()
        advance_id_sequences(db)

    verification = ledger.verify()
    logger.info(f"Sync imported {synced} records; chain valid={verification.valid}")
    return {"synced": synced, "verification": verification.to_dict()}
