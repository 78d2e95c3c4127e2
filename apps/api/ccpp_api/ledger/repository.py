"""SQL persistence for the logbook ledger."""

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Iterator, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ccpp_api.errors import PersistenceError, ValidationError
from ccpp_api.models import Equipment, LogEntry

logger = logging.getLogger(__name__)

# Serializes read-last-signature -> insert for every ledger in this process.
_APPEND_LOCK = threading.Lock()


def is_signature_conflict(error: IntegrityError) -> bool:
    """True when the violated constraint is the unique signature index."""
    diag = getattr(error.orig, "diag", None)
    constraint = getattr(diag, "constraint_name", None)
    if constraint:
        return "signature" in constraint
    return "log_entries.signature" in str(error.orig)


class SqlLedgerRepository:
    """Append-only store for log entries backed by a SQLAlchemy session factory."""

    def __init__(self, session_factory: sessionmaker):
        """Initialize repository."""
        self.session_factory = session_factory

    def _last_signature(self, db: Session) -> Optional[str]:
        """Signature of the most recently inserted entry."""
        return (
            db.query(LogEntry.signature)
            .order_by(LogEntry.id.desc())
            .limit(1)
            .scalar()
        )

    def append(
        self,
        build_entry: Callable[[Optional[str]], LogEntry],
        stage: Optional[Callable[[Session], None]] = None,
    ) -> LogEntry:
        """Insert one entry built from the current last signature.

        ``build_entry`` receives the previous signature (None for an empty
        ledger). ``stage`` may add other rows to the same transaction.

        Raises:
            IntegrityError: On a signature uniqueness conflict (caller retries)
            ValidationError: If the entry references unknown equipment or
                staged rows violate a constraint
            PersistenceError: If the store is unavailable
        """
        with _APPEND_LOCK:
            db = self.session_factory()
            try:
                previous = self._last_signature(db)
                if stage is not None:
                    stage(db)
                entry = build_entry(previous)
                if entry.equipment_id is not None and db.get(Equipment, entry.equipment_id) is None:
                    raise ValidationError(f"Unknown equipment '{entry.equipment_id}'")
                db.add(entry)
                db.commit()
                db.refresh(entry)
                db.expunge(entry)
                return entry
            except IntegrityError as e:
                db.rollback()
                if is_signature_conflict(e):
                    raise
                logger.warning(f"Ledger append violates a constraint: {e.orig}")
                raise ValidationError(f"Log entry rejected by store constraints: {e.orig}") from e
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Ledger append failed: {e}")
                raise PersistenceError(f"Ledger store unavailable: {e}") from e
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def fetch(self, equipment_id: Optional[str] = None, newest_first: bool = False) -> list[LogEntry]:
        """Stored entries in insertion order (or reversed)."""
        db = self.session_factory()
        try:
            query = db.query(LogEntry)
            if equipment_id is not None:
                query = query.filter(LogEntry.equipment_id == equipment_id)
            order = LogEntry.id.desc() if newest_first else LogEntry.id.asc()
            entries = query.order_by(order).all()
            db.expunge_all()
            return entries
        except SQLAlchemyError as e:
            logger.error(f"Ledger read failed: {e}")
            raise PersistenceError(f"Ledger store unavailable: {e}") from e
        finally:
            db.close()

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Session holding the append lock; commits on success, rolls back on error."""
        with _APPEND_LOCK:
            db = self.session_factory()
            try:
                yield db
                db.commit()
            except SQLAlchemyError as e:
                db.rollback()
                logger.error(f"Ledger transaction failed: {e}")
                raise PersistenceError(f"Ledger store unavailable: {e}") from e
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()
