"""Tamper-evident logbook with hash chaining."""

from typing import Callable, Optional, Sequence, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ccpp_api.errors import PersistenceError, ValidationError
from ccpp_api.ledger.chain import ChainVerification, verify_chain
from ccpp_api.ledger.repository import SqlLedgerRepository
from ccpp_api.ledger.schemas import LogEntryCreate, utc_now
from ccpp_api.ledger.signature import GENESIS, compute_signature
from ccpp_api.models import LogEntry
from ccpp_api.utils import metrics
from ccpp_api.utils.event_log import EventLogger, StdlibEventLogger


class HashChainLedger:
    """Append-only logbook whose entries sign their predecessor's signature."""

    def __init__(
        self,
        repository: SqlLedgerRepository,
        event_logger: Optional[EventLogger] = None,
        max_retries: int = 3,
    ):
        """Initialize ledger."""
        self.repository = repository
        self.event_logger = event_logger or StdlibEventLogger(__name__)
        self.max_retries = max_retries

    @staticmethod
    def _validate(entry_data: Union[LogEntryCreate, dict]) -> LogEntryCreate:
        if isinstance(entry_data, LogEntryCreate):
            return entry_data
        if not isinstance(entry_data, dict):
            raise ValidationError(f"entry data must be a mapping, got {type(entry_data).__name__}")
        try:
            return LogEntryCreate.model_validate(entry_data)
        except PydanticValidationError as e:
            fields = [".".join(str(p) for p in err["loc"]) for err in e.errors()]
            raise ValidationError(
                f"Invalid log entry: {', '.join(fields)}",
                errors=e.errors(include_url=False),
            ) from e

    def append(
        self,
        entry_data: Union[LogEntryCreate, dict],
        stage: Optional[Callable[[Session], None]] = None,
    ) -> LogEntry:
        """Append an entry chained to the current last signature.

        Raises:
            ValidationError: If type, source or message is missing or invalid,
                or the entry references unknown equipment
            PersistenceError: If the store is unavailable or signature
                conflicts persist
        """
        data = self._validate(entry_data)

        def build_entry(previous_signature: Optional[str]) -> LogEntry:
            # Timestamp taken under the append lock keeps text order == id order
            timestamp = data.timestamp or utc_now()
            return LogEntry(
                timestamp=timestamp,
                type=data.type,
                source=data.source,
                message=data.message,
                equipment_id=data.equipment_id,
                signature=compute_signature(
                    previous_signature or GENESIS,
                    timestamp,
                    data.type,
                    data.source,
                    data.message,
                    data.equipment_id,
                ),
            )

        last_error: Optional[Exception] = None
        for attempt in range(1, self.max_retries + 1):
            try:
                entry = self.repository.append(build_entry, stage=stage)
            except IntegrityError as e:
                last_error = e
                metrics.ledger_append_conflicts.inc()
                self.event_logger.log(
                    "WARN",
                    "Ledger append conflict, retrying",
                    {"attempt": attempt, "error": str(e.orig)},
                )
                continue

            metrics.ledger_appends.labels(type=entry.type).inc()
            self.event_logger.log(
                "INFO",
                "Log entry appended",
                {"id": entry.id, "type": entry.type, "source": entry.source, "equipment_id": entry.equipment_id},
            )
            return entry

        raise PersistenceError(
            f"Ledger append rejected after {self.max_retries} attempts: {last_error}"
        )

    def entries(self, equipment_id: Optional[str] = None, newest_first: bool = False) -> list[LogEntry]:
        """Stored entries in chain order."""
        return self.repository.fetch(equipment_id=equipment_id, newest_first=newest_first)

    def verify(self, entries: Optional[Sequence] = None) -> ChainVerification:
        """Verify the given entries, or the whole stored chain."""
        if entries is None:
            entries = self.repository.fetch()
        result = verify_chain(entries)

        metrics.ledger_verifications.labels(result="valid" if result.valid else "broken").inc()
        if result.valid:
            self.event_logger.log("INFO", "Ledger chain verified", {"checked": result.checked})
        else:
            self.event_logger.log("ERROR", "Ledger chain broken", result.error.to_dict())
        return result
