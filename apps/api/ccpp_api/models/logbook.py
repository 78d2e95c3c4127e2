"""Logbook models."""

import enum

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, Text

from ccpp_api.db.base import Base


class LogEntryType(str, enum.Enum):
    """Kinds of logbook events."""

    AUTO = "AUTO"
    MANUAL = "MANUAL"
    DOCUMENT_ADDED = "DOCUMENT_ADDED"


class LogEntry(Base):
    """Append-only logbook entry with chained signature."""

    __tablename__ = "log_entries"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(String(40), nullable=False, index=True)  # ISO-8601 text, signed verbatim
    type = Column(String(20), nullable=False, index=True)
    source = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    # No ON DELETE CASCADE: removing equipment must never remove signed history
    equipment_id = Column(String(255), ForeignKey("equipments.external_id"), nullable=True, index=True)
    signature = Column(String(64), nullable=False, unique=True, index=True)

    __table_args__ = (
        CheckConstraint(
            "type IN ('AUTO', 'MANUAL', 'DOCUMENT_ADDED')",
            name="ck_log_entries_type",
        ),
        {"sqlite_autoincrement": True},
    )

    def to_dict(self) -> dict:
        """Persisted shape shared with the UI and sync consumers."""
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "type": self.type,
            "source": self.source,
            "message": self.message,
            "equipmentId": self.equipment_id,
            "signature": self.signature,
        }
