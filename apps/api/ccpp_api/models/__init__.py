"""Database models - import all models here for Alembic discovery."""

from ccpp_api.models.equipment import Document, Equipment
from ccpp_api.models.logbook import LogEntry, LogEntryType

__all__ = [
    "Equipment",
    "Document",
    "LogEntry",
    "LogEntryType",
]
