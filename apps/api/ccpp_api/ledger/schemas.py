"""Logbook request/response schemas."""

from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ccpp_api.models.logbook import LogEntryType

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def format_timestamp(value: datetime) -> str:
    """Fixed-width UTC ISO-8601 text; lexical order equals time order."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime(TIMESTAMP_FORMAT)


def utc_now() -> str:
    """Current time as a ledger timestamp."""
    return format_timestamp(datetime.now(timezone.utc))


class LogEntryCreate(BaseModel):
    """Fields supplied to the ledger's append operation."""

    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    timestamp: Optional[Union[datetime, str]] = Field(None, description="Event time (ISO-8601); defaults to now")
    type: LogEntryType = Field(..., description="AUTO, MANUAL or DOCUMENT_ADDED")
    source: str = Field(..., description="Operator name or subsystem tag")
    message: str = Field(..., description="Event description")
    equipment_id: Optional[str] = Field(None, alias="equipmentId", description="Equipment external id")

    @field_validator("source", "message")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("equipment_id")
    @classmethod
    def _empty_equipment_is_none(cls, value: Optional[str]) -> Optional[str]:
        return value or None

    @field_validator("timestamp")
    @classmethod
    def _normalize_timestamp(cls, value):
        if value is None:
            return None
        if isinstance(value, datetime):
            return format_timestamp(value)
        try:
            datetime.fromisoformat(value)
        except ValueError:
            raise ValueError(f"not an ISO-8601 timestamp: {value!r}")
        # Caller-supplied text is signed verbatim
        return value


class LogEntryOut(BaseModel):
    """Persisted log entry shape: {id, timestamp, type, source, message, equipmentId, signature}."""

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)

    id: Optional[int] = None
    timestamp: str
    type: str
    source: str
    message: str
    equipment_id: Optional[str] = Field(None, alias="equipmentId")
    signature: Optional[str] = None

    def to_dict(self) -> dict:
        return self.model_dump(by_alias=True)


class ChainReport(BaseModel):
    """Verification outcome as returned by the API."""

    valid: bool
    first_invalid_index: Optional[int] = Field(None, alias="firstInvalidIndex")
    checked: int
    error: Optional[dict] = None

    model_config = ConfigDict(populate_by_name=True)
