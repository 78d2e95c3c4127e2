"""Error types raised (or reported) by the logbook and vision core."""

from typing import Any, Optional


class CoreError(Exception):
    """Base class for core errors."""


class ValidationError(CoreError):
    """Malformed or missing required input fields."""

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class PersistenceError(CoreError):
    """Backing store unreachable or write rejected."""


class ConflictError(CoreError):
    """Record already exists (e.g. equipment external id)."""


class DecodeError(CoreError):
    """Image bytes could not be decoded."""


class RenderError(CoreError):
    """Pixel sampling of a decoded image failed."""


class ChainBrokenError(CoreError):
    """First position where a stored signature does not match the recomputed one.

    Carried inside a ChainVerification result. Verification never raises it.
    """

    def __init__(
        self,
        index: int,
        entry: Any,
        expected: Optional[str],
        actual: Optional[str],
    ):
        if actual:
            reason = f"signature mismatch at index {index}"
        else:
            reason = f"missing signature at index {index}"
        super().__init__(reason)
        self.index = index
        self.entry = entry
        self.expected = expected
        self.actual = actual

    def to_dict(self) -> dict:
        return {
            "index": self.index,
            "entry_id": getattr(self.entry, "id", None),
            "expected": self.expected,
            "actual": self.actual,
            "reason": str(self),
        }
