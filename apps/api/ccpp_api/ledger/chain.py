"""Pure verification of a chained logbook."""

from dataclasses import dataclass, field
from typing import Optional, Sequence

from ccpp_api.errors import ChainBrokenError
from ccpp_api.ledger.signature import GENESIS, sign_entry


@dataclass
class ChainVerification:
    """Outcome of a verification pass.

    ``statuses`` holds one flag per entry; every entry from the first break
    onwards is reported invalid because its chain premise no longer holds.
    """

    valid: bool
    first_invalid_index: Optional[int] = None
    statuses: list[bool] = field(default_factory=list)
    error: Optional[ChainBrokenError] = None

    @property
    def checked(self) -> int:
        return len(self.statuses)

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "firstInvalidIndex": self.first_invalid_index,
            "checked": self.checked,
            "error": self.error.to_dict() if self.error else None,
        }


def verify_chain(entries: Sequence) -> ChainVerification:
    """Re-derive every signature from the previous stored signature.

    Entries are any objects exposing ``timestamp``, ``type``, ``source``,
    ``message``, ``equipment_id`` and ``signature`` in chain order. Never
    mutates its input.
    """
    statuses: list[bool] = []
    broken: Optional[ChainBrokenError] = None
    previous = GENESIS

    for index, entry in enumerate(entries):
        if broken is not None:
            statuses.append(False)
            continue

        stored = entry.signature
        expected = sign_entry(entry, previous)
        if not stored or stored != expected:
            broken = ChainBrokenError(index, entry, expected, stored)
            statuses.append(False)
            continue

        statuses.append(True)
        previous = stored

    if broken is not None:
        return ChainVerification(
            valid=False,
            first_invalid_index=broken.index,
            statuses=statuses,
            error=broken,
        )
    return ChainVerification(valid=True, statuses=statuses)
