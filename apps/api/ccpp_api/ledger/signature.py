"""Chained signature contract for logbook entries.

The signed input is::

    previous_signature | timestamp | type | source | message | equipment_id

joined with ``"|"``, where a missing equipment id is the empty string. The
digest is the lowercase hex SHA-256 of the UTF-8 bytes. The first entry of a
ledger uses ``GENESIS`` as its previous signature. Field order, separator and
the empty-string substitution must not change, or existing chains will no
longer verify.
"""

from enum import Enum
from typing import Optional, Union

from ccpp_api.utils.hashing import sha256_hex

GENESIS = "GENESIS"
SEPARATOR = "|"


def signature_input(
    previous_signature: str,
    timestamp: str,
    entry_type: Union[str, Enum],
    source: str,
    message: str,
    equipment_id: Optional[str],
) -> str:
    """Build the exact string that gets hashed."""
    type_value = getattr(entry_type, "value", entry_type)
    return SEPARATOR.join(
        [
            previous_signature,
            timestamp,
            type_value,
            source,
            message,
            equipment_id if equipment_id is not None else "",
        ]
    )


def compute_signature(
    previous_signature: Optional[str],
    timestamp: str,
    entry_type: Union[str, Enum],
    source: str,
    message: str,
    equipment_id: Optional[str] = None,
) -> str:
    """Compute the signature of an entry given its predecessor's signature."""
    return sha256_hex(
        signature_input(
            previous_signature if previous_signature is not None else GENESIS,
            timestamp,
            entry_type,
            source,
            message,
            equipment_id,
        )
    )


def sign_entry(entry, previous_signature: Optional[str]) -> str:
    """Compute the expected signature for an entry-like object."""
    return compute_signature(
        previous_signature,
        entry.timestamp,
        entry.type,
        entry.source,
        entry.message,
        entry.equipment_id,
    )
