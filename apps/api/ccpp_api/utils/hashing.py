"""Hashing and bit/hex helpers shared by the ledger and the perceptual matcher."""

import hashlib
import json
import string
from typing import Iterable, Union


def sha256_hex(data: Union[str, bytes]) -> str:
    """Lowercase hex SHA-256 of text (UTF-8) or raw bytes."""
    if isinstance(data, str):
        # surrogatepass keeps lone surrogates hashable instead of raising
        data = data.encode("utf-8", errors="surrogatepass")
    return hashlib.sha256(data).hexdigest()


def canonical_json(obj) -> str:
    """Deterministic JSON representation (sorted keys, compact separators)."""
    return json.dumps(obj, sort_keys=True, separators=(",", ":"), default=str)


def checksum(obj) -> str:
    """SHA-256 over the canonical JSON of ``obj``."""
    return sha256_hex(canonical_json(obj))


def bits_to_hex(bits: Iterable[int]) -> str:
    """Pack a bit sequence into lowercase hex, 4 bits per nibble, MSB first.

    The bit count must be a multiple of four.
    """
    bits = list(bits)
    if len(bits) % 4:
        raise ValueError(f"bit count must be a multiple of 4, got {len(bits)}")
    nibbles = []
    for i in range(0, len(bits), 4):
        b0, b1, b2, b3 = bits[i:i + 4]
        nibbles.append("%x" % ((b0 << 3) | (b1 << 2) | (b2 << 1) | b3))
    return "".join(nibbles)


def hex_to_nibbles(value: str) -> list[int]:
    """Decode a hex string into one integer per character.

    Raises:
        ValueError: If ``value`` contains a non-hex character
    """
    for ch in value:
        if ch not in string.hexdigits:
            raise ValueError(f"invalid hex character {ch!r}")
    return [int(ch, 16) for ch in value]


def popcount(value: int) -> int:
    """Number of set bits in a non-negative integer."""
    return bin(value).count("1")
