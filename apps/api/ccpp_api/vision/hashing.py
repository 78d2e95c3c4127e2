"""Difference hash (dHash) fingerprints and Hamming distance."""

import io
import sys
from typing import BinaryIO, Union

import numpy as np
from PIL import Image, UnidentifiedImageError

from ccpp_api.errors import DecodeError, RenderError, ValidationError
from ccpp_api.utils.hashing import bits_to_hex, hex_to_nibbles, popcount

DEFAULT_HASH_SIZE = 8

# Returned by compare_hashes when two fingerprints are not comparable
MAX_DISTANCE = sys.maxsize

LUMA_WEIGHTS = np.array([0.299, 0.587, 0.114])

ImageInput = Union[bytes, bytearray, BinaryIO, Image.Image]


def load_image(image: ImageInput) -> Image.Image:
    """Decode raw bytes or a file-like object into a fully loaded image."""
    if isinstance(image, Image.Image):
        return image
    if isinstance(image, (bytes, bytearray)):
        if not image:
            raise DecodeError("Image data is empty")
        image = io.BytesIO(image)
    try:
        decoded = Image.open(image)
        decoded.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise DecodeError(f"Could not decode image: {e}") from e
    return decoded


def grayscale_grid(image: Image.Image, width: int, height: int) -> np.ndarray:
    """Resample to ``width`` x ``height`` and return luminance as a (height, width) array."""
    try:
        small = image.convert("RGB").resize((width, height), Image.Resampling.LANCZOS)
        pixels = np.asarray(small, dtype=np.float64)
    except (OSError, ValueError, MemoryError) as e:
        raise RenderError(f"Could not sample image pixels: {e}") from e
    if pixels.shape != (height, width, 3):
        raise RenderError(f"Unexpected pixel buffer shape {pixels.shape}")
    return pixels @ LUMA_WEIGHTS


def dhash(image: ImageInput, hash_size: int = DEFAULT_HASH_SIZE) -> str:
    """Difference hash of an image as lowercase hex.

    The image is reduced to ``hash_size + 1`` columns by ``hash_size`` rows;
    each bit is 1 when a pixel is darker than its right-hand neighbour. Bits
    are read row by row and packed four to a hex digit, so the default size
    gives 64 bits / 16 hex characters.
    """
    if hash_size < 2 or (hash_size * hash_size) % 4:
        raise ValidationError(f"hash_size must give a bit count divisible by 4, got {hash_size}")
    grid = grayscale_grid(load_image(image), hash_size + 1, hash_size)
    bits = (grid[:, :-1] < grid[:, 1:]).astype(np.uint8).flatten()
    return bits_to_hex(int(b) for b in bits)


def hamming_distance(hash_a: str, hash_b: str) -> int:
    """Count of differing bits between two hex fingerprints.

    Returns MAX_DISTANCE when the lengths differ.
    """
    if len(hash_a) != len(hash_b):
        return MAX_DISTANCE
    try:
        nibbles_a = hex_to_nibbles(hash_a)
        nibbles_b = hex_to_nibbles(hash_b)
    except ValueError as e:
        raise ValidationError(f"Fingerprint is not hex: {e}") from e
    return sum(popcount(a ^ b) for a, b in zip(nibbles_a, nibbles_b))
