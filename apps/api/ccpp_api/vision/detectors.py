"""Detector capability consumed by visual identification.

Concrete detectors (trained models, OCR pipelines, remote inference APIs)
live outside this package. Anything that turns image bytes into a list of
typed detections can be plugged in.
"""

from dataclasses import dataclass, field
from typing import Optional


@dataclass(frozen=True)
class Detection:
    """One object found in an image."""

    label: str
    confidence: float
    bbox: Optional[tuple[float, float, float, float]] = None  # x, y, width, height
    attributes: dict = field(default_factory=dict, hash=False, compare=False)

    def to_dict(self) -> dict:
        return {
            "label": self.label,
            "confidence": self.confidence,
            "bbox": list(self.bbox) if self.bbox else None,
            "attributes": dict(self.attributes),
        }


class Detector:
    """Given an image, return typed detections with confidence scores."""

    def detect(self, image_bytes: bytes) -> list[Detection]:
        raise NotImplementedError


class NullDetector(Detector):
    """Detector used when no detection capability is configured."""

    def detect(self, image_bytes: bytes) -> list[Detection]:
        return []
