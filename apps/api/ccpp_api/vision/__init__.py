"""Perceptual image fingerprints and matching."""

from ccpp_api.vision.detectors import Detection, Detector, NullDetector
from ccpp_api.vision.hashing import MAX_DISTANCE, dhash, hamming_distance
from ccpp_api.vision.matcher import Candidate, IdentificationResult, Match, PerceptualMatcher

__all__ = [
    "Candidate",
    "Detection",
    "Detector",
    "IdentificationResult",
    "MAX_DISTANCE",
    "Match",
    "NullDetector",
    "PerceptualMatcher",
    "dhash",
    "hamming_distance",
]
