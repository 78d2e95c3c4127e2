"""Visual identification of equipment from a captured photo."""

from typing import Optional

from sqlalchemy.orm import sessionmaker

from ccpp_api.services.visual_db import as_candidates, load_visual_database
from ccpp_api.vision import Detector, IdentificationResult, NullDetector, PerceptualMatcher


class IdentificationService:
    """Matches a photo against the reference visual database."""

    def __init__(
        self,
        session_factory: sessionmaker,
        matcher: PerceptualMatcher,
        detector: Optional[Detector] = None,
    ):
        """Initialize identification service."""
        self.session_factory = session_factory
        self.matcher = matcher
        self.detector = detector or NullDetector()

    def identify(self, image_bytes: bytes) -> IdentificationResult:
        """Fingerprint the photo, find the closest known document, run the detector.

        ``result.match.id`` is the matched VisualReference.
        """
        references = load_visual_database(self.session_factory)
        result = self.matcher.identify(image_bytes, as_candidates(references))
        result.detections = list(self.detector.detect(image_bytes))
        return result

    @staticmethod
    def describe(result: IdentificationResult) -> dict:
        """API representation of an identification result."""
        match = None
        if result.match is not None:
            reference = result.match.id
            match = {
                "documentId": reference.document_id,
                "equipmentId": reference.equipment_id,
                "equipmentName": reference.equipment_name,
                "distance": result.match.distance,
            }
        return {
            "hash": result.hash,
            "match": match,
            "similarity": round(result.similarity, 2),
            "isMatch": result.is_match,
            "detections": [d.to_dict() for d in result.detections],
        }
