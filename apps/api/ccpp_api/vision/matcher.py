"""Perceptual matching of equipment photos against a reference set."""

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional, Sequence, Union

from ccpp_api.settings import Settings, get_settings
from ccpp_api.utils import metrics
from ccpp_api.utils.event_log import EventLogger, StdlibEventLogger
from ccpp_api.vision.hashing import MAX_DISTANCE, ImageInput, dhash, hamming_distance


@dataclass(frozen=True)
class Candidate:
    """Reference fingerprint; ``id`` is whatever the caller needs back."""

    id: Any
    hash: Optional[str]


@dataclass(frozen=True)
class Match:
    """Closest candidate and its distance."""

    id: Any
    distance: int


@dataclass
class IdentificationResult:
    """Fingerprint of a query image and its best match, if any."""

    hash: str
    match: Optional[Match]
    similarity: float
    is_match: bool
    detections: list = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "hash": self.hash,
            "match": {"id": self.match.id, "distance": self.match.distance} if self.match else None,
            "similarity": round(self.similarity, 2),
            "isMatch": self.is_match,
            "detections": [d.to_dict() for d in self.detections],
        }


CandidateInput = Union[Candidate, tuple, dict]


def _as_candidate(item: CandidateInput) -> Candidate:
    if isinstance(item, Candidate):
        return item
    if isinstance(item, dict):
        return Candidate(item["id"], item.get("hash"))
    candidate_id, candidate_hash = item
    return Candidate(candidate_id, candidate_hash)


def _scan(target_hash: str, candidates: Sequence[Candidate], offset: int) -> Optional[tuple[int, int, Candidate]]:
    """Best (distance, original index, candidate) in one contiguous slice."""
    best = None
    for index, candidate in enumerate(candidates, start=offset):
        if not candidate.hash:
            continue
        distance = hamming_distance(target_hash, candidate.hash)
        # Strict comparison keeps the first of equally distant candidates
        if best is None or distance < best[0]:
            best = (distance, index, candidate)
    return best


class PerceptualMatcher:
    """Computes dHash fingerprints and finds the closest reference image."""

    def __init__(
        self,
        hash_size: int = 8,
        amplification: float = 1.5,
        similarity_threshold: float = 75.0,
        workers: int = 1,
        partition_size: int = 5000,
        event_logger: Optional[EventLogger] = None,
    ):
        """Initialize matcher."""
        self.hash_size = hash_size
        self.amplification = amplification
        self.similarity_threshold = similarity_threshold
        self.workers = max(1, workers)
        self.partition_size = max(1, partition_size)
        self.event_logger = event_logger or StdlibEventLogger(__name__)

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, event_logger: Optional[EventLogger] = None):
        """Build a matcher from configured tunables."""
        settings = settings or get_settings()
        return cls(
            hash_size=settings.phash_size,
            amplification=settings.phash_amplification,
            similarity_threshold=settings.phash_similarity_threshold,
            workers=settings.phash_match_workers,
            partition_size=settings.phash_partition_size,
            event_logger=event_logger,
        )

    @property
    def total_bits(self) -> int:
        return self.hash_size * self.hash_size

    def compute_fingerprint(self, image: ImageInput) -> str:
        """Fingerprint an image.

        Raises:
            DecodeError: If the image cannot be decoded
            RenderError: If pixels cannot be sampled
        """
        started = time.perf_counter()
        try:
            value = dhash(image, self.hash_size)
        except Exception as e:
            self.event_logger.log("ERROR", "Fingerprint computation failed", {"error": str(e)})
            raise
        metrics.fingerprint_duration.observe(time.perf_counter() - started)
        self.event_logger.log("DEBUG", "Fingerprint computed", {"hash": value})
        return value

    def compare_hashes(self, hash_a: str, hash_b: str) -> int:
        """Hamming distance, or MAX_DISTANCE when the fingerprints are not comparable."""
        return hamming_distance(hash_a.lower(), hash_b.lower())

    def find_best_match(self, target_hash: str, candidates: Iterable[CandidateInput]) -> Optional[Match]:
        """Closest candidate by Hamming distance; ties go to the earliest candidate.

        Candidates without a fingerprint are skipped. Large candidate sets are
        split into contiguous partitions scanned in parallel when more than
        one worker is configured.
        """
        target_hash = target_hash.lower()
        pool = [_as_candidate(c) for c in candidates]
        pool = [Candidate(c.id, c.hash.lower() if c.hash else c.hash) for c in pool]
        if not pool:
            return None

        if self.workers > 1 and len(pool) > self.partition_size:
            slices = [
                (pool[start:start + self.partition_size], start)
                for start in range(0, len(pool), self.partition_size)
            ]
            with ThreadPoolExecutor(max_workers=self.workers) as executor:
                partials = list(executor.map(lambda s: _scan(target_hash, s[0], s[1]), slices))
            found = [p for p in partials if p is not None]
            # Merge on (distance, original index): partition order never decides a tie
            best = min(found, key=lambda p: (p[0], p[1])) if found else None
        else:
            best = _scan(target_hash, pool, 0)

        if best is None:
            return None
        return Match(id=best[2].id, distance=best[0])

    def similarity(self, distance: int, hash_length: Optional[int] = None) -> float:
        """Similarity percentage used for the match decision."""
        if distance >= MAX_DISTANCE:
            return 0.0
        total_bits = 4 * hash_length if hash_length else self.total_bits
        return max(0.0, 100 - (distance / total_bits) * 100 * self.amplification)

    def is_match(self, similarity: float) -> bool:
        return similarity > self.similarity_threshold

    def identify(self, image: ImageInput, candidates: Iterable[CandidateInput]) -> IdentificationResult:
        """Fingerprint ``image`` and decide whether it matches a known candidate."""
        fingerprint = self.compute_fingerprint(image)
        match = self.find_best_match(fingerprint, candidates)
        similarity = self.similarity(match.distance, len(fingerprint)) if match else 0.0
        matched = match is not None and self.is_match(similarity)

        metrics.identifications.labels(outcome="match" if matched else "unknown").inc()
        self.event_logger.log(
            "INFO",
            "Visual identification finished",
            {
                "hash": fingerprint,
                "best_match": match.id if match else None,
                "distance": match.distance if match else None,
                "similarity": round(similarity, 2),
                "is_match": matched,
            },
        )
        return IdentificationResult(
            hash=fingerprint,
            match=match,
            similarity=similarity,
            is_match=matched,
        )
