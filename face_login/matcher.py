"""Euclidean nearest-neighbour matching of face embeddings.

Everything here is a pure function of its arguments, including the
threshold, which is passed with each call.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Tuple

import numpy as np

from face_login.errors import DimensionMismatch
from face_login.logging_config import get_logger
from face_login.store import EnrollmentRecord

logger = get_logger(__name__)


class Decision(Enum):
    ACCEPT = "accept"
    REJECT = "reject"


@dataclass(frozen=True)
class MatchResult:
    """Outcome of matching a live embedding against enrolled records.

    Attributes:
        matched_label: Label of the nearest record when accepted, else None
        distance: Distance to the nearest record (inf when nothing was enrolled)
        decision: ACCEPT or REJECT
    """

    matched_label: Optional[str]
    distance: float
    decision: Decision

    @property
    def accepted(self) -> bool:
        return self.decision is Decision.ACCEPT

    def __repr__(self) -> str:
        return (
            f"MatchResult(decision={self.decision.value}, "
            f"label={self.matched_label!r}, distance={self.distance:.4f})"
        )


def euclidean_distance(a: np.ndarray, b: np.ndarray) -> float:
    """Compute the Euclidean distance between two embeddings.

    Args:
        a: First embedding, shape [D]
        b: Second embedding, shape [D]

    Returns:
        Non-negative distance. distance(a, b) == distance(b, a).

    Raises:
        DimensionMismatch: If the embeddings differ in length.

    Example:
        >>> euclidean_distance(np.array([0.0, 0.0]), np.array([3.0, 4.0]))
        5.0
    """
    a = np.asarray(a, dtype=np.float64).ravel()
    b = np.asarray(b, dtype=np.float64).ravel()

    if a.shape[0] != b.shape[0]:
        raise DimensionMismatch(a.shape[0], b.shape[0])

    return float(np.linalg.norm(a - b))


def _validate_threshold(threshold: float) -> float:
    threshold = float(threshold)
    if not math.isfinite(threshold) or threshold < 0:
        raise ValueError(f"threshold must be a finite number >= 0, got {threshold}")
    return threshold


def _distances(
    live: np.ndarray,
    candidates: Iterable[EnrollmentRecord],
) -> Tuple[List[EnrollmentRecord], np.ndarray]:
    records = list(candidates)
    live = np.asarray(live, dtype=np.float64).ravel()

    for record in records:
        if record.embedding.shape[0] != live.shape[0]:
            raise DimensionMismatch(live.shape[0], record.embedding.shape[0])

    if not records:
        return records, np.empty(0, dtype=np.float64)

    stacked = np.stack([record.embedding for record in records])
    return records, np.linalg.norm(stacked - live, axis=1)


def match(
    live: np.ndarray,
    candidates: Iterable[EnrollmentRecord],
    threshold: float,
) -> MatchResult:
    """Decide whether a live embedding belongs to an enrolled identity.

    The nearest candidate wins; on equal distances the earliest candidate
    in the input order wins. The decision is ACCEPT only when that distance
    is at most threshold.

    Args:
        live: Embedding captured from the subject, shape [D]
        candidates: Enrolled records, in the store's insertion order
        threshold: Maximum accepted distance

    Returns:
        MatchResult. With no candidates: REJECT at distance inf.

    Raises:
        DimensionMismatch: If any candidate differs in length from live.
        ValueError: If threshold is negative, NaN or infinite.

    Example:
        >>> result = match(live_embedding, store.all_records(), threshold=0.6)
        >>> if result.accepted:
        ...     print(f"Welcome {result.matched_label}")
    """
    threshold = _validate_threshold(threshold)
    records, distances = _distances(live, candidates)

    if not records:
        logger.debug("No enrolled records to match against")
        return MatchResult(matched_label=None, distance=math.inf, decision=Decision.REJECT)

    # argmin returns the first index among equal minima
    best = int(np.argmin(distances))
    best_distance = float(distances[best])

    if best_distance <= threshold:
        result = MatchResult(
            matched_label=records[best].label,
            distance=best_distance,
            decision=Decision.ACCEPT,
        )
    else:
        result = MatchResult(
            matched_label=None,
            distance=best_distance,
            decision=Decision.REJECT,
        )

    logger.debug(
        f"Matched against {len(records)} record(s): {result} (threshold={threshold})"
    )
    return result


def rank_labels(
    live: np.ndarray,
    candidates: Iterable[EnrollmentRecord],
    topk: Optional[int] = None,
) -> List[Tuple[str, float]]:
    """Rank enrolled labels by their closest sample.

    Args:
        live: Embedding captured from the subject, shape [D]
        candidates: Enrolled records
        topk: Keep only the closest topk labels (None keeps all)

    Returns:
        List of (label, distance) sorted by ascending distance; labels at
        equal distance keep their first-seen order.

    Raises:
        DimensionMismatch: If any candidate differs in length from live.
    """
    records, distances = _distances(live, candidates)

    best: dict[str, float] = {}
    for record, distance in zip(records, distances):
        distance = float(distance)
        if record.label not in best or distance < best[record.label]:
            best[record.label] = distance

    # sorted() is stable, so first-seen order breaks ties
    ranked = sorted(best.items(), key=lambda item: item[1])
    return ranked if topk is None else ranked[:topk]
