"""Choosing the subject of a frame when the detector finds several faces.

Policies:
- reject: a frame with more than one face yields no embedding
- largest: the face with the biggest bounding box is the subject
"""

from __future__ import annotations

from typing import List, Optional

import numpy as np

from face_login.interfaces import Detection
from face_login.logging_config import get_logger

logger = get_logger(__name__)

MULTI_FACE_POLICIES = ("reject", "largest")


def validate_multi_face(policy: str) -> str:
    if policy not in MULTI_FACE_POLICIES:
        raise ValueError(f"multi_face must be one of {MULTI_FACE_POLICIES}, got '{policy}'")
    return policy


def sort_by_area(detections: List[Detection]) -> List[Detection]:
    """Largest face first; equal areas keep detector order."""
    return sorted(detections, key=lambda d: d.bbox.area, reverse=True)


def select_subject(detections: List[Detection], policy: str) -> Optional[np.ndarray]:
    """Pick the embedding of the frame's subject.

    Args:
        detections: Faces found in one frame
        policy: "reject" or "largest"

    Returns:
        Embedding of the subject, or None when the frame is unusable.
    """
    if not detections:
        return None

    if len(detections) > 1 and policy == "reject":
        logger.warning(f"Multiple faces detected ({len(detections)}), frame skipped")
        return None

    return sort_by_area(detections)[0].embedding
