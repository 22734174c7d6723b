"""Dlib embedding extractor using the face_recognition library.

Faces are located with dlib's HOG or CNN detector and encoded with its
ResNet-34 model into 128-dimensional vectors. Encodings are left as the
model produces them: the 0.6 Euclidean tolerance documented by
face_recognition applies to these raw vectors.
"""

from __future__ import annotations

from typing import List, Literal, Optional

import cv2
import face_recognition
import numpy as np

from face_login.backends.policy import select_subject, sort_by_area, validate_multi_face
from face_login.interfaces import BBox, Detection, as_embedding
from face_login.logging_config import get_logger

logger = get_logger(__name__)


class DlibExtractor:
    """Detector and 128-D encoder built on dlib.

    Attributes:
        detector_model: Detection model ("hog" or "cnn")
        embedder_model: Landmark model used for encoding ("large" or "small")
        num_jitters: Times the face is re-sampled when encoding
        upsample: Times the image is upsampled before detection
        multi_face: What extract_embedding does with several faces
        default_threshold: Euclidean tolerance for this metric space

    Example:
        >>> extractor = DlibExtractor(detector_model="hog")
        >>> embedding = extractor.extract_embedding(frame)
        >>> if embedding is None:
        ...     print("No face")
    """

    default_threshold = 0.6
    embedding_dim = 128

    def __init__(
        self,
        detector_model: Literal["hog", "cnn"] = "hog",
        embedder_model: Literal["large", "small"] = "large",
        num_jitters: int = 1,
        upsample: int = 1,
        multi_face: Literal["reject", "largest"] = "reject",
    ):
        if detector_model not in ("hog", "cnn"):
            raise ValueError(f"detector_model must be 'hog' or 'cnn', got '{detector_model}'")
        if embedder_model not in ("large", "small"):
            raise ValueError(
                f"embedder_model must be 'large' or 'small', got '{embedder_model}'"
            )

        self.detector_model = detector_model
        self.embedder_model = embedder_model
        self.num_jitters = num_jitters
        self.upsample = upsample
        self.multi_face = validate_multi_face(multi_face)

        logger.info(
            f"Initialized dlib extractor (detector={detector_model}, "
            f"embedder={embedder_model}, num_jitters={num_jitters})"
        )

    def _locate(self, frame_rgb: np.ndarray) -> List[tuple]:
        # (top, right, bottom, left) tuples
        return face_recognition.face_locations(
            frame_rgb,
            number_of_times_to_upsample=self.upsample,
            model=self.detector_model,
        )

    def detect_faces(self, frame: np.ndarray) -> List[Detection]:
        """Detect and encode every face in a BGR frame.

        Returns:
            Detections sorted by area (largest first); empty if none.
        """
        if frame is None or frame.size == 0:
            logger.warning("Empty frame provided to extractor")
            return []

        frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
        locations = self._locate(frame_rgb)
        if not locations:
            return []

        encodings = face_recognition.face_encodings(
            frame_rgb,
            known_face_locations=locations,
            num_jitters=self.num_jitters,
            model=self.embedder_model,
        )

        h, w = frame.shape[:2]
        detections = []
        for (top, right, bottom, left), encoding in zip(locations, encodings):
            bbox = BBox(x1=left, y1=top, x2=right, y2=bottom).clamp(w, h)
            detections.append(Detection(bbox=bbox, embedding=as_embedding(encoding)))

        logger.debug(f"Detected {len(detections)} face(s)")
        return sort_by_area(detections)

    def extract_embedding(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """Embedding of the single subject in a BGR frame, or None."""
        return select_subject(self.detect_faces(frame), self.multi_face)

    def __repr__(self) -> str:
        return (
            f"DlibExtractor(detector='{self.detector_model}', "
            f"embedder='{self.embedder_model}', num_jitters={self.num_jitters})"
        )
