"""InsightFace embedding extractor (SCRFD detector + ArcFace encoder).

ArcFace produces L2-normalised 512-dimensional vectors. On the unit sphere
Euclidean distance d and cosine similarity s are related by d^2 = 2 - 2s,
so the default threshold of 1.0 corresponds to a cosine similarity of 0.5.
"""

from __future__ import annotations

from typing import List, Literal, Optional

import numpy as np
from insightface.app import FaceAnalysis

from face_login.backends.policy import select_subject, sort_by_area, validate_multi_face
from face_login.interfaces import BBox, Detection, as_embedding
from face_login.logging_config import get_logger

logger = get_logger(__name__)


class InsightFaceExtractor:
    """Detector and 512-D encoder built on InsightFace's FaceAnalysis.

    Attributes:
        app: InsightFace FaceAnalysis instance
        ctx_id: Device context (-1=CPU, 0+=GPU)
        det_size: Detection input size
        multi_face: What extract_embedding does with several faces
        default_threshold: Euclidean threshold for this metric space
    """

    default_threshold = 1.0
    embedding_dim = 512

    def __init__(
        self,
        model_pack: str = "buffalo_l",
        ctx_id: int = -1,
        det_size: tuple[int, int] = (640, 640),
        multi_face: Literal["reject", "largest"] = "reject",
    ):
        self.model_pack = model_pack
        self.ctx_id = ctx_id
        self.det_size = det_size
        self.multi_face = validate_multi_face(multi_face)

        logger.info(
            f"Initializing InsightFace extractor (model={model_pack}, "
            f"device={'GPU:' + str(ctx_id) if ctx_id >= 0 else 'CPU'}, det_size={det_size})"
        )

        try:
            self.app = FaceAnalysis(
                name=model_pack,
                allowed_modules=["detection", "recognition"],
                providers=(
                    ["CUDAExecutionProvider", "CPUExecutionProvider"]
                    if ctx_id >= 0
                    else ["CPUExecutionProvider"]
                ),
            )
            self.app.prepare(ctx_id=ctx_id, det_size=det_size)
        except Exception as e:
            logger.error(f"Failed to initialize InsightFace: {e}", exc_info=True)
            raise RuntimeError(f"Could not load InsightFace model pack: {e}") from e

    def detect_faces(self, frame: np.ndarray) -> List[Detection]:
        """Detect and encode every face in a BGR frame.

        Returns:
            Detections sorted by area (largest first); empty if none.
        """
        if frame is None or frame.size == 0:
            logger.warning("Empty frame provided to extractor")
            return []

        h, w = frame.shape[:2]
        detections = []
        for face in self.app.get(frame):
            x1, y1, x2, y2 = face.bbox.astype(int)
            bbox = BBox(x1=int(x1), y1=int(y1), x2=int(x2), y2=int(y2)).clamp(w, h)

            embedding = getattr(face, "normed_embedding", None)
            if embedding is not None:
                embedding = as_embedding(embedding)
            detections.append(Detection(bbox=bbox, embedding=embedding))

        logger.debug(f"Detected {len(detections)} face(s)")
        return sort_by_area(detections)

    def extract_embedding(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """Embedding of the single subject in a BGR frame, or None."""
        return select_subject(self.detect_faces(frame), self.multi_face)

    def __repr__(self) -> str:
        return f"InsightFaceExtractor(model='{self.model_pack}', ctx_id={self.ctx_id})"
