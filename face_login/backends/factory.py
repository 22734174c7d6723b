"""Backend factory for the embedding extractor.

Backends pull in heavy optional dependencies, so each one is imported only
when it is requested:
- dlib: face_recognition HOG/CNN detector + ResNet-34 (128-D, threshold 0.6)
- insightface: SCRFD detector + ArcFace (512-D, threshold 1.0)

Usage:
    extractor = create_extractor("dlib", config)
    threshold = resolve_threshold(config, extractor)
"""

from __future__ import annotations

from typing import Literal

from face_login.config import Config
from face_login.interfaces import EmbeddingExtractor
from face_login.logging_config import get_logger

logger = get_logger(__name__)

BackendType = Literal["dlib", "insightface"]


def create_extractor(
    backend_type: BackendType | None = None,
    config: Config | None = None,
) -> EmbeddingExtractor:
    """Create the embedding extractor for a backend.

    Args:
        backend_type: "dlib" or "insightface". If None, uses config.backend
        config: Configuration object. If None, loads from .env

    Returns:
        Extractor implementing the EmbeddingExtractor protocol.

    Raises:
        ValueError: If the backend is unknown.
    """
    if config is None:
        from face_login.config import get_config

        config = get_config()

    backend_type = backend_type or config.backend

    if backend_type == "dlib":
        from face_login.backends.dlib import DlibExtractor

        extractor = DlibExtractor(
            detector_model=config.detector_model,
            embedder_model=config.embedder_model,
            num_jitters=config.num_jitters,
            multi_face=config.multi_face,
        )
    elif backend_type == "insightface":
        from face_login.backends.insightface import InsightFaceExtractor

        extractor = InsightFaceExtractor(
            model_pack=config.model_pack,
            ctx_id=config.ctx_id,
            multi_face=config.multi_face,
        )
    else:
        raise ValueError(
            f"Unknown backend: '{backend_type}'. "
            f"Supported backends: 'dlib', 'insightface'"
        )

    logger.info(f"Created {backend_type} extractor: {extractor}")
    return extractor


def resolve_threshold(config: Config, extractor: EmbeddingExtractor) -> float:
    """THRESH from the environment if set, else the extractor's default."""
    if config.thresh is not None:
        return config.thresh
    return extractor.default_threshold
