"""Configuration management for the face login engine.

Settings are read from environment variables (optionally from a .env file)
and validated once into a Config instance.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

VALID_BACKENDS = ["dlib", "insightface"]
VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
VALID_MODEL_PACKS = ["buffalo_l", "buffalo_m", "buffalo_s", "buffalo_sc"]
VALID_MULTI_FACE = ["reject", "largest"]


@dataclass
class Config:
    """Application configuration loaded from environment variables.

    Attributes:
        backend: Embedding backend ("dlib" or "insightface")
        thresh: Euclidean distance threshold, None to use the backend default
        camera_id: Camera device ID for capture
        frame_timeout: Seconds to wait for a single frame
        max_frame_attempts: Frames examined before giving up with NoFaceDetected
        release_grace: Seconds close() waits for an in-flight read
        multi_face: Policy for frames with several faces ("reject" or "largest")
        detector_model: dlib detector ("hog" or "cnn")
        embedder_model: dlib encoder ("large" or "small")
        num_jitters: dlib re-sampling count per encoding
        ctx_id: InsightFace device context (-1 for CPU, 0+ for GPU)
        model_pack: InsightFace model pack name
        log_level: Logging level
        store_path: JSON Lines file holding enrolled embeddings
    """

    backend: str
    thresh: Optional[float]
    camera_id: int
    frame_timeout: float
    max_frame_attempts: int
    release_grace: float
    multi_face: str
    detector_model: str
    embedder_model: str
    num_jitters: int
    ctx_id: int
    model_pack: str
    log_level: str
    store_path: Path

    @classmethod
    def from_env(cls) -> Config:
        """Load configuration from environment variables.

        Returns:
            Config instance with values from environment or defaults.

        Raises:
            ValueError: If an environment variable is invalid.
        """
        project_root = Path(__file__).parent.parent

        backend = os.getenv("BACKEND", "dlib").lower()
        if backend not in VALID_BACKENDS:
            raise ValueError(f"BACKEND must be one of {VALID_BACKENDS}, got {backend}")

        # Empty means "use the backend's documented default"
        raw_thresh = os.getenv("THRESH", "").strip()
        thresh: Optional[float] = None
        if raw_thresh:
            thresh = float(raw_thresh)
            if not thresh >= 0.0 or thresh == float("inf"):
                raise ValueError(f"THRESH must be a finite number >= 0, got {raw_thresh}")

        camera_id = int(os.getenv("CAMERA_ID", "0"))
        if camera_id < 0:
            raise ValueError(f"CAMERA_ID must be >= 0, got {camera_id}")

        frame_timeout = float(os.getenv("FRAME_TIMEOUT", "5.0"))
        if frame_timeout <= 0:
            raise ValueError(f"FRAME_TIMEOUT must be > 0, got {frame_timeout}")

        max_frame_attempts = int(os.getenv("MAX_FRAME_ATTEMPTS", "5"))
        if max_frame_attempts < 1:
            raise ValueError(
                f"MAX_FRAME_ATTEMPTS must be >= 1, got {max_frame_attempts}"
            )

        release_grace = float(os.getenv("RELEASE_GRACE", "0.5"))
        if release_grace < 0:
            raise ValueError(f"RELEASE_GRACE must be >= 0, got {release_grace}")

        multi_face = os.getenv("MULTI_FACE", "reject").lower()
        if multi_face not in VALID_MULTI_FACE:
            raise ValueError(
                f"MULTI_FACE must be one of {VALID_MULTI_FACE}, got {multi_face}"
            )

        detector_model = os.getenv("DETECTOR_MODEL", "hog").lower()
        if detector_model not in ("hog", "cnn"):
            raise ValueError(f"DETECTOR_MODEL must be 'hog' or 'cnn', got {detector_model}")

        embedder_model = os.getenv("EMBEDDER_MODEL", "large").lower()
        if embedder_model not in ("large", "small"):
            raise ValueError(
                f"EMBEDDER_MODEL must be 'large' or 'small', got {embedder_model}"
            )

        num_jitters = int(os.getenv("NUM_JITTERS", "1"))
        if num_jitters < 1:
            raise ValueError(f"NUM_JITTERS must be >= 1, got {num_jitters}")

        ctx_id = int(os.getenv("CTX_ID", "-1"))

        model_pack = os.getenv("MODEL_PACK", "buffalo_l")
        if model_pack not in VALID_MODEL_PACKS:
            raise ValueError(
                f"MODEL_PACK must be one of {VALID_MODEL_PACKS}, got {model_pack}"
            )

        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        if log_level not in VALID_LOG_LEVELS:
            raise ValueError(
                f"LOG_LEVEL must be one of {VALID_LOG_LEVELS}, got {log_level}"
            )

        store_path = Path(
            os.getenv("STORE_PATH", str(project_root / "data" / "enrollments.jsonl"))
        )

        return cls(
            backend=backend,
            thresh=thresh,
            camera_id=camera_id,
            frame_timeout=frame_timeout,
            max_frame_attempts=max_frame_attempts,
            release_grace=release_grace,
            multi_face=multi_face,
            detector_model=detector_model,
            embedder_model=embedder_model,
            num_jitters=num_jitters,
            ctx_id=ctx_id,
            model_pack=model_pack,
            log_level=log_level,
            store_path=store_path,
        )

    def __repr__(self) -> str:
        thresh = "backend default" if self.thresh is None else self.thresh
        return (
            f"Config(\n"
            f"  Backend: {self.backend},\n"
            f"  Threshold: {thresh},\n"
            f"  Camera: {self.camera_id},\n"
            f"  Frame timeout: {self.frame_timeout}s x {self.max_frame_attempts},\n"
            f"  Multi-face policy: {self.multi_face},\n"
            f"  Log Level: {self.log_level},\n"
            f"  Store: {self.store_path}\n"
            f")"
        )


# Global config instance (lazy-loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get global config instance.

    Returns:
        Config instance loaded from environment.
    """
    global _config
    if _config is None:
        _config = Config.from_env()
    return _config
