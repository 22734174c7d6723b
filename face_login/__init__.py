"""Face login: biometric enrollment and verification engine.

Captures a face from a camera, turns it into an embedding and either enrolls
it under an identity label or matches it against the enrolled identities.
Embedding backends live in face_login.backends and are imported on demand.
"""

from face_login.capture import CaptureSession, SessionState
from face_login.config import Config, get_config
from face_login.controller import ControllerState
from face_login.enrollment import EnrollmentController
from face_login.errors import (
    CaptureCancelled,
    CaptureError,
    CaptureTimeout,
    DeviceBusy,
    DeviceUnavailable,
    DimensionMismatch,
    EnrollmentError,
    FaceLoginError,
    InvalidLabel,
    NoFaceDetected,
    PermissionDenied,
    StoreError,
    StoreUnavailable,
    VerificationError,
)
from face_login.interfaces import (
    BBox,
    CameraDevice,
    Detection,
    EmbeddingExtractor,
    EmbeddingStore,
    as_embedding,
)
from face_login.logging_config import get_logger, setup_logging
from face_login.matcher import Decision, MatchResult, euclidean_distance, match, rank_labels
from face_login.store import EnrollmentRecord, JsonlEmbeddingStore, MemoryEmbeddingStore
from face_login.verification import VerificationController

__version__ = "0.1.0"

__all__ = [
    # Capture
    "CaptureSession",
    "SessionState",
    # Config
    "Config",
    "get_config",
    # Controllers
    "ControllerState",
    "EnrollmentController",
    "VerificationController",
    # Errors
    "FaceLoginError",
    "CaptureError",
    "DeviceUnavailable",
    "PermissionDenied",
    "CaptureTimeout",
    "DeviceBusy",
    "CaptureCancelled",
    "StoreError",
    "StoreUnavailable",
    "EnrollmentError",
    "VerificationError",
    "InvalidLabel",
    "NoFaceDetected",
    "DimensionMismatch",
    # Interfaces
    "BBox",
    "CameraDevice",
    "Detection",
    "EmbeddingExtractor",
    "EmbeddingStore",
    "as_embedding",
    # Logging
    "setup_logging",
    "get_logger",
    # Matching
    "Decision",
    "MatchResult",
    "euclidean_distance",
    "match",
    "rank_labels",
    # Storage
    "EnrollmentRecord",
    "JsonlEmbeddingStore",
    "MemoryEmbeddingStore",
]
