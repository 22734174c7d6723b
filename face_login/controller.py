"""Shared capture loop for the enrollment and verification controllers.

Both controllers open a fresh capture session per attempt, examine a bounded
number of frames until the extractor yields an embedding, and close the
session on every exit path.
"""

from __future__ import annotations

import threading
from enum import Enum
from typing import Callable, Optional

import numpy as np

from face_login.capture import CaptureSession
from face_login.errors import CaptureCancelled, NoFaceDetected
from face_login.interfaces import EmbeddingExtractor, as_embedding
from face_login.logging_config import get_logger

logger = get_logger(__name__)

SessionFactory = Callable[[], CaptureSession]


class ControllerState(Enum):
    IDLE = "idle"
    SESSION_OPEN = "session_open"
    FRAME_CAPTURED = "frame_captured"
    EMBEDDING_EXTRACTED = "embedding_extracted"
    PERSISTED = "persisted"
    MATCHED = "matched"
    CANCELLED = "cancelled"
    FAILED = "failed"


def check_cancelled(cancel_event: Optional[threading.Event], stage: str) -> None:
    """Raise CaptureCancelled if the caller has asked to stop."""
    if cancel_event is not None and cancel_event.is_set():
        raise CaptureCancelled(f"Cancelled {stage}")


class CaptureController:
    """Base class owning the session factory, extractor and retry policy.

    Attributes:
        session_factory: Builds a fresh, unopened CaptureSession per attempt
        extractor: Embedding model
        max_attempts: Frames examined before giving up with NoFaceDetected
        frame_timeout: Seconds to wait for each frame
        state: Current step of the last or ongoing attempt
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        extractor: EmbeddingExtractor,
        max_attempts: int = 5,
        frame_timeout: float = 5.0,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {max_attempts}")
        if frame_timeout <= 0:
            raise ValueError(f"frame_timeout must be > 0, got {frame_timeout}")

        self.session_factory = session_factory
        self.extractor = extractor
        self.max_attempts = max_attempts
        self.frame_timeout = frame_timeout
        self.state = ControllerState.IDLE
        self._busy = threading.Lock()

    def _capture_embedding(
        self,
        session: CaptureSession,
        cancel_event: Optional[threading.Event],
    ) -> np.ndarray:
        """Pull frames until one yields an embedding or the budget runs out.

        Raises:
            NoFaceDetected: If max_attempts frames held no usable face.
            CaptureError: Propagated unchanged from the session.
        """
        for attempt in range(1, self.max_attempts + 1):
            frame = session.next_frame(self.frame_timeout, cancel_event)
            self.state = ControllerState.FRAME_CAPTURED
            check_cancelled(cancel_event, "before embedding extraction")

            embedding = self.extractor.extract_embedding(frame)
            if embedding is not None:
                self.state = ControllerState.EMBEDDING_EXTRACTED
                logger.debug(f"Embedding extracted on attempt {attempt}/{self.max_attempts}")
                return as_embedding(embedding)

            logger.debug(f"No usable face in frame {attempt}/{self.max_attempts}")

        raise NoFaceDetected(
            f"No usable face found in {self.max_attempts} frame(s)"
        )

    def _run(self, body: Callable[[CaptureSession], object], cancel_event):
        """Run body inside a freshly opened session, always closing it."""
        if not self._busy.acquire(blocking=False):
            raise RuntimeError(f"{type(self).__name__} is already running an attempt")

        try:
            self.state = ControllerState.IDLE
            check_cancelled(cancel_event, "before opening the camera")

            session = self.session_factory()
            session.open()
            try:
                self.state = ControllerState.SESSION_OPEN
                result = body(session)
            finally:
                session.close()

            self.state = ControllerState.IDLE
            return result
        except CaptureCancelled:
            self.state = ControllerState.CANCELLED
            raise
        except Exception:
            self.state = ControllerState.FAILED
            raise
        finally:
            self._busy.release()
