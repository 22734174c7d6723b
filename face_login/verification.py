"""Verification controller for authenticating a live subject.

A rejected match is returned as a normal MatchResult. Only operational
problems (no face, camera failure, store failure, cancellation) raise.
"""

from __future__ import annotations

import threading
from typing import Optional

import numpy as np

from face_login.capture import CaptureSession
from face_login.controller import (
    CaptureController,
    ControllerState,
    SessionFactory,
    check_cancelled,
)
from face_login.interfaces import EmbeddingExtractor, EmbeddingStore
from face_login.logging_config import get_logger
from face_login.matcher import MatchResult, match

logger = get_logger(__name__)


class VerificationController(CaptureController):
    """Controller that captures a face and matches it 1:N against the store.

    Workflow:
    1. Open a capture session
    2. Read up to max_attempts frames until one yields an embedding
    3. Snapshot all enrolled records
    4. Match under the threshold
    5. Close the session (on every path)

    Attributes:
        store: Embedding store read for candidates
        threshold: Default maximum accepted distance

    Example:
        >>> controller = VerificationController(
        ...     session_factory=lambda: CaptureSession(OpenCVCamera(0)),
        ...     extractor=extractor,
        ...     store=store,
        ...     threshold=0.6,
        ... )
        >>> result = controller.verify()
        >>> print(result.decision, result.matched_label, result.distance)
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        extractor: EmbeddingExtractor,
        store: EmbeddingStore,
        threshold: Optional[float] = None,
        max_attempts: int = 5,
        frame_timeout: float = 5.0,
    ):
        super().__init__(
            session_factory=session_factory,
            extractor=extractor,
            max_attempts=max_attempts,
            frame_timeout=frame_timeout,
        )
        self.store = store
        self.last_embedding: Optional[np.ndarray] = None
        # Threshold is metric-space specific, so the model supplies the default
        self.threshold = extractor.default_threshold if threshold is None else threshold

        logger.info(
            f"Initialized VerificationController: store={store}, "
            f"threshold={self.threshold}, max_attempts={max_attempts}"
        )

    def verify(
        self,
        cancel_event: Optional[threading.Event] = None,
        threshold: Optional[float] = None,
    ) -> MatchResult:
        """Capture a face and decide whether it matches an enrolled identity.

        Args:
            cancel_event: Set by the caller to abandon the attempt
            threshold: Override the controller's threshold for this call only

        Returns:
            MatchResult, whether the decision is ACCEPT or REJECT.

        Raises:
            NoFaceDetected: If no usable face was seen within the retry budget.
            CaptureError: If the camera failed, timed out or was cancelled.
            StoreError: If the enrolled records could not be read.
        """
        effective = self.threshold if threshold is None else threshold
        self.last_embedding = None

        def body(session: CaptureSession) -> MatchResult:
            embedding = self._capture_embedding(session, cancel_event)
            self.last_embedding = embedding
            check_cancelled(cancel_event, "before reading the store")

            candidates = self.store.all_records()
            result = match(embedding, candidates, effective)
            self.state = ControllerState.MATCHED
            return result

        try:
            result = self._run(body, cancel_event)
        except Exception as e:
            logger.warning(f"Verification failed: {type(e).__name__}: {e}")
            raise

        if result.accepted:
            logger.info(
                f"Verification accepted '{result.matched_label}' "
                f"(distance={result.distance:.4f}, threshold={effective})"
            )
        else:
            logger.info(
                f"Verification rejected (distance={result.distance:.4f}, "
                f"threshold={effective})"
            )
        return result

    def __repr__(self) -> str:
        return (
            f"VerificationController(store={self.store}, threshold={self.threshold}, "
            f"max_attempts={self.max_attempts}, state={self.state.value})"
        )
