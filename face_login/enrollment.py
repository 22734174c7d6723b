"""Enrollment controller for registering a new identity.

This module captures a live face, extracts its embedding and appends it to
the embedding store under the supplied label. Enrolling an existing label
again adds one more sample for it.
"""

from __future__ import annotations

import threading
from typing import Optional

from face_login.capture import CaptureSession
from face_login.controller import (
    CaptureController,
    ControllerState,
    SessionFactory,
    check_cancelled,
)
from face_login.errors import InvalidLabel
from face_login.interfaces import EmbeddingExtractor, EmbeddingStore
from face_login.logging_config import get_logger
from face_login.store import EnrollmentRecord

logger = get_logger(__name__)


class EnrollmentController(CaptureController):
    """Controller that captures and persists one face sample per call.

    Workflow:
    1. Validate the label
    2. Open a capture session
    3. Read up to max_attempts frames until one yields an embedding
    4. Append a single EnrollmentRecord
    5. Close the session (on every path)

    A failed or cancelled attempt writes nothing to the store.

    Attributes:
        store: Embedding store receiving new records

    Example:
        >>> controller = EnrollmentController(
        ...     session_factory=lambda: CaptureSession(OpenCVCamera(0)),
        ...     extractor=extractor,
        ...     store=JsonlEmbeddingStore("data/enrollments.jsonl"),
        ... )
        >>> record = controller.enroll("alice")
    """

    def __init__(
        self,
        session_factory: SessionFactory,
        extractor: EmbeddingExtractor,
        store: EmbeddingStore,
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

        logger.info(
            f"Initialized EnrollmentController: store={store}, "
            f"max_attempts={max_attempts}, frame_timeout={frame_timeout}s"
        )

    def enroll(
        self,
        label: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> EnrollmentRecord:
        """Capture a face and enroll it under label.

        Args:
            label: Identity label, opaque to this engine
            cancel_event: Set by the caller to abandon the attempt

        Returns:
            The record that was appended to the store.

        Raises:
            InvalidLabel: If label is empty or whitespace.
            NoFaceDetected: If no usable face was seen within the retry budget.
            CaptureError: If the camera failed, timed out or was cancelled.
            StoreError: If the record could not be persisted.
        """
        if not isinstance(label, str) or not label.strip():
            raise InvalidLabel("Identity label must be a non-empty string")

        logger.info(f"Starting enrollment for '{label}'")

        def body(session: CaptureSession) -> EnrollmentRecord:
            embedding = self._capture_embedding(session, cancel_event)
            check_cancelled(cancel_event, "before writing the enrollment")

            record = EnrollmentRecord(label=label, embedding=embedding)
            self.store.append(record)
            self.state = ControllerState.PERSISTED
            return record

        try:
            record = self._run(body, cancel_event)
        except Exception as e:
            logger.warning(f"Enrollment for '{label}' failed: {type(e).__name__}: {e}")
            raise

        logger.info(f"Enrollment complete for '{label}' (dim={record.dimension})")
        return record

    def __repr__(self) -> str:
        return (
            f"EnrollmentController(store={self.store}, "
            f"max_attempts={self.max_attempts}, state={self.state.value})"
        )
