"""Scoped ownership of the imaging device.

A CaptureSession holds exactly one open camera handle at a time, and only
one session in the process may hold a camera at all. Frames are read on a
dedicated worker thread so that a waiting caller can time out or be
cancelled without being stuck inside a blocking driver call.

Example:
    >>> with CaptureSession(OpenCVCamera(0)) as session:
    ...     frame = session.next_frame(timeout=5.0)
"""

from __future__ import annotations

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from typing import Optional

import numpy as np

from face_login.errors import (
    CaptureCancelled,
    CaptureError,
    CaptureTimeout,
    DeviceBusy,
)
from face_login.interfaces import CameraDevice
from face_login.logging_config import get_logger

logger = get_logger(__name__)

# Held by whichever session currently owns a camera
_device_lock = threading.Lock()


class SessionState(Enum):
    CLOSED = "closed"
    OPEN = "open"


class CaptureSession:
    """Capture session wrapping one camera device.

    Attributes:
        device: Camera driver this session drives
        release_grace: Seconds close() waits for an in-flight read to finish
        poll_interval: Granularity at which waits check for cancellation
        frames_read: Number of frames delivered since the session was created
    """

    def __init__(
        self,
        device: CameraDevice,
        release_grace: float = 0.5,
        poll_interval: float = 0.05,
    ):
        if release_grace < 0:
            raise ValueError(f"release_grace must be >= 0, got {release_grace}")
        if poll_interval <= 0:
            raise ValueError(f"poll_interval must be > 0, got {poll_interval}")

        self.device = device
        self.release_grace = release_grace
        self.poll_interval = poll_interval
        self.frames_read = 0

        self._state = SessionState.CLOSED
        self._state_lock = threading.Lock()
        self._wait_lock = threading.Lock()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._pending: Optional[Future] = None

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_open(self) -> bool:
        return self._state is SessionState.OPEN

    def open(self) -> CaptureSession:
        """Acquire the camera and start streaming.

        Returns:
            This session, for chaining.

        Raises:
            DeviceBusy: If this session is already open or another session
                holds the camera.
            DeviceUnavailable: If the camera does not exist.
            PermissionDenied: If access to the camera is refused.
        """
        with self._state_lock:
            if self._state is SessionState.OPEN:
                raise DeviceBusy("This capture session is already open")

            if not _device_lock.acquire(blocking=False):
                raise DeviceBusy("Another capture session is using the camera")

            try:
                self.device.open()
            except Exception:
                _device_lock.release()
                raise

            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="capture-reader"
            )
            self._state = SessionState.OPEN

        logger.info(f"Capture session opened on {self.device}")
        return self

    def next_frame(
        self,
        timeout: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> np.ndarray:
        """Wait for the next frame from the camera.

        A read that outlives one wait is handed to the next wait instead of
        being issued again, so the device never has two reads in flight.

        Args:
            timeout: Maximum seconds to wait
            cancel_event: Set by the caller to abandon the wait

        Returns:
            Frame in BGR format, shape [H, W, 3].

        Raises:
            CaptureTimeout: If no frame arrived within timeout.
            CaptureCancelled: If cancel_event was set or the session was
                closed during the wait.
            CaptureError: If the session is not open, another wait is
                already in progress, or the driver failed.
        """
        if timeout <= 0:
            raise ValueError(f"timeout must be > 0, got {timeout}")

        if not self._wait_lock.acquire(blocking=False):
            raise CaptureError("A frame wait is already in progress on this session")

        try:
            if not self.is_open:
                raise CaptureError("Capture session is not open")
            return self._wait_for_frame(timeout, cancel_event)
        finally:
            self._wait_lock.release()

    def _wait_for_frame(
        self,
        timeout: float,
        cancel_event: Optional[threading.Event],
    ) -> np.ndarray:
        deadline = time.monotonic() + timeout

        while True:
            if cancel_event is not None and cancel_event.is_set():
                raise CaptureCancelled("Capture cancelled while waiting for a frame")

            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise CaptureTimeout(f"No frame received within {timeout:.2f}s")

            with self._state_lock:
                if self._state is not SessionState.OPEN:
                    raise CaptureCancelled("Capture session closed while waiting for a frame")
                if self._pending is None:
                    self._pending = self._executor.submit(self.device.read)
                pending = self._pending

            done, _ = wait([pending], timeout=min(self.poll_interval, remaining))
            if not done:
                continue

            with self._state_lock:
                if self._pending is pending:
                    self._pending = None

            try:
                success, frame = pending.result()
            except CaptureError:
                raise
            except Exception as e:
                raise CaptureError(f"Camera read failed: {e}") from e

            if success and frame is not None:
                self.frames_read += 1
                logger.debug(f"Frame {self.frames_read} received")
                return frame

            # Failed read, back off briefly before asking again
            pause = min(self.poll_interval, max(deadline - time.monotonic(), 0.0))
            if cancel_event is not None:
                cancel_event.wait(pause)
            else:
                time.sleep(pause)

    def close(self) -> None:
        """Release the camera.

        Safe to call any number of times; the device is released once.
        A read still in flight gets up to release_grace seconds to finish.
        After that the camera lock is freed regardless; the drivers hold
        their handle until the stuck read returns and release it then.
        """
        with self._state_lock:
            if self._state is SessionState.CLOSED:
                return
            self._state = SessionState.CLOSED
            pending, self._pending = self._pending, None
            executor, self._executor = self._executor, None

        try:
            if pending is not None and not pending.done():
                wait([pending], timeout=self.release_grace)
            executor.shutdown(wait=False, cancel_futures=True)
            self.device.release()
        finally:
            _device_lock.release()

        logger.info(f"Capture session closed ({self.frames_read} frames read)")

    def __enter__(self) -> CaptureSession:
        return self.open()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"CaptureSession(device={self.device}, state={self._state.value})"
