"""Camera device drivers backed by OpenCV.

Both drivers follow the CameraDevice protocol: nothing is acquired at
construction time, open() grabs the device and release() frees it.

release() never runs concurrently with a driver read. If a read is still
blocked inside the driver (a capture session gave up on it after its
release grace), the handle is detached at once and released by that read
when it returns.
"""

from __future__ import annotations

import os
import sys
import threading
from pathlib import Path
from typing import Optional, Set, Tuple

import cv2
import numpy as np

from face_login.errors import DeviceUnavailable, PermissionDenied
from face_login.logging_config import get_logger

logger = get_logger(__name__)


class _VideoCaptureDevice:
    """Shared read/release handling around a cv2.VideoCapture."""

    kind = "capture"

    def __init__(self) -> None:
        self.cap: Optional[cv2.VideoCapture] = None
        self._io_lock = threading.Lock()
        self._reading: Set[cv2.VideoCapture] = set()
        self._retired: Set[cv2.VideoCapture] = set()

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        """Read the next frame.

        Returns:
            Tuple of (success, frame); frame is None on failure.
        """
        with self._io_lock:
            cap = self.cap
            if cap is None or not cap.isOpened():
                logger.debug(f"{self.kind} is not opened")
                return False, None
            self._reading.add(cap)

        try:
            success, frame = cap.read()
        finally:
            with self._io_lock:
                self._reading.discard(cap)
                retired = cap in self._retired
                self._retired.discard(cap)
            if retired:
                cap.release()
                logger.info(f"Released {self!r} after its last read returned")

        if not success:
            self._on_failed_read()
            return False, None

        return True, frame

    def _on_failed_read(self) -> None:
        logger.warning(f"Failed to read frame from {self.kind}")

    def release(self) -> None:
        """Release the handle, deferring to an in-flight read if there is one."""
        with self._io_lock:
            cap, self.cap = self.cap, None
            if cap is None:
                return
            if cap in self._reading:
                self._retired.add(cap)
                logger.warning(f"{self.kind} read still in progress, release deferred")
                return

        cap.release()
        logger.info(f"Released {self!r}")


class OpenCVCamera(_VideoCaptureDevice):
    """Webcam or USB camera read through cv2.VideoCapture.

    Attributes:
        camera_id: Camera device index (0 for the default camera)
        width: Requested frame width in pixels
        height: Requested frame height in pixels
        cap: OpenCV VideoCapture, None while closed

    Example:
        >>> camera = OpenCVCamera(camera_id=0)
        >>> camera.open()
        >>> try:
        ...     success, frame = camera.read()
        ... finally:
        ...     camera.release()
    """

    kind = "webcam"

    def __init__(self, camera_id: int = 0, width: int = 1280, height: int = 720):
        super().__init__()
        self.camera_id = camera_id
        self.width = width
        self.height = height

    def _check_device_node(self) -> None:
        """Distinguish a missing camera from a refused one on Linux."""
        if not sys.platform.startswith("linux"):
            return

        node = Path(f"/dev/video{self.camera_id}")
        if not node.exists():
            raise DeviceUnavailable(f"No camera device at {node}")
        if not os.access(node, os.R_OK | os.W_OK):
            raise PermissionDenied(
                f"Access to {node} was refused. "
                f"Check that the user belongs to the 'video' group."
            )

    def open(self) -> None:
        """Open the webcam.

        Raises:
            DeviceUnavailable: If the camera does not exist or will not open.
            PermissionDenied: If the device node is not accessible.
        """
        self._check_device_node()

        cap = cv2.VideoCapture(self.camera_id)
        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailable(
                f"Failed to open webcam with camera_id={self.camera_id}. "
                f"Check if camera is connected and not in use by another application."
            )

        # Not every camera honours these
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        with self._io_lock:
            self.cap = cap

        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        logger.info(f"Opened webcam {self.camera_id}: {width}x{height}")

    def __repr__(self) -> str:
        status = "opened" if self.cap is not None else "closed"
        return f"OpenCVCamera(camera_id={self.camera_id}, status={status})"


class VideoFileCamera(_VideoCaptureDevice):
    """Recorded video played back as if it were a camera.

    Lets enrollment and verification run headless against a recording.
    The end of the file reads as a failed frame, which the capture session
    turns into a timeout.

    Attributes:
        video_path: Path to video file
        cap: OpenCV VideoCapture, None while closed
    """

    kind = "video file"

    def __init__(self, video_path: str | Path):
        super().__init__()
        self.video_path = Path(video_path)
        self._frame_count = 0

    def open(self) -> None:
        """Open the video file.

        Raises:
            DeviceUnavailable: If the file is missing or cannot be decoded.
        """
        if not self.video_path.exists():
            raise DeviceUnavailable(f"Video file not found: {self.video_path}")

        cap = cv2.VideoCapture(str(self.video_path))
        if not cap.isOpened():
            cap.release()
            raise DeviceUnavailable(
                f"Failed to open video file: {self.video_path}. "
                f"File may be corrupted or codec not supported."
            )

        with self._io_lock:
            self.cap = cap
        self._frame_count = int(cap.get(cv2.CAP_PROP_FRAME_COUNT))
        logger.info(
            f"Opened video file: {self.video_path.name} ({self._frame_count} frames)"
        )

    def _on_failed_read(self) -> None:
        logger.debug("Reached end of video file")

    def __repr__(self) -> str:
        status = "opened" if self.cap is not None else "closed"
        return f"VideoFileCamera(path={self.video_path.name}, status={status})"
