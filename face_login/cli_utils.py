"""Helpers shared by the command-line scripts."""

from __future__ import annotations

import argparse
import math
import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError
from pathlib import Path
from typing import Callable, Optional, TypeVar

from face_login.capture import CaptureSession
from face_login.config import Config
from face_login.devices import OpenCVCamera, VideoFileCamera
from face_login.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

EXIT_OK = 0
EXIT_REJECTED = 1
EXIT_FAILURE = 2


def print_section(title: str) -> None:
    """Print a section divider."""
    print()
    print("=" * 70)
    print(f"  {title}")
    print("=" * 70)


def non_negative_float(value: str) -> float:
    """argparse type for distance thresholds."""
    try:
        number = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not a number: '{value}'") from None
    if not math.isfinite(number) or number < 0:
        raise argparse.ArgumentTypeError(f"must be a finite number >= 0, got {value}")
    return number


def build_session_factory(
    config: Config,
    camera_id: Optional[int] = None,
    video: Optional[str | Path] = None,
) -> Callable[[], CaptureSession]:
    """Return a factory creating a fresh capture session per attempt.

    Args:
        config: Configuration (camera id and release grace)
        camera_id: Overrides config.camera_id
        video: Read from this video file instead of a camera
    """

    def factory() -> CaptureSession:
        if video is not None:
            device = VideoFileCamera(video)
        else:
            device = OpenCVCamera(config.camera_id if camera_id is None else camera_id)
        return CaptureSession(device, release_grace=config.release_grace)

    return factory


def run_cancellable(attempt: Callable[[threading.Event], T], poll: float = 0.2) -> T:
    """Run an enrollment or verification attempt so that Ctrl+C cancels it.

    The attempt runs on a worker thread; a KeyboardInterrupt in the main
    thread sets the cancel event and waits for the attempt to unwind, which
    releases the camera before CaptureCancelled propagates.
    """
    cancel_event = threading.Event()

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="attempt") as pool:
        future = pool.submit(attempt, cancel_event)
        while True:
            try:
                return future.result(timeout=poll)
            except TimeoutError:
                continue
            except KeyboardInterrupt:
                logger.info("Interrupted by user, cancelling attempt")
                cancel_event.set()
                return future.result()
