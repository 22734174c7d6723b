"""Pytest fixtures and fakes shared by the test suite.

The fakes stand in for the camera driver and the embedding model so the
suite runs without a webcam, dlib or InsightFace.
"""

from __future__ import annotations

import threading
from typing import List, Optional

import numpy as np
import pytest

from face_login import capture
from face_login.capture import CaptureSession
from face_login.store import MemoryEmbeddingStore


class FakeCamera:
    """Camera driver double.

    Args:
        frames: Frames to hand out in order, then reads fail. None means an
            endless stream of blank frames.
        block: Every read blocks until the camera is released.
        open_error: Exception raised by open().
        read_error: Exception raised by read().
    """

    def __init__(
        self,
        frames: Optional[List[np.ndarray]] = None,
        block: bool = False,
        open_error: Optional[Exception] = None,
        read_error: Optional[Exception] = None,
    ):
        self.frames = list(frames) if frames is not None else None
        self.block = block
        self.open_error = open_error
        self.read_error = read_error
        self.open_calls = 0
        self.read_calls = 0
        self.release_calls = 0
        self.released = threading.Event()

    def open(self) -> None:
        self.open_calls += 1
        if self.open_error is not None:
            raise self.open_error
        self.released.clear()

    def read(self):
        self.read_calls += 1
        if self.read_error is not None:
            raise self.read_error
        if self.block:
            self.released.wait(timeout=5.0)
            return False, None
        if self.frames is None:
            return True, np.zeros((48, 64, 3), dtype=np.uint8)
        if self.frames:
            return True, self.frames.pop(0)
        return False, None

    def release(self) -> None:
        self.release_calls += 1
        self.released.set()

    def __repr__(self) -> str:
        return "FakeCamera()"


class FakeExtractor:
    """Embedding model double returning scripted outputs, then None."""

    default_threshold = 0.6

    def __init__(self, *outputs: Optional[np.ndarray]):
        self.outputs = list(outputs)
        self.calls = 0

    def detect_faces(self, frame):
        return []

    def extract_embedding(self, frame) -> Optional[np.ndarray]:
        self.calls += 1
        if not self.outputs:
            return None
        return self.outputs.pop(0)


class SessionFactory:
    """Builds sessions over a shared fake camera and remembers them."""

    def __init__(self, camera: FakeCamera, release_grace: float = 0.05):
        self.camera = camera
        self.release_grace = release_grace
        self.sessions: List[CaptureSession] = []

    def __call__(self) -> CaptureSession:
        session = CaptureSession(
            self.camera, release_grace=self.release_grace, poll_interval=0.01
        )
        self.sessions.append(session)
        return session


@pytest.fixture(autouse=True)
def release_device_lock():
    """Free the process-wide camera lock if a failing test left it held."""
    yield
    if capture._device_lock.locked():
        capture._device_lock.release()


@pytest.fixture
def camera():
    """Camera producing an endless stream of frames."""
    return FakeCamera()


@pytest.fixture
def session_factory(camera):
    return SessionFactory(camera)


@pytest.fixture
def store():
    return MemoryEmbeddingStore()


@pytest.fixture
def e1():
    """A 128-D embedding at the origin."""
    return np.zeros(128, dtype=np.float64)


@pytest.fixture
def e2():
    """A 128-D embedding at distance 0.9 from e1."""
    emb = np.zeros(128, dtype=np.float64)
    emb[0] = 0.9
    return emb


@pytest.fixture
def random_embedding():
    rng = np.random.default_rng(42)

    def make(dim: int = 128) -> np.ndarray:
        return rng.normal(0.0, 0.1, size=dim)

    return make
