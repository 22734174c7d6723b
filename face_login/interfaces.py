"""Core interfaces and data structures for face login.

Protocols for the camera driver, the embedding model and the store, plus
the small value types passed between them.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence, Tuple, runtime_checkable

import numpy as np


def as_embedding(values) -> np.ndarray:
    """Convert an array-like into an immutable float64 embedding.

    The input is copied, so later changes to the source do not leak into
    the returned embedding.

    Args:
        values: Any 1-D sequence of numbers (list, tuple, ndarray)

    Returns:
        Read-only 1-D float64 array.

    Raises:
        ValueError: If the input is not 1-D, is empty or holds NaN/inf.

    Example:
        >>> emb = as_embedding([0.1, 0.2, 0.3])
        >>> emb.flags.writeable
        False
    """
    embedding = np.array(values, dtype=np.float64, copy=True)

    if embedding.ndim != 1:
        raise ValueError(f"Embedding must be 1-D, got shape {embedding.shape}")
    if embedding.size == 0:
        raise ValueError("Embedding must not be empty")
    if not np.all(np.isfinite(embedding)):
        raise ValueError("Embedding contains NaN or infinite values")

    embedding.flags.writeable = False
    return embedding


@dataclass
class BBox:
    """Bounding box for a detected face.

    Attributes:
        x1: Left edge x-coordinate (pixels)
        y1: Top edge y-coordinate (pixels)
        x2: Right edge x-coordinate (pixels)
        y2: Bottom edge y-coordinate (pixels)
    """

    x1: int
    y1: int
    x2: int
    y2: int

    @property
    def width(self) -> int:
        return self.x2 - self.x1

    @property
    def height(self) -> int:
        return self.y2 - self.y1

    @property
    def area(self) -> int:
        return self.width * self.height

    def clamp(self, img_width: int, img_height: int) -> BBox:
        """Clamp coordinates to image boundaries."""
        return BBox(
            x1=max(0, min(self.x1, img_width - 1)),
            y1=max(0, min(self.y1, img_height - 1)),
            x2=max(0, min(self.x2, img_width - 1)),
            y2=max(0, min(self.y2, img_height - 1)),
        )

    def __repr__(self) -> str:
        return f"BBox(x1={self.x1}, y1={self.y1}, x2={self.x2}, y2={self.y2})"


@dataclass
class Detection:
    """A face found in one frame.

    Detections are produced per frame and never persisted.

    Attributes:
        bbox: Bounding box around the face
        embedding: Face embedding, or None if the model could not encode it
    """

    bbox: BBox
    embedding: Optional[np.ndarray] = None

    def __repr__(self) -> str:
        emb = "None" if self.embedding is None else f"dim={self.embedding.shape[0]}"
        return f"Detection(bbox={self.bbox}, embedding={emb})"


@runtime_checkable
class EmbeddingExtractor(Protocol):
    """Protocol for the face embedding model.

    Implementations wrap a detector and an encoder. They must return None
    (never raise) when a frame holds no usable face.
    """

    default_threshold: float

    def detect_faces(self, frame: np.ndarray) -> List[Detection]:
        """Detect every face in a frame.

        Args:
            frame: Image in BGR format, shape [H, W, 3]

        Returns:
            One Detection per face, possibly empty.
        """
        ...

    def extract_embedding(self, frame: np.ndarray) -> Optional[np.ndarray]:
        """Extract the embedding of the single subject in a frame.

        Args:
            frame: Image in BGR format, shape [H, W, 3]

        Returns:
            Embedding of the subject, or None if no usable face was found.
        """
        ...


@runtime_checkable
class CameraDevice(Protocol):
    """Protocol for the imaging device driver consumed by CaptureSession."""

    def open(self) -> None:
        """Acquire the device and start streaming.

        Raises:
            DeviceUnavailable: If no such device exists.
            PermissionDenied: If access to the device is refused.
        """
        ...

    def read(self) -> Tuple[bool, Optional[np.ndarray]]:
        """Block until the next frame.

        Returns:
            Tuple of (success, frame); frame is None when success is False.
        """
        ...

    def release(self) -> None:
        """Release the device."""
        ...


@runtime_checkable
class EmbeddingStore(Protocol):
    """Protocol for durable storage of enrollment records."""

    def append(self, record) -> None:
        ...

    def all_records(self) -> Sequence:
        ...

    def records_for_label(self, label: str) -> Sequence:
        ...
