"""Exception hierarchy for capture, storage, enrollment and verification.

A rejected verification is a normal MatchResult and never one of these.
"""

from __future__ import annotations


class FaceLoginError(Exception):
    """Base class for all face login failures."""


class CaptureError(FaceLoginError):
    """The imaging device could not deliver what was asked of it."""


class DeviceUnavailable(CaptureError):
    """No camera device exists or it could not be opened."""


class PermissionDenied(CaptureError):
    """Access to the camera device was refused."""


class CaptureTimeout(CaptureError):
    """No frame arrived within the allotted time."""


class DeviceBusy(CaptureError):
    """Another capture session already holds the device."""


class CaptureCancelled(CaptureError):
    """The caller cancelled the attempt while it was in progress."""


class StoreError(FaceLoginError):
    """The embedding store could not complete an operation."""


class StoreUnavailable(StoreError):
    """The embedding store could not be read or written."""


class EnrollmentError(FaceLoginError):
    """Enrollment could not register the identity."""


class VerificationError(FaceLoginError):
    """Verification could not produce a match decision."""


class InvalidLabel(EnrollmentError, ValueError):
    """The identity label is empty."""


class NoFaceDetected(EnrollmentError, VerificationError):
    """No usable face was found within the frame retry budget."""


class DimensionMismatch(FaceLoginError, ValueError):
    """Two embeddings of different lengths were compared."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Embedding dimension mismatch: expected {expected}, got {actual}"
        )
