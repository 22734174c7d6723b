"""Unit tests for the verification controller, including enroll/verify flows."""

from __future__ import annotations

import math
import threading
import time
from unittest.mock import Mock

import numpy as np
import pytest

from conftest import FakeCamera, FakeExtractor, SessionFactory
from face_login.controller import ControllerState
from face_login.enrollment import EnrollmentController
from face_login.errors import (
    CaptureCancelled,
    DimensionMismatch,
    NoFaceDetected,
    StoreUnavailable,
    VerificationError,
)
from face_login.matcher import Decision
from face_login.store import EnrollmentRecord, JsonlEmbeddingStore, MemoryEmbeddingStore
from face_login.verification import VerificationController


def make_controller(session_factory, extractor, store, threshold=0.6, max_attempts=3):
    return VerificationController(
        session_factory=session_factory,
        extractor=extractor,
        store=store,
        threshold=threshold,
        max_attempts=max_attempts,
        frame_timeout=1.0,
    )


def enroll(session_factory, store, label, embedding):
    EnrollmentController(
        session_factory=session_factory,
        extractor=FakeExtractor(embedding),
        store=store,
    ).enroll(label)


def test_enroll_then_verify_same_embedding_accepts(session_factory, camera, store, e1):
    enroll(session_factory, store, "alice", e1)
    controller = make_controller(session_factory, FakeExtractor(e1), store)

    result = controller.verify()

    assert result.decision is Decision.ACCEPT
    assert result.matched_label == "alice"
    assert result.distance == 0.0
    assert camera.release_calls == 2
    assert controller.state is ControllerState.IDLE


def test_verify_distant_embedding_rejects(session_factory, store, e1, e2):
    enroll(session_factory, store, "alice", e1)
    controller = make_controller(session_factory, FakeExtractor(e2), store, threshold=0.6)

    result = controller.verify()

    assert result.decision is Decision.REJECT
    assert result.matched_label is None
    assert result.distance == pytest.approx(0.9)


def test_verify_without_enrollments_rejects(session_factory, store, e1):
    controller = make_controller(session_factory, FakeExtractor(e1), store)

    result = controller.verify()

    assert result.decision is Decision.REJECT
    assert result.matched_label is None
    assert math.isinf(result.distance)


def test_verify_no_face_is_an_error_not_a_reject(session_factory, camera, store, e1):
    """Test that a missing face is an operational failure, distinct from REJECT."""
    enroll(session_factory, store, "alice", e1)
    extractor = FakeExtractor()
    controller = make_controller(session_factory, extractor, store, max_attempts=3)

    with pytest.raises(NoFaceDetected) as exc_info:
        controller.verify()

    assert isinstance(exc_info.value, VerificationError)
    assert extractor.calls == 3
    assert camera.release_calls == 2
    assert controller.state is ControllerState.FAILED


def test_verify_threshold_override_per_call(session_factory, store, e1, e2):
    enroll(session_factory, store, "alice", e1)
    controller = make_controller(session_factory, FakeExtractor(e2, e2), store, threshold=0.6)

    assert controller.verify(threshold=1.0).decision is Decision.ACCEPT
    # The override does not stick
    assert controller.verify().decision is Decision.REJECT
    assert controller.threshold == 0.6


def test_verify_default_threshold_from_extractor(session_factory, store):
    controller = VerificationController(
        session_factory=session_factory,
        extractor=FakeExtractor(),
        store=store,
    )

    assert controller.threshold == FakeExtractor.default_threshold


def test_verify_multi_sample_identity(session_factory, store, e1, e2):
    enroll(session_factory, store, "bob", e1)
    enroll(session_factory, store, "alice", e1 + 2.0)
    enroll(session_factory, store, "alice", e2)
    live = e2.copy()
    live[1] = 0.1

    result = make_controller(session_factory, FakeExtractor(live), store).verify()

    assert result.matched_label == "alice"
    assert result.distance == pytest.approx(0.1)


def test_verify_tie_resolves_to_first_enrolled(session_factory, store):
    live = np.zeros(4)
    first = np.array([0.3, 0.0, 0.0, 0.0])
    second = np.array([0.0, 0.3, 0.0, 0.0])
    enroll(session_factory, store, "first", first)
    enroll(session_factory, store, "second", second)

    result = make_controller(session_factory, FakeExtractor(live), store).verify()

    assert result.matched_label == "first"


def test_verify_records_last_embedding(session_factory, store, e1):
    controller = make_controller(session_factory, FakeExtractor(e1), store)

    controller.verify()

    assert np.array_equal(controller.last_embedding, e1)


def test_verify_dimension_mismatch_releases_camera(session_factory, camera, store, e1):
    store.append(EnrollmentRecord("alice", np.zeros(64)))
    controller = make_controller(session_factory, FakeExtractor(e1), store)

    with pytest.raises(DimensionMismatch):
        controller.verify()

    assert camera.release_calls == 1


def test_verify_store_failure_propagates(session_factory, camera, e1):
    store = Mock()
    store.all_records.side_effect = StoreUnavailable("corrupt")
    controller = make_controller(session_factory, FakeExtractor(e1), store)

    with pytest.raises(StoreUnavailable):
        controller.verify()

    assert camera.release_calls == 1


def test_verify_cancelled_during_frame_wait(e1):
    camera = FakeCamera(block=True)
    store = Mock(wraps=MemoryEmbeddingStore())
    extractor = FakeExtractor(e1)
    controller = VerificationController(
        session_factory=SessionFactory(camera),
        extractor=extractor,
        store=store,
        threshold=0.6,
        frame_timeout=10.0,
    )
    cancel = threading.Event()
    outcome = {}

    def run():
        try:
            outcome["result"] = controller.verify(cancel_event=cancel)
        except Exception as e:
            outcome["error"] = e

    worker = threading.Thread(target=run)
    worker.start()
    time.sleep(0.1)

    start = time.monotonic()
    cancel.set()
    worker.join(timeout=2.0)

    assert not worker.is_alive()
    assert time.monotonic() - start < 1.0
    assert "result" not in outcome
    assert isinstance(outcome["error"], CaptureCancelled)
    assert camera.release_calls == 1
    assert extractor.calls == 0
    store.all_records.assert_not_called()
    assert controller.state is ControllerState.CANCELLED


def test_cancelled_after_extraction_skips_store(session_factory, e1):
    """Test that cancellation seen after extraction prevents any store access."""
    cancel = threading.Event()
    store = Mock(wraps=MemoryEmbeddingStore())

    class CancellingExtractor(FakeExtractor):
        def extract_embedding(self, frame):
            cancel.set()
            return super().extract_embedding(frame)

    controller = make_controller(session_factory, CancellingExtractor(e1), store)

    with pytest.raises(CaptureCancelled):
        controller.verify(cancel_event=cancel)

    store.all_records.assert_not_called()


def test_end_to_end_with_jsonl_store(tmp_path, session_factory, random_embedding):
    path = tmp_path / "enrollments.jsonl"
    embedding = random_embedding()
    enroll(session_factory, JsonlEmbeddingStore(path), "alice", embedding)

    # A fresh store instance reads the persisted vector exactly
    controller = make_controller(
        session_factory, FakeExtractor(embedding), JsonlEmbeddingStore(path)
    )
    result = controller.verify()

    assert result.decision is Decision.ACCEPT
    assert result.matched_label == "alice"
    assert result.distance == 0.0


def test_repr(session_factory, store):
    controller = make_controller(session_factory, FakeExtractor(), store)
    assert "VerificationController" in repr(controller)
    assert "threshold=0.6" in repr(controller)
