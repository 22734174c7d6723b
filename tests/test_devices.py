"""Unit tests for the OpenCV camera drivers."""

from __future__ import annotations

import sys
import threading

import numpy as np
import pytest

from face_login import devices
from face_login.devices import OpenCVCamera, VideoFileCamera
from face_login.errors import DeviceUnavailable, PermissionDenied


@pytest.mark.skipif(not sys.platform.startswith("linux"), reason="Linux device nodes")
def test_missing_camera_is_unavailable():
    camera = OpenCVCamera(camera_id=987)

    with pytest.raises(DeviceUnavailable):
        camera.open()
    assert camera.cap is None


def test_unreadable_device_node_is_permission_denied(monkeypatch):
    monkeypatch.setattr(devices.sys, "platform", "linux")
    monkeypatch.setattr(devices.Path, "exists", lambda self: True)
    monkeypatch.setattr(devices.os, "access", lambda path, mode: False)

    with pytest.raises(PermissionDenied, match="/dev/video0"):
        OpenCVCamera(camera_id=0).open()


def test_missing_video_file_is_unavailable(tmp_path):
    camera = VideoFileCamera(tmp_path / "missing.mp4")

    with pytest.raises(DeviceUnavailable, match="not found"):
        camera.open()


def test_undecodable_video_file_is_unavailable(tmp_path):
    path = tmp_path / "notes.mp4"
    path.write_text("this is not a video")

    with pytest.raises(DeviceUnavailable):
        VideoFileCamera(path).open()


def test_read_and_release_when_closed(tmp_path):
    camera = VideoFileCamera(tmp_path / "missing.mp4")

    assert camera.read() == (False, None)
    camera.release()
    assert "closed" in repr(camera)
    assert "closed" in repr(OpenCVCamera(0))


class ScriptedCapture:
    """cv2.VideoCapture double whose read can be held open."""

    def __init__(self, blocking: bool = False):
        self.release_calls = 0
        self.in_read = threading.Event()
        self.unblock = threading.Event()
        if not blocking:
            self.unblock.set()

    def isOpened(self) -> bool:
        return self.release_calls == 0

    def read(self):
        self.in_read.set()
        self.unblock.wait(timeout=5.0)
        return True, np.zeros((4, 4, 3), dtype=np.uint8)

    def release(self) -> None:
        self.release_calls += 1


def start_read(camera):
    worker = threading.Thread(target=camera.read)
    worker.start()
    return worker


def test_release_when_idle_is_immediate(tmp_path):
    camera = VideoFileCamera(tmp_path / "login.mp4")
    cap = ScriptedCapture()
    camera.cap = cap

    success, frame = camera.read()
    camera.release()
    camera.release()

    assert success and frame.shape == (4, 4, 3)
    assert cap.release_calls == 1
    assert camera.read() == (False, None)


def test_release_waits_for_in_flight_read(tmp_path):
    camera = VideoFileCamera(tmp_path / "login.mp4")
    cap = ScriptedCapture(blocking=True)
    camera.cap = cap
    worker = start_read(camera)
    assert cap.in_read.wait(timeout=1.0)

    camera.release()

    assert cap.release_calls == 0
    assert "closed" in repr(camera)

    cap.unblock.set()
    worker.join(timeout=1.0)

    assert not worker.is_alive()
    assert cap.release_calls == 1


def test_reopened_device_does_not_release_stuck_handle(tmp_path):
    camera = OpenCVCamera(camera_id=0)
    stuck = ScriptedCapture(blocking=True)
    camera.cap = stuck
    worker = start_read(camera)
    assert stuck.in_read.wait(timeout=1.0)
    camera.release()

    fresh = ScriptedCapture()
    camera.cap = fresh
    success, _ = camera.read()

    assert success
    assert stuck.release_calls == 0

    stuck.unblock.set()
    worker.join(timeout=1.0)
    camera.release()

    assert stuck.release_calls == 1
    assert fresh.release_calls == 1
