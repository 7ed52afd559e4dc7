from __future__ import annotations

import numpy as np
import pytest

import capture
from capture import Camera
from errors import CaptureError


class FakeVideoCapture:
    instances: list["FakeVideoCapture"] = []

    def __init__(self, index: int, *, opened: bool = True, frames: bool = True) -> None:
        self.index = index
        self.opened = opened
        self.frames = frames
        self.released = False
        FakeVideoCapture.instances.append(self)

    def isOpened(self) -> bool:
        return self.opened

    def read(self):
        if not self.frames:
            return False, None
        frame = np.zeros((480, 640, 3), dtype=np.uint8)
        frame[..., 0] = 255  # blue in BGR
        return True, frame

    def release(self) -> None:
        self.released = True


@pytest.fixture(autouse=True)
def _reset_instances():
    FakeVideoCapture.instances.clear()


def test_capture_frame_is_224_rgb(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(capture.cv2, "VideoCapture", FakeVideoCapture)

    with Camera(index=2) as cam:
        full = cam.read()
        frame = cam.capture_frame()

    assert full.size == (640, 480)
    assert frame.size == (224, 224)
    assert frame.mode == "RGB"
    assert frame.getpixel((10, 10)) == (0, 0, 255)
    assert FakeVideoCapture.instances[0].index == 2
    assert FakeVideoCapture.instances[0].released


def test_open_failure_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        capture.cv2, "VideoCapture", lambda index: FakeVideoCapture(index, opened=False)
    )
    cam = Camera()

    with pytest.raises(CaptureError):
        cam.open()

    assert not cam.is_open
    assert FakeVideoCapture.instances[0].released


def test_read_without_stream_raises() -> None:
    with pytest.raises(CaptureError):
        Camera().capture_frame()


def test_empty_read_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(
        capture.cv2, "VideoCapture", lambda index: FakeVideoCapture(index, frames=False)
    )
    cam = Camera()
    cam.open()

    with pytest.raises(CaptureError):
        cam.read()
    cam.close()
    assert not cam.is_open
