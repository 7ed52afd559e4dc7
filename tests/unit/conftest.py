from __future__ import annotations

import os
import threading
import time
from typing import Any

import numpy as np
import pytest
from PIL import Image

from config import Config
from errors import CaptureError, ExtractorLoadError

EMBED_DIM = 16


class EventCollector:
    """Thread-safe helper for waiting on events from the live predictor."""

    def __init__(self) -> None:
        self.events: list[Any] = []
        self._condition = threading.Condition()

    def add(self, event: Any) -> None:
        with self._condition:
            self.events.append(event)
            self._condition.notify_all()

    def wait_for(self, count: int, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        with self._condition:
            while len(self.events) < count:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return False
                self._condition.wait(timeout=remaining)
            return True

    def snapshot(self) -> list[Any]:
        with self._condition:
            return list(self.events)


class FakeCamera:
    """Hands out solid-colour frames, a different colour on every read."""

    def __init__(self, fail_open: bool = False) -> None:
        self.fail_open = fail_open
        self.is_open = False
        self.reads = 0
        self._lock = threading.Lock()

    def open(self) -> None:
        if self.fail_open:
            raise CaptureError("no camera")
        self.is_open = True

    def read(self) -> Image.Image:
        with self._lock:
            if not self.is_open:
                raise CaptureError("No active video stream")
            self.reads += 1
            n = self.reads
        colour = ((n * 37) % 256, (n * 91) % 256, (n * 53) % 256)
        return Image.new("RGB", (320, 240), colour)

    def capture_frame(self) -> Image.Image:
        return self.read().resize((224, 224))

    def close(self) -> None:
        self.is_open = False


class FakeExtractor:
    """Deterministic projection of the mean pixel colour into EMBED_DIM floats."""

    def __init__(self, fail_load: bool = False) -> None:
        self.fail_load = fail_load
        self.delay = 0.0
        self.embed_error: Exception | None = None
        self.loaded = False
        self.load_calls = 0
        rng = np.random.default_rng(0)
        self._projection = rng.normal(size=(3, EMBED_DIM)).astype(np.float32)

    def load(self):
        self.load_calls += 1
        if self.fail_load:
            raise ExtractorLoadError("weights download failed")
        self.loaded = True
        return self

    def embed(self, image: Image.Image) -> np.ndarray:
        if self.embed_error is not None:
            raise self.embed_error
        if self.delay:
            time.sleep(self.delay)
        mean = np.asarray(image, dtype=np.float32).reshape(-1, 3).mean(axis=0) / 255.0
        return np.tanh(mean @ self._projection).astype(np.float32)


@pytest.fixture
def config(monkeypatch: pytest.MonkeyPatch) -> Config:
    for key in list(os.environ):
        if key.startswith("SNAPCLASS_"):
            monkeypatch.delenv(key)
    return Config(device="cpu", seed=0)


@pytest.fixture
def camera() -> FakeCamera:
    return FakeCamera()


@pytest.fixture
def extractor() -> FakeExtractor:
    return FakeExtractor()


def _random_vectors(count: int, *, offset: float = 0.0, seed: int = 0) -> list[np.ndarray]:
    rng = np.random.default_rng(seed)
    return [
        (rng.normal(size=EMBED_DIM) + offset).astype(np.float32) for _ in range(count)
    ]


@pytest.fixture
def make_vectors():
    return _random_vectors


@pytest.fixture
def collector() -> EventCollector:
    return EventCollector()


@pytest.fixture
def failing_camera() -> FakeCamera:
    return FakeCamera(fail_open=True)


@pytest.fixture
def failing_extractor() -> FakeExtractor:
    return FakeExtractor(fail_load=True)
