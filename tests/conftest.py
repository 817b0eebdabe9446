"""Shared fixtures: OpenCV camera and video-file doubles.

Cameras and video files are simulated in memory so the pipeline can be
exercised without hardware or codecs. ``cv2.VideoCapture`` and
``cv2.VideoWriter`` are monkeypatched on the real cv2 module; frame
operations (resize, hconcat) still run through OpenCV.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

import cv2
import numpy as np
import pytest

from dualcam_recorder.config import CaptureConfig, RecordingConfig, SystemConfig


WIDTH = 64
HEIGHT = 48


def make_frame(value: int, width: int = WIDTH, height: int = HEIGHT) -> np.ndarray:
    """Solid frame whose pixel value identifies it."""
    return np.full((height, width, 3), value % 256, dtype=np.uint8)


EMPTY_FRAME = np.empty((0, 0, 3), dtype=np.uint8)


class FakeClock:
    """Stands in for the ``time`` module: sleeping advances the clock."""

    def __init__(self):
        self.now = 1000.0
        self.sleeps: List[float] = []

    def monotonic(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


class FakeCamera:
    """A camera device: ``read()`` delegates to a per-read frame source."""

    def __init__(self, index: int, source: Optional[Callable[[int], Optional[np.ndarray]]] = None):
        self.index = index
        self.source = source or (lambda n: make_frame(n))
        self.opened = True
        self.reads = 0
        self.released = False
        self.props: Dict[int, float] = {}
        self.accept_props = True
        self.on_read: Optional[Callable[[int], None]] = None

    def isOpened(self) -> bool:
        return self.opened

    def set(self, prop_id, value) -> bool:
        self.props[prop_id] = value
        return self.accept_props

    def get(self, prop_id) -> float:
        return self.props.get(prop_id, 0.0)

    def read(self):
        self.reads += 1
        if self.on_read:
            self.on_read(self.reads)
        frame = self.source(self.reads)
        if frame is None:
            return False, None
        return True, frame

    def release(self):
        self.released = True

    def getBackendName(self) -> str:
        return "FAKE"


@dataclass
class FakeVideoFile:
    path: str
    fourcc: int
    fps: float
    size: tuple
    frames: List[np.ndarray] = field(default_factory=list)
    released: bool = False


class FakeVideoWriter:
    def __init__(self, store: 'FakeMedia', path, fourcc, fps, size, is_color=True):
        self.store = store
        self.path = str(path)
        self.opened = self.path not in store.fail_open_writer
        self.file = None
        if self.opened:
            self.file = FakeVideoFile(self.path, fourcc, fps, tuple(size))
            store.files[self.path] = self.file
            Path(self.path).touch()
        self.release_calls = 0

    def isOpened(self) -> bool:
        return self.opened

    def write(self, frame):
        if self.file is None or self.file.released:
            raise cv2.error("write to closed writer")
        if self.store.on_write:
            self.store.on_write(self, frame)
        self.file.frames.append(frame.copy())

    def release(self):
        self.release_calls += 1
        if self.file is not None:
            self.file.released = True


class FakeFileReader:
    """Sequential reader over a FakeVideoFile."""

    def __init__(self, store: 'FakeMedia', path: str):
        self.store = store
        self.path = path
        video = store.files.get(path)
        # A file whose writer is still open cannot be read back.
        self.video = video if video is not None and video.released else None
        self.position = 0
        self.released = False

    def isOpened(self) -> bool:
        return self.video is not None

    def get(self, prop_id) -> float:
        if self.video is None:
            return 0.0
        if prop_id == cv2.CAP_PROP_FRAME_WIDTH:
            return float(self.video.size[0])
        if prop_id == cv2.CAP_PROP_FRAME_HEIGHT:
            return float(self.video.size[1])
        if prop_id == cv2.CAP_PROP_FPS:
            return float(self.video.fps)
        return 0.0

    def read(self):
        if self.store.read_error_at is not None and self.position == self.store.read_error_at:
            raise cv2.error("corrupt stream")
        if self.position >= len(self.video.frames):
            return False, None
        if self.store.end_of_stream_at is not None and self.position >= self.store.end_of_stream_at:
            return False, None
        frame = self.video.frames[self.position]
        self.position += 1
        return True, frame

    def release(self):
        self.released = True


class FakeMedia:
    """Registry of fake cameras and files behind the patched cv2 entry points."""

    def __init__(self):
        self.cameras: Dict[int, FakeCamera] = {}
        self.files: Dict[str, FakeVideoFile] = {}
        self.writers: List[FakeVideoWriter] = []
        self.readers: List[FakeFileReader] = []
        self.fail_open_writer: set = set()
        self.read_error_at: Optional[int] = None
        self.end_of_stream_at: Optional[int] = None
        self.on_write: Optional[Callable] = None

    def add_camera(self, index: int, source=None) -> FakeCamera:
        camera = FakeCamera(index, source)
        self.cameras[index] = camera
        return camera

    def video_capture(self, source, api_preference=None):
        if isinstance(source, int):
            camera = self.cameras.get(source)
            if camera is None:
                camera = FakeCamera(source)
                camera.opened = False
            return camera
        reader = FakeFileReader(self, str(source))
        self.readers.append(reader)
        return reader

    def video_writer(self, path, fourcc, fps, size, is_color=True):
        writer = FakeVideoWriter(self, path, fourcc, fps, size, is_color)
        self.writers.append(writer)
        return writer

    def add_file(self, path: Path, frames, fps: float = 24.0) -> FakeVideoFile:
        height, width = frames[0].shape[:2]
        video = FakeVideoFile(str(path), 0, fps, (width, height), list(frames), released=True)
        self.files[str(path)] = video
        Path(path).touch()
        return video


@pytest.fixture
def fake_media(monkeypatch) -> FakeMedia:
    media = FakeMedia()
    monkeypatch.setattr(cv2, "VideoCapture", media.video_capture)
    monkeypatch.setattr(cv2, "VideoWriter", media.video_writer)
    return media


@pytest.fixture
def fake_clock(monkeypatch) -> FakeClock:
    clock = FakeClock()
    monkeypatch.setattr("dualcam_recorder.capture.time", clock)
    monkeypatch.setattr("dualcam_recorder.recorder.time", clock)
    return clock


@pytest.fixture
def capture_config() -> CaptureConfig:
    return CaptureConfig(width=WIDTH, height=HEIGHT, framerate=24.0,
                         warmup_seconds=0.0, retry_delay=0.05)


@pytest.fixture
def system_config(tmp_path, capture_config) -> SystemConfig:
    config = SystemConfig()
    config.capture = capture_config
    config.recording = RecordingConfig(base_directory=str(tmp_path / "recordings"))
    return config


@pytest.fixture
def stop_event() -> threading.Event:
    return threading.Event()
