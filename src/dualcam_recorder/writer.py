"""
Scoped OpenCV video writer.
"""

import logging
from pathlib import Path
from typing import Tuple, Type

import cv2
import numpy as np

from .errors import CaptureError, RecordingError, SetupError

logger = logging.getLogger(__name__)


def fourcc(codec: str) -> int:
    """Four-character codec code for cv2.VideoWriter."""
    return cv2.VideoWriter_fourcc(*codec)


class VideoWriterGuard:
    """
    Owns a cv2.VideoWriter for the duration of a ``with`` block.

    The writer is released when the block exits, whichever way it exits,
    so the file is flushed before anything reopens it for reading.
    ``release()`` may also be called early; later calls do nothing.
    """

    def __init__(self, path: Path, codec: str, fps: float, size: Tuple[int, int],
                 error_type: Type[RecordingError] = CaptureError):
        self.path = Path(path)
        self.codec = codec
        self.fps = fps
        self.size = size
        self.error_type = error_type
        self.frames_written = 0
        self._writer = None

    def open(self) -> 'VideoWriterGuard':
        operation = "open video writer"
        try:
            writer = cv2.VideoWriter(str(self.path), fourcc(self.codec), self.fps,
                                     self.size, True)
        except cv2.error as e:
            raise SetupError(f"Failed to create video writer: {e}", operation, self.path) from e

        if not writer.isOpened():
            writer.release()
            raise SetupError(f"Could not open video writer ({self.codec}, "
                             f"{self.size[0]}x{self.size[1]} @ {self.fps:.2f} fps)",
                             operation, self.path)

        self._writer = writer
        logger.debug(f"Video writer opened: {self.path}")
        return self

    @property
    def is_open(self) -> bool:
        return self._writer is not None

    def write(self, frame: np.ndarray) -> None:
        """Append one frame; any backend failure is fatal."""
        if self._writer is None:
            raise self.error_type("Video writer is not open", "write frame", self.path)
        try:
            self._writer.write(frame)
        except cv2.error as e:
            raise self.error_type(f"Failed to write frame: {e}", "write frame", self.path) from e
        self.frames_written += 1

    def release(self) -> None:
        if self._writer is None:
            logger.debug(f"Video writer for {self.path} already released")
            return

        writer, self._writer = self._writer, None
        try:
            writer.release()
            logger.info(f"Video writer released: {self.path.name} ({self.frames_written} frames)")
        except cv2.error as e:
            logger.error(f"Error releasing video writer for {self.path}: {e}")

    def __enter__(self) -> 'VideoWriterGuard':
        if self._writer is None:
            self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
