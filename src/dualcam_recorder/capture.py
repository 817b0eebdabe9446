"""
Capture-and-compose loop: one frame from each camera per iteration,
joined side by side and appended to the output writer.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Tuple

import cv2
import numpy as np

from .camera import frame_size, read_frame
from .config import CaptureConfig
from .errors import CaptureError
from .writer import VideoWriterGuard

logger = logging.getLogger(__name__)


@dataclass
class CaptureStats:
    """Counters for one run of the capture loop."""
    frames_captured: int = 0
    frames_written: int = 0
    dropped_frames: int = 0
    resized_frames: int = 0
    elapsed: float = 0.0
    stopped: bool = False

    @property
    def average_fps(self) -> float:
        if self.elapsed <= 0:
            return 0.0
        return self.frames_written / self.elapsed


def _to_target(frame: np.ndarray, width: int, height: int) -> np.ndarray:
    if frame.ndim == 2:
        frame = cv2.cvtColor(frame, cv2.COLOR_GRAY2BGR)
    if frame_size(frame) != (width, height):
        frame = cv2.resize(frame, (width, height), interpolation=cv2.INTER_LINEAR)
    return frame


def normalize_frames(primary: np.ndarray, secondary: np.ndarray,
                     width: int, height: int) -> Tuple[np.ndarray, np.ndarray, bool]:
    """
    Bring both frames to the configured size.

    Returns the frames to compose and whether any resizing happened.
    Cameras configured to the target size pass through untouched.
    """
    target = (width, height)
    if frame_size(primary) == target and frame_size(secondary) == target \
            and primary.ndim == 3 and secondary.ndim == 3:
        return primary, secondary, False

    p_w, p_h = frame_size(primary)
    s_w, s_h = frame_size(secondary)
    logger.warning(f"Captured frame dimensions differ (primary: {p_w}x{p_h}, "
                   f"secondary: {s_w}x{s_h}). Resizing to {width}x{height}.")

    return _to_target(primary, width, height), _to_target(secondary, width, height), True


def compose_side_by_side(primary: np.ndarray, secondary: np.ndarray) -> np.ndarray:
    """Secondary camera on the left, primary on the right."""
    return cv2.hconcat([secondary, primary])


def run_capture_loop(primary: cv2.VideoCapture, secondary: cv2.VideoCapture,
                     writer: VideoWriterGuard, capture: CaptureConfig,
                     stop_event: threading.Event,
                     names: Tuple[str, str] = ("primary", "secondary")) -> CaptureStats:
    """
    Capture, compose and write frames until ``stop_event`` is set.

    Dropped or empty frames are retried after ``capture.retry_delay``
    without counting a frame. The stop event is checked right before
    and right after each write, so at most one frame is written after
    a stop request. The loop sleeps out the rest of the frame interval
    but never tries to catch up after an overrun.

    Raises:
        CaptureError: a frame could not be written, a camera raised,
            or ``capture.max_consecutive_failures`` drops happened in a row
    """
    stats = CaptureStats()
    interval = capture.frame_interval
    consecutive_failures = 0
    primary_name, secondary_name = names

    start_time = time.monotonic()
    try:
        while not stop_event.is_set():
            loop_start = time.monotonic()

            primary_frame = read_frame(primary, primary_name)
            secondary_frame = read_frame(secondary, secondary_name)

            if primary_frame is None or secondary_frame is None:
                stats.dropped_frames += 1
                consecutive_failures += 1
                logger.warning("Frame drop detected or camera read failed "
                               f"({primary_name}: {'ok' if primary_frame is not None else 'failed'}, "
                               f"{secondary_name}: {'ok' if secondary_frame is not None else 'failed'}). "
                               "Retrying.")

                if stop_event.is_set():
                    break
                limit = capture.max_consecutive_failures
                if limit is not None and consecutive_failures >= limit:
                    raise CaptureError(f"{consecutive_failures} consecutive frame reads failed",
                                       "capture frames")
                time.sleep(capture.retry_delay)
                continue

            consecutive_failures = 0
            primary_frame, secondary_frame, resized = normalize_frames(
                primary_frame, secondary_frame, capture.width, capture.height)
            if resized:
                stats.resized_frames += 1

            stats.frames_captured += 1
            composite = compose_side_by_side(primary_frame, secondary_frame)

            if stop_event.is_set():
                break

            writer.write(composite)
            stats.frames_written += 1

            if stop_event.is_set():
                break

            remaining = interval - (time.monotonic() - loop_start)
            if remaining > 0:
                time.sleep(remaining)
    finally:
        stats.elapsed = time.monotonic() - start_time
        stats.stopped = stop_event.is_set()

    return stats
