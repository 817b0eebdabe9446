"""
Rewrite a finished capture so its container frame rate matches the
rate that was actually achieved while recording.

The capture loop opens its writer at the requested rate, but the true
rate is only known once recording stops. Re-encoding copies every frame,
in order, into a new container stamped with the observed rate.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

import cv2

from .errors import ReencodeError, SetupError
from .writer import VideoWriterGuard

logger = logging.getLogger(__name__)


@dataclass
class ReencodeStats:
    """Result of a re-encode pass."""
    frames_written: int = 0
    frames_skipped: int = 0


def compute_observed_fps(frames_written: int, elapsed_seconds: float,
                         fallback_fps: float) -> float:
    """
    Frames per second actually achieved.

    Falls back to the requested rate when nothing was written or no
    time elapsed.
    """
    if frames_written > 0 and elapsed_seconds > 0:
        return frames_written / elapsed_seconds
    return fallback_fps


def reencode_video(input_path: Path, output_path: Path, fps: float,
                   codec: str) -> ReencodeStats:
    """
    Copy every frame of ``input_path`` into ``output_path`` at ``fps``.

    Empty frames found mid-stream are skipped with a warning. A partially
    written output is removed on failure; the input is never touched.

    Raises:
        ReencodeError: the input cannot be read or the output cannot be written
    """
    input_path = Path(input_path)
    output_path = Path(output_path)

    try:
        cap = cv2.VideoCapture(str(input_path))
    except cv2.error as e:
        raise ReencodeError(f"Failed to open temporary video: {e}",
                            "open temporary video", input_path) from e

    try:
        if not cap.isOpened():
            raise ReencodeError("Could not open temporary video file",
                                "open temporary video", input_path)

        width = int(cap.get(cv2.CAP_PROP_FRAME_WIDTH))
        height = int(cap.get(cv2.CAP_PROP_FRAME_HEIGHT))
        if width <= 0 or height <= 0:
            raise ReencodeError(f"Temporary video reports invalid size {width}x{height}",
                                "probe temporary video", input_path)

        logger.info(f"Re-encoding {input_path.name} -> {output_path.name} "
                    f"({width}x{height} @ {fps:.2f} fps)")

        return _copy_frames(cap, input_path, output_path, fps, codec, (width, height))
    finally:
        cap.release()


def _copy_frames(cap: cv2.VideoCapture, input_path: Path, output_path: Path,
                 fps: float, codec: str, size) -> ReencodeStats:
    stats = ReencodeStats()
    writer = VideoWriterGuard(output_path, codec, fps, size, error_type=ReencodeError)

    try:
        writer.open()
    except SetupError as e:
        raise ReencodeError(e.args[0], "open final video writer", output_path) from e

    completed = False
    try:
        with writer:
            while True:
                try:
                    ok, frame = cap.read()
                except cv2.error as e:
                    raise ReencodeError(f"Error reading frame {stats.frames_written + 1}: {e}",
                                        "read temporary video", input_path) from e

                if not ok:
                    logger.debug("End of video stream reached during re-encoding")
                    break

                if frame is None or frame.size == 0:
                    stats.frames_skipped += 1
                    logger.warning("Read empty frame during re-encoding, skipping")
                    continue

                writer.write(frame)
                stats.frames_written += 1
        completed = True
    finally:
        if not completed and output_path.exists():
            try:
                output_path.unlink()
                logger.info(f"Removed incomplete output {output_path}")
            except OSError as e:
                logger.error(f"Could not remove incomplete output {output_path}: {e}")

    logger.info(f"Re-encoding finished: {stats.frames_written} frames written, "
                f"{stats.frames_skipped} skipped")
    return stats
