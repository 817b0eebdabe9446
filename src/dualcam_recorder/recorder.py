"""
Dual camera recording session and its background runner.
"""

import logging
import time
from datetime import datetime
from pathlib import Path
from threading import Event, Lock, Thread
from typing import Dict, Optional

from .camera import open_camera, release_camera
from .capture import CaptureStats, run_capture_loop
from .config import SystemConfig
from .errors import EmptyRecordingError, RecordingError, ReencodeError
from .reencoder import compute_observed_fps, reencode_video
from .storage import StorageManager
from .writer import VideoWriterGuard

logger = logging.getLogger(__name__)


class DualCameraRecorder:
    """Records both cameras side by side into one rate-corrected file."""

    def __init__(self, config: SystemConfig, storage: Optional[StorageManager] = None):
        self.config = config
        self.storage = storage or StorageManager(config.recording,
                                                 config.capture.container_format)

    def record(self, stop_event: Event) -> Path:
        """
        Run one recording session until ``stop_event`` is set.

        Blocks for the whole session, so call it from a worker thread.
        The event is only read, never cleared.

        Returns:
            Path of the finalized video

        Raises:
            SetupError: directory, camera or writer could not be prepared
            CaptureError: writing a frame failed; the temporary file is kept
            EmptyRecordingError: stopped before any frame was written
            ReencodeError: finalization failed; the temporary file is kept
        """
        capture = self.config.capture
        primary_cfg = self.config.primary
        secondary_cfg = self.config.secondary

        self.storage.ensure_directory()
        paths = self.storage.session_paths()

        logger.info("Attempting to open cameras for recording...")
        primary = secondary = None
        try:
            primary = open_camera(primary_cfg, capture)
            secondary = open_camera(secondary_cfg, capture)
            logger.info("Cameras opened successfully")

            if capture.warmup_seconds > 0:
                time.sleep(capture.warmup_seconds)

            with VideoWriterGuard(paths.temp, capture.codec, capture.framerate,
                                  capture.composite_size) as writer:
                logger.info(f"Recording started: {paths.temp.name}. Waiting for stop signal")
                stats = run_capture_loop(primary, secondary, writer, capture, stop_event,
                                         names=(primary_cfg.name, secondary_cfg.name))
        finally:
            release_camera(primary, primary_cfg.name)
            release_camera(secondary, secondary_cfg.name)

        if stats.stopped:
            logger.info("Recording loop exited due to stop request")
        return self._finalize(paths.temp, paths.final, stats)

    def _finalize(self, temp_path: Path, final_path: Path, stats: CaptureStats) -> Path:
        """Re-encode the temporary capture at the observed rate."""
        capture = self.config.capture
        observed_fps = compute_observed_fps(stats.frames_written, stats.elapsed,
                                            capture.framerate)
        logger.info(f"Recorded {stats.frames_written} frames in {stats.elapsed:.1f}s. "
                    f"Actual avg FPS: {observed_fps:.2f} "
                    f"(dropped reads: {stats.dropped_frames})")

        if stats.frames_written == 0:
            logger.info("No frames were recorded. Cleaning up temporary file.")
            self.storage.remove_temp(temp_path)
            raise EmptyRecordingError(
                "No frames recorded, possibly stopped too early or encountered immediate issue",
                "finalize recording", temp_path)

        result = reencode_video(temp_path, final_path, observed_fps, capture.codec)

        frames_read = result.frames_written + result.frames_skipped
        if frames_read != stats.frames_written:
            self._discard_final(final_path)
            raise ReencodeError(f"re-encode read {frames_read} of {stats.frames_written} frames",
                                "verify final video", final_path)

        if not self.storage.remove_temp(temp_path):
            logger.warning(f"Temporary file {temp_path} left in place")

        logger.info(f"Recording complete. Final video saved to: {final_path} "
                    f"({observed_fps:.2f} FPS)")
        return final_path

    def _discard_final(self, final_path: Path) -> None:
        try:
            final_path.unlink()
            logger.info(f"Removed incomplete output {final_path}")
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error(f"Could not remove incomplete output {final_path}: {e}")


class RecordingController:
    """
    Runs recording sessions on a dedicated worker thread.

    Allows one session at a time and owns the stop event handed to it.
    """

    def __init__(self, recorder: DualCameraRecorder):
        self.recorder = recorder
        self._lock = Lock()
        self._stop_event: Optional[Event] = None
        self._thread: Optional[Thread] = None
        self.started_at: Optional[datetime] = None
        self.last_result: Optional[Path] = None
        self.last_error: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event is not None and self._stop_event.is_set()

    def start(self) -> bool:
        """Start a session in the background; False if one is already running."""
        with self._lock:
            if self.is_active:
                logger.warning("Recording is already in progress")
                return False

            self._stop_event = Event()
            self.started_at = datetime.now()
            self._thread = Thread(target=self._run, args=(self._stop_event,),
                                  daemon=True, name="Recorder")
            self._thread.start()

        logger.info("Recording started in the background")
        return True

    def stop(self) -> bool:
        """Ask the running session to finish; False if nothing is running."""
        with self._lock:
            if not self.is_active:
                logger.warning("Recording is not currently active")
                return False
            self._stop_event.set()

        logger.info("Stop request signal sent")
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Wait for the current session to finish; True once it has."""
        thread = self._thread
        if thread is None:
            return True
        thread.join(timeout=timeout)
        return not thread.is_alive()

    def _run(self, stop_event: Event) -> None:
        try:
            final_path = self.recorder.record(stop_event)
        except RecordingError as e:
            logger.error(f"Background recording task failed: {e}")
            self.last_result = None
            self.last_error = str(e)
        except Exception as e:
            logger.error(f"Background recording task crashed: {e}", exc_info=True)
            self.last_result = None
            self.last_error = str(e)
        else:
            logger.info(f"Background recording task finished. Video saved to: {final_path}")
            self.last_result = final_path
            self.last_error = None

    def get_status(self) -> Dict:
        return {
            'recording': self.is_active,
            'stop_requested': self.stop_requested,
            'started_at': self.started_at.isoformat() if self.started_at else None,
            'last_result': str(self.last_result) if self.last_result else None,
            'last_error': self.last_error,
        }
