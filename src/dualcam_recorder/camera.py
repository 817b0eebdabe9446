"""
Camera opening, reading and detection utilities.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Tuple

import cv2
import numpy as np

from .config import CameraConfig, CaptureConfig
from .errors import CaptureError, SetupError

logger = logging.getLogger(__name__)


@dataclass
class CameraDevice:
    """Represents a detected camera device."""
    index: int
    width: int
    height: int
    framerate: float
    backend: str

    @property
    def resolution(self) -> str:
        return f"{self.width}x{self.height}"


def open_camera(camera: CameraConfig, capture: CaptureConfig) -> cv2.VideoCapture:
    """
    Open a camera by index and apply frame size and rate.

    Raises:
        SetupError: the device cannot be opened or configured
    """
    operation = f"open {camera.name} (index {camera.index})"

    try:
        cap = cv2.VideoCapture(camera.index, cv2.CAP_ANY)
    except cv2.error as e:
        raise SetupError(f"Failed to open camera: {e}", operation) from e

    if not cap.isOpened():
        cap.release()
        raise SetupError("Could not open camera", operation)

    try:
        _configure_camera(cap, camera, capture)
    except SetupError:
        cap.release()
        raise

    logger.info(f"{camera.name}: opened camera {camera.index} "
                f"at {capture.width}x{capture.height} @ {capture.framerate} fps")
    return cap


def _configure_camera(cap: cv2.VideoCapture, camera: CameraConfig,
                      capture: CaptureConfig) -> None:
    """Apply width, height and rate before the first read."""
    properties = [
        (cv2.CAP_PROP_FRAME_WIDTH, 'width', float(capture.width)),
        (cv2.CAP_PROP_FRAME_HEIGHT, 'height', float(capture.height)),
        (cv2.CAP_PROP_FPS, 'framerate', float(capture.framerate)),
    ]

    for prop_id, prop_name, value in properties:
        try:
            accepted = cap.set(prop_id, value)
        except cv2.error as e:
            raise SetupError(f"Failed to set {prop_name}={value}: {e}",
                             f"configure {camera.name}") from e

        if not accepted:
            if capture.strict_camera_properties:
                raise SetupError(f"Camera rejected {prop_name}={value}",
                                 f"configure {camera.name}")
            logger.warning(f"{camera.name}: camera did not accept {prop_name}={value}, "
                           f"frames will be resized if needed")


def read_frame(cap: cv2.VideoCapture, name: str) -> Optional[np.ndarray]:
    """
    Read one frame from a camera.

    Returns None for a dropped or empty frame. A backend exception is
    not a dropped frame and is raised as CaptureError.
    """
    try:
        ok, frame = cap.read()
    except cv2.error as e:
        raise CaptureError(f"Camera read failed: {e}", f"read {name}") from e

    if not ok or frame is None or frame.size == 0:
        return None
    return frame


def frame_size(frame: np.ndarray) -> Tuple[int, int]:
    """(width, height) of a frame."""
    return frame.shape[1], frame.shape[0]


def release_camera(cap: Optional[cv2.VideoCapture], name: str) -> None:
    """Release a camera handle, logging instead of raising."""
    if cap is None:
        return
    try:
        cap.release()
        logger.debug(f"{name}: camera released")
    except cv2.error as e:
        logger.error(f"{name}: error releasing camera: {e}")


class CameraDetector:
    """Detects cameras reachable through OpenCV."""

    def __init__(self, max_index: int = 8):
        self.max_index = max_index

    def detect_cameras(self) -> List[CameraDevice]:
        """Probe device indices and return every camera that delivers a frame."""
        cameras = []

        for index in range(self.max_index):
            try:
                camera = self._probe_device(index)
            except cv2.error as e:
                logger.debug(f"Error probing camera {index}: {e}")
                continue

            if camera:
                cameras.append(camera)
                logger.info(f"Detected camera {index}: {camera.resolution} "
                            f"@ {camera.framerate:.1f} fps ({camera.backend})")

        return cameras

    def _probe_device(self, index: int) -> Optional[CameraDevice]:
        """Open a device index and read a single frame."""
        cap = cv2.VideoCapture(index, cv2.CAP_ANY)
        try:
            if not cap.isOpened():
                return None

            ok, frame = cap.read()
            if not ok or frame is None:
                return None

            width, height = frame_size(frame)
            return CameraDevice(
                index=index,
                width=width,
                height=height,
                framerate=cap.get(cv2.CAP_PROP_FPS) or 0.0,
                backend=cap.getBackendName(),
            )
        finally:
            cap.release()

    def validate_camera(self, camera: CameraConfig) -> Tuple[bool, str]:
        """
        Check that a configured camera can be opened and read.

        Returns:
            (is_valid, error_message)
        """
        try:
            device = self._probe_device(camera.index)
        except cv2.error as e:
            return False, f"Validation error: {e}"

        if device is None:
            return False, f"Camera {camera.index} ({camera.name}) not available"
        return True, ""
