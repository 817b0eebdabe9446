"""
Main application entry point for the dual camera recorder.
"""

import sys
import signal
import logging
from pathlib import Path
from threading import Event
from typing import Optional

from .config import load_config, SystemConfig
from .camera import CameraDetector
from .errors import ConfigError, RecordingError
from .recorder import DualCameraRecorder, RecordingController
from .storage import StorageManager
from .web import WebInterface

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Install console and optional file handlers on the root logger."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)

    if log_file:
        log_path = Path(log_file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root_logger.addHandler(file_handler)

    logger.debug("Logging initialized")


class DualCamRecorderApp:
    """Wires configuration, recorder, controller and web interface together."""

    def __init__(self, config: SystemConfig):
        self.config = config
        self.storage = StorageManager(config.recording, config.capture.container_format)
        self.recorder = DualCameraRecorder(config, self.storage)
        self.controller = RecordingController(self.recorder)
        self.should_stop = Event()

    def install_signal_handlers(self):
        signal.signal(signal.SIGINT, self._signal_handler)
        signal.signal(signal.SIGTERM, self._signal_handler)

    def _signal_handler(self, signum, frame):
        """Handle shutdown signals."""
        logger.info(f"Received signal {signum}, initiating shutdown...")
        self.should_stop.set()

    def validate_system(self) -> bool:
        """Check that the save directory and both cameras are usable."""
        logger.info("Validating system configuration...")
        errors = []

        try:
            self.storage.ensure_directory()
        except RecordingError as e:
            errors.append(str(e))

        detector = CameraDetector()
        for camera in (self.config.primary, self.config.secondary):
            is_valid, error_msg = detector.validate_camera(camera)
            if not is_valid:
                errors.append(error_msg)

        if errors:
            logger.error("System validation failed:")
            for error in errors:
                logger.error(f"  - {error}")
            return False

        logger.info("System validation passed")
        return True

    def record_until_signal(self) -> int:
        """Record one session in the foreground of the CLI."""
        self.install_signal_handlers()
        self.controller.start()

        while self.controller.is_active and not self.should_stop.is_set():
            self.should_stop.wait(0.5)

        self.controller.stop()
        self.controller.wait()

        if self.controller.last_result:
            print(f"Saved: {self.controller.last_result}")
            return 0
        print(f"Recording failed: {self.controller.last_error}")
        return 1

    def run(self) -> int:
        """Serve the HTTP control surface until a shutdown signal."""
        self.install_signal_handlers()
        web = WebInterface(self.controller, self.storage, self.config)
        web.start()

        try:
            while not self.should_stop.is_set():
                self.should_stop.wait(1.0)
        finally:
            if self.controller.is_active:
                logger.info("Stopping active recording before shutdown...")
                self.controller.stop()
                self.controller.wait()
            web.stop()
            logger.info("Dual camera recorder stopped")

        return 0


def main():
    """Main entry point."""
    import argparse

    parser = argparse.ArgumentParser(description='Dual Camera Side-by-Side Recorder')
    parser.add_argument('-c', '--config', help='Path to configuration file')
    parser.add_argument('--detect', action='store_true',
                        help='Detect cameras and exit')
    parser.add_argument('--validate', action='store_true',
                        help='Validate configuration and exit')
    parser.add_argument('--record', action='store_true',
                        help='Record one session until Ctrl-C, then finalize')
    parser.add_argument('--list', action='store_true',
                        help='List finalized recordings and exit')

    args = parser.parse_args()

    if args.detect:
        setup_logging("WARNING")
        cameras = CameraDetector().detect_cameras()

        print("\n=== Detected Cameras ===")
        for camera in cameras:
            print(f"\nIndex: {camera.index}")
            print(f"  Resolution: {camera.resolution}")
            print(f"  FPS: {camera.framerate:.1f}")
            print(f"  Backend: {camera.backend}")
        if not cameras:
            print("No cameras found")
        return 0

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 1

    setup_logging(config.log_level, config.log_file)
    app = DualCamRecorderApp(config)

    if args.validate:
        print("\n=== Validating Configuration ===")
        if app.validate_system():
            print("✓ System validation passed")
            return 0
        print("✗ System validation failed")
        return 1

    if args.list:
        recordings = app.storage.list_recordings()
        print(f"\n=== Recordings in {app.storage.base_directory} ===")
        for rec in recordings:
            print(f"{rec['filename']}  {rec['size_mb']:.1f} MB  {rec['created']}")
        orphaned = app.storage.list_orphaned_temp_files()
        if orphaned:
            print("\nUnfinalized temporary captures:")
            for path in orphaned:
                print(f"  {path.name}")
        return 0

    if args.record:
        return app.record_until_signal()

    try:
        return app.run()
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1


if __name__ == '__main__':
    sys.exit(main())
