"""
Recording directory and session file management.
"""

import logging
import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional

from .config import RecordingConfig
from .errors import SetupError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionPaths:
    """Temporary and final file of one recording session."""
    timestamp: str
    temp: Path
    final: Path


class StorageManager:
    """Manages the recordings directory."""

    def __init__(self, recording_config: RecordingConfig, container_format: str = "avi"):
        self.config = recording_config
        self.base_directory = recording_config.recordings_path
        self.container_format = container_format

    def ensure_directory(self) -> Path:
        """
        Create the recordings directory if it does not exist.

        Raises:
            SetupError: the directory cannot be created
        """
        if not self.base_directory.exists():
            logger.info(f"Save directory {self.base_directory} does not exist. Creating it.")
            try:
                self.base_directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise SetupError(f"Failed to create save directory: {e}",
                                 "create save directory", self.base_directory) from e
        elif not self.base_directory.is_dir():
            raise SetupError("Save path exists and is not a directory",
                             "create save directory", self.base_directory)
        return self.base_directory

    def session_paths(self, now: Optional[datetime] = None) -> SessionPaths:
        """Timestamp-derived temporary and final paths for a new session."""
        timestamp = (now or datetime.now()).strftime(self.config.timestamp_format)
        ext = self.container_format
        return SessionPaths(
            timestamp=timestamp,
            temp=self.base_directory / f"{timestamp}{self.config.temp_suffix}.{ext}",
            final=self.base_directory / f"{timestamp}.{ext}",
        )

    def remove_temp(self, path: Path) -> bool:
        """
        Delete a temporary capture file.

        A file that is already gone counts as removed. Other errors are
        logged and reported through the return value.
        """
        try:
            path.unlink()
            logger.info(f"Removed temporary file {path.name}")
            return True
        except FileNotFoundError:
            logger.debug(f"Temporary file {path} was never created")
            return True
        except OSError as e:
            logger.error(f"Failed to remove temporary file {path}: {e}")
            return False

    def _is_temp(self, path: Path) -> bool:
        return path.stem.endswith(self.config.temp_suffix)

    def list_recordings(self, limit: int = 50) -> List[Dict]:
        """Finalized recordings, newest first."""
        if not self.base_directory.exists():
            return []

        files = [
            f for f in self.base_directory.glob(f'*.{self.container_format}')
            if f.is_file() and not self._is_temp(f)
        ]
        files.sort(key=lambda f: f.stat().st_mtime, reverse=True)

        recordings = []
        for video_file in files[:limit]:
            stat = video_file.stat()
            recordings.append({
                'filename': video_file.name,
                'path': str(video_file),
                'size': stat.st_size,
                'size_mb': round(stat.st_size / (1024 * 1024), 2),
                'created': datetime.fromtimestamp(stat.st_mtime).isoformat(),
            })
        return recordings

    def list_orphaned_temp_files(self) -> List[Path]:
        """Temporary captures left behind by failed re-encodes."""
        if not self.base_directory.exists():
            return []
        return sorted(
            f for f in self.base_directory.glob(f'*.{self.container_format}')
            if f.is_file() and self._is_temp(f)
        )

    def get_disk_usage(self) -> Dict:
        """Get disk usage statistics."""
        try:
            stat = shutil.disk_usage(self.base_directory)
        except OSError as e:
            logger.error(f"Error getting disk usage: {e}")
            return {}

        return {
            'total_gb': stat.total / (1024 ** 3),
            'used_gb': stat.used / (1024 ** 3),
            'free_gb': stat.free / (1024 ** 3),
            'percent_used': (stat.used / stat.total) * 100
        }
