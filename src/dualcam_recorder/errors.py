"""
Exception types raised by the recording pipeline.
"""

from pathlib import Path
from typing import Optional, Union


class ConfigError(ValueError):
    """Invalid or unreadable configuration."""


class RecordingError(Exception):
    """Base class for recording session failures.

    Carries the operation that failed and, where one is involved, the
    file path, so callers can log the failure without extra context.
    """

    def __init__(self, message: str, operation: str = "recording",
                 path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.operation = operation
        self.path = Path(path) if path is not None else None

    def __str__(self) -> str:
        message = super().__str__()
        if self.path is not None:
            return f"{self.operation}: {message} ({self.path})"
        return f"{self.operation}: {message}"


class SetupError(RecordingError):
    """Save directory, camera or writer could not be prepared."""


class CaptureError(RecordingError):
    """Fatal failure while capturing or writing composite frames."""


class EmptyRecordingError(RecordingError):
    """The session stopped before a single frame was written."""


class ReencodeError(RecordingError):
    """The temporary capture could not be rewritten at the observed rate."""
