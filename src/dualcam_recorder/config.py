"""
Configuration management for the dual camera recorder.
"""

import os
import yaml
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Optional

from .errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = '/etc/dualcam-recorder/config.yaml'

TOP_LEVEL_KEYS = ('primary', 'secondary', 'capture', 'recording', 'web', 'log_level', 'log_file')


@dataclass
class CameraConfig:
    """Configuration for a single camera."""
    index: int
    name: str = ""

    def __post_init__(self):
        if not self.name:
            self.name = f"Camera {self.index}"


@dataclass
class CaptureConfig:
    """Frame geometry, rate and codec shared by both cameras."""
    width: int = 1280
    height: int = 720
    framerate: float = 24.0
    codec: str = "XVID"
    container_format: str = "avi"
    warmup_seconds: float = 1.0
    retry_delay: float = 0.05
    max_consecutive_failures: Optional[int] = None  # None: retry until stopped
    strict_camera_properties: bool = False

    @property
    def composite_width(self) -> int:
        """Width of the side-by-side frame."""
        return self.width * 2

    @property
    def composite_size(self) -> tuple:
        """(width, height) of the side-by-side frame."""
        return (self.composite_width, self.height)

    @property
    def frame_interval(self) -> float:
        """Target seconds per frame."""
        return 1.0 / self.framerate

    def validate(self) -> None:
        """Raise ConfigError on values the pipeline cannot work with."""
        if self.width <= 0 or self.height <= 0:
            raise ConfigError(f"Invalid frame size {self.width}x{self.height}")
        if self.framerate <= 0:
            raise ConfigError(f"Invalid framerate {self.framerate}")
        if len(self.codec) != 4:
            raise ConfigError(f"Codec must be a four-character code, got {self.codec!r}")
        if self.retry_delay < 0 or self.warmup_seconds < 0:
            raise ConfigError("retry_delay and warmup_seconds must not be negative")
        if self.max_consecutive_failures is not None and self.max_consecutive_failures < 1:
            raise ConfigError("max_consecutive_failures must be at least 1")


@dataclass
class RecordingConfig:
    """Where and how recording files are named."""
    base_directory: str = "~/Desktop/recordings"
    temp_suffix: str = "_temp"
    timestamp_format: str = "%Y%m%d_%H%M%S"

    @property
    def recordings_path(self) -> Path:
        """Get recordings directory as Path object, with ~ expanded."""
        return Path(self.base_directory).expanduser()


@dataclass
class WebConfig:
    """HTTP control surface settings."""
    host: str = "127.0.0.1"
    port: int = 8000


@dataclass
class SystemConfig:
    """Complete system configuration."""
    primary: CameraConfig = field(default_factory=lambda: CameraConfig(index=0, name="Primary"))
    secondary: CameraConfig = field(default_factory=lambda: CameraConfig(index=1, name="Secondary"))
    capture: CaptureConfig = field(default_factory=CaptureConfig)
    recording: RecordingConfig = field(default_factory=RecordingConfig)
    web: WebConfig = field(default_factory=WebConfig)
    log_level: str = "INFO"
    log_file: Optional[str] = None

    @classmethod
    def from_dict(cls, data: dict) -> 'SystemConfig':
        """Build configuration from a parsed YAML mapping."""
        config = cls()
        data = data or {}
        unknown = sorted(str(key) for key in data if key not in TOP_LEVEL_KEYS)
        if unknown:
            raise ConfigError(f"Unknown configuration keys: {', '.join(unknown)}")

        try:
            if 'primary' in data:
                config.primary = CameraConfig(**data['primary'])
            if 'secondary' in data:
                config.secondary = CameraConfig(**data['secondary'])
            if 'capture' in data:
                config.capture = CaptureConfig(**data['capture'])
            if 'recording' in data:
                config.recording = RecordingConfig(**data['recording'])
            if 'web' in data:
                config.web = WebConfig(**data['web'])
        except TypeError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

        config.log_level = data.get('log_level', 'INFO')
        config.log_file = data.get('log_file')

        config.validate()
        return config

    @classmethod
    def from_yaml(cls, config_path: str) -> 'SystemConfig':
        """Load configuration from YAML file."""
        with open(config_path, 'r') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigError(f"{config_path}: invalid YAML: {e}") from e

        if data is not None and not isinstance(data, dict):
            raise ConfigError(f"{config_path}: top level must be a mapping")

        return cls.from_dict(data)

    def validate(self) -> None:
        self.capture.validate()
        if self.primary.index == self.secondary.index:
            raise ConfigError(f"Primary and secondary cameras share index {self.primary.index}")

    def to_dict(self) -> dict:
        return {
            'primary': asdict(self.primary),
            'secondary': asdict(self.secondary),
            'capture': asdict(self.capture),
            'recording': asdict(self.recording),
            'web': asdict(self.web),
            'log_level': self.log_level,
            'log_file': self.log_file,
        }

    def to_yaml(self, output_path: str) -> None:
        """Save configuration to YAML file."""
        with open(output_path, 'w') as f:
            yaml.dump(self.to_dict(), f, default_flow_style=False, sort_keys=False)

        logger.info(f"Configuration saved to {output_path}")


def load_config(config_path: Optional[str] = None) -> SystemConfig:
    """
    Load system configuration from file.

    Tries to load from:
    1. Provided config_path
    2. /etc/dualcam-recorder/config.yaml
    3. Default configuration
    """
    if config_path:
        if not os.path.exists(config_path):
            raise ConfigError(f"Configuration file not found: {config_path}")
        logger.info(f"Loading configuration from {config_path}")
        return SystemConfig.from_yaml(config_path)

    if os.path.exists(DEFAULT_CONFIG_PATH):
        logger.info(f"Loading configuration from {DEFAULT_CONFIG_PATH}")
        return SystemConfig.from_yaml(DEFAULT_CONFIG_PATH)

    logger.warning("No configuration file found, using defaults")
    return SystemConfig()
