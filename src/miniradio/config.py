"""
Server configuration for miniradio.

Defaults come from the environment (``MINIRADIO_*`` variables) and can be
overridden field by field from the CLI.
"""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

DEFAULT_PORT = 9292
DEFAULT_SEGMENT_DURATION = 10  # seconds per HLS segment
DEFAULT_RETRY_AFTER = 5  # seconds suggested to clients on 503


@dataclass
class ServerConfig:
    """Directories, network binding and transcoder settings."""
    mp3_dir: Path = field(default_factory=lambda: Path("./mp3_files"))
    cache_dir: Path = field(default_factory=lambda: Path("./hls_cache"))
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    ffmpeg_cmd: str = "ffmpeg"
    segment_duration: int = DEFAULT_SEGMENT_DURATION
    retry_after_seconds: int = DEFAULT_RETRY_AFTER

    def __post_init__(self):
        self.mp3_dir = Path(self.mp3_dir).expanduser().absolute()
        self.cache_dir = Path(self.cache_dir).expanduser().absolute()

        if self.segment_duration <= 0:
            raise ValueError(f"segment_duration must be positive, got {self.segment_duration}")
        if self.retry_after_seconds < 0:
            raise ValueError(f"retry_after_seconds must not be negative, got {self.retry_after_seconds}")

    @classmethod
    def from_env(cls, **overrides) -> "ServerConfig":
        """
        Build a config from ``MINIRADIO_*`` environment variables.

        Args:
            **overrides: Field values that take precedence over the
                environment (``None`` values are ignored)

        Returns:
            ServerConfig
        """
        values = {
            "mp3_dir": os.environ.get("MINIRADIO_MP3_DIR", "./mp3_files"),
            "cache_dir": os.environ.get("MINIRADIO_CACHE_DIR", "./hls_cache"),
            "host": os.environ.get("MINIRADIO_HOST", "0.0.0.0"),
            "port": int(os.environ.get("MINIRADIO_PORT", str(DEFAULT_PORT))),
            "ffmpeg_cmd": os.environ.get("MINIRADIO_FFMPEG", "ffmpeg"),
            "segment_duration": int(
                os.environ.get("MINIRADIO_SEGMENT_DURATION", str(DEFAULT_SEGMENT_DURATION))
            ),
            "retry_after_seconds": int(
                os.environ.get("MINIRADIO_RETRY_AFTER", str(DEFAULT_RETRY_AFTER))
            ),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def ensure_directories(self) -> None:
        """Create the source and cache directories if they are missing."""
        for directory in (self.mp3_dir, self.cache_dir):
            if not directory.is_dir():
                logger.info(f"Creating directory: {directory}")
                directory.mkdir(parents=True, exist_ok=True)
