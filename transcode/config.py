"""
Configuration management for transcode streams.

Reads configuration from an optional .env file and environment variables
with sensible defaults.
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from transcode.pipe.relay_pipe import DEFAULT_PIPE_CAPACITY


# Default .env file location
DEFAULT_ENV_FILE = Path("/etc/transcode/transcode.env")

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

logger = logging.getLogger(__name__)


def _load_env_file():
    """Load environment variables from .env file if it exists."""
    env_file = os.getenv("TRANSCODE_ENV_FILE", str(DEFAULT_ENV_FILE))
    env_path = Path(env_file)

    if env_path.exists():
        load_dotenv(env_path, override=False)  # Don't override existing env vars


def _get_int(name: str, default: str) -> int:
    value = os.getenv(name, default)
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Invalid {name}: {value} (must be an integer)")


def _get_float(name: str, default: Optional[str]) -> Optional[float]:
    value = os.getenv(name, default)
    if value is None or value == "":
        return None
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Invalid {name}: {value} (must be a number)")


@dataclass
class TranscodeConfig:
    """Transcode configuration loaded from .env file and environment variables."""

    # Relay pipe
    pipe_capacity: int = DEFAULT_PIPE_CAPACITY
    chunk_size: int = 8192

    # Process shutdown. None waits for the process to exit without a deadline.
    close_timeout: Optional[float] = None
    thread_join_timeout: float = 1.0

    # Logging
    stderr_log_level: str = "INFO"
    log_level: str = "INFO"

    @property
    def stderr_level(self) -> int:
        """Numeric logging level for process stderr lines."""
        return getattr(logging, self.stderr_log_level.upper(), logging.INFO)

    @classmethod
    def load_config(cls) -> "TranscodeConfig":
        """
        Load configuration from environment variables.

        Returns:
            TranscodeConfig instance with loaded values

        Raises:
            ValueError: If configuration is invalid
        """
        # Load .env file first (if it exists)
        _load_env_file()

        pipe_capacity = _get_int("TRANSCODE_PIPE_CAPACITY", str(DEFAULT_PIPE_CAPACITY))
        chunk_size = _get_int("TRANSCODE_CHUNK_SIZE", "8192")

        close_timeout = _get_float("TRANSCODE_CLOSE_TIMEOUT_SEC", None)
        thread_join_timeout = _get_float("TRANSCODE_THREAD_JOIN_TIMEOUT_SEC", "1.0")
        if thread_join_timeout is None:
            thread_join_timeout = 1.0

        stderr_log_level = os.getenv("TRANSCODE_STDERR_LOG_LEVEL", "INFO")
        log_level = os.getenv("TRANSCODE_LOG_LEVEL", "INFO")

        config = cls(
            pipe_capacity=pipe_capacity,
            chunk_size=chunk_size,
            close_timeout=close_timeout,
            thread_join_timeout=thread_join_timeout,
            stderr_log_level=stderr_log_level,
            log_level=log_level,
        )

        # Validate configuration
        config.validate()

        return config

    def validate(self) -> None:
        """
        Validate configuration values.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.pipe_capacity <= 0:
            raise ValueError(f"Invalid pipe capacity: {self.pipe_capacity} (must be > 0)")

        if self.chunk_size <= 0:
            raise ValueError(f"Invalid chunk size: {self.chunk_size} (must be > 0)")

        if self.close_timeout is not None and self.close_timeout <= 0:
            raise ValueError(f"Invalid close timeout: {self.close_timeout} (must be > 0 or unset)")

        if self.thread_join_timeout < 0:
            raise ValueError(f"Invalid thread join timeout: {self.thread_join_timeout} (must be >= 0)")

        for label, level in (("log level", self.log_level), ("stderr log level", self.stderr_log_level)):
            if level.upper() not in VALID_LOG_LEVELS:
                raise ValueError(
                    f"Invalid {label}: {level} "
                    f"(must be one of: {', '.join(VALID_LOG_LEVELS)})"
                )


def load_config() -> TranscodeConfig:
    """
    Load and validate transcode configuration from environment variables.

    Returns:
        TranscodeConfig instance with loaded and validated values

    Raises:
        ValueError: If configuration is invalid
    """
    try:
        return TranscodeConfig.load_config()
    except ValueError as e:
        logger.error(f"Configuration error: {e}")
        raise


_CONFIG: Optional[TranscodeConfig] = None


def get_global_config() -> TranscodeConfig:
    """
    Get or load the process-wide configuration instance.

    Returns:
        TranscodeConfig instance
    """
    global _CONFIG
    if _CONFIG is None:
        _CONFIG = load_config()
    return _CONFIG
