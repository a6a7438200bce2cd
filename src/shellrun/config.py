"""shellrun configuration loaded from environment variables.

Environment variables:
    SHELLRUN_PATH: program search path
        - same syntax as PATH (entries separated by os.pathsep)
        - unset/empty = use PATH

    SHELLRUN_TERM_POLLS: status polls after the graceful signal on timeout
        - default 30, limited to 1-600

    SHELLRUN_TERM_INTERVAL: seconds between those polls
        - default 0.1, limited to 0.01-5.0

    SHELLRUN_KILL_TIMEOUT: seconds to wait for a child to be reaped after SIGKILL
        - default 1.0, limited to 0.1-30.0

    SHELLRUN_LOG_DEBUG: debug logging
        - true/1/yes = on (log to a file in the temp directory)
        - false/0/no = off (default, log to stderr)
"""

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

LOGGER_NAME = "shellrun"

DEFAULT_TERM_POLLS = 30
DEFAULT_TERM_INTERVAL = 0.1
DEFAULT_KILL_TIMEOUT = 1.0


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """Parse a boolean environment variable."""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_path(value: str | None) -> list[str]:
    """Split a PATH-style value, dropping empty entries."""
    if not value:
        return []
    return [entry for entry in value.split(os.pathsep) if entry]


def _parse_int(value: str | None, default: int, low: int, high: int) -> int:
    if not value:
        return default
    try:
        return max(low, min(int(value), high))
    except ValueError:
        return default


def _parse_float(value: str | None, default: float, low: float, high: float) -> float:
    if not value:
        return default
    try:
        return max(low, min(float(value), high))
    except ValueError:
        return default


@dataclass
class Config:
    """shellrun configuration.

    Attributes:
        path: Ordered directories searched for programs
        term_polls: Non-blocking status polls after the graceful signal
        term_interval: Seconds between two polls
        kill_timeout: Seconds to wait for reaping after the forceful signal
        log_debug: Debug logging to a file
        log_file: Log file path (set automatically when log_debug=True)
    """

    path: list[str] = field(default_factory=list)
    term_polls: int = DEFAULT_TERM_POLLS
    term_interval: float = DEFAULT_TERM_INTERVAL
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    log_debug: bool = False
    log_file: str | None = None

    @property
    def logger(self) -> logging.Logger:
        """Package logger."""
        return logging.getLogger(LOGGER_NAME)

    @property
    def grace_window(self) -> float:
        """Upper bound of the graceful termination phase in seconds."""
        return self.term_polls * self.term_interval

    def copy(self) -> "Config":
        return Config(
            path=list(self.path),
            term_polls=self.term_polls,
            term_interval=self.term_interval,
            kill_timeout=self.kill_timeout,
            log_debug=self.log_debug,
            log_file=self.log_file,
        )

    def __repr__(self) -> str:
        return (
            f"Config(path={os.pathsep.join(self.path)}, "
            f"term_polls={self.term_polls}, "
            f"term_interval={self.term_interval}, "
            f"kill_timeout={self.kill_timeout}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def _generate_log_file_path() -> str:
    """Build a timestamped log file path under the temp directory."""
    log_dir = Path(tempfile.gettempdir()) / "shellrun"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"shellrun_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """Load configuration from environment variables."""
    log_debug = _parse_bool(os.environ.get("SHELLRUN_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    path = _parse_path(os.environ.get("SHELLRUN_PATH"))
    if not path:
        path = _parse_path(os.environ.get("PATH"))

    return Config(
        path=path,
        term_polls=_parse_int(
            os.environ.get("SHELLRUN_TERM_POLLS"), DEFAULT_TERM_POLLS, 1, 600
        ),
        term_interval=_parse_float(
            os.environ.get("SHELLRUN_TERM_INTERVAL"), DEFAULT_TERM_INTERVAL, 0.01, 5.0
        ),
        kill_timeout=_parse_float(
            os.environ.get("SHELLRUN_KILL_TIMEOUT"), DEFAULT_KILL_TIMEOUT, 0.1, 30.0
        ),
        log_debug=log_debug,
        log_file=log_file,
    )


# Global instance, loaded lazily
_config: Config | None = None


def get_config() -> Config:
    """Return the global configuration."""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """Reload the global configuration (used by tests)."""
    global _config
    _config = load_config()
    return _config
