"""Logging setup for applications embedding shellrun.

The library itself only emits records through module loggers under the
``shellrun`` namespace; handlers are installed on request.
"""

from __future__ import annotations

import logging
import sys

from .config import Config, get_config

__all__ = ["setup_logging"]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def setup_logging(config: Config | None = None) -> logging.Logger:
    """Attach a handler to the ``shellrun`` logger.

    With ``log_debug`` enabled records go to ``config.log_file`` at DEBUG level,
    otherwise to stderr at INFO level. Calling it again replaces the handler
    installed by the previous call.

    Args:
        config: Configuration (defaults to the global one)

    Returns:
        The configured package logger
    """
    config = config or get_config()
    package_logger = config.logger

    for handler in list(package_logger.handlers):
        if getattr(handler, "_shellrun_handler", False):
            package_logger.removeHandler(handler)
            handler.close()

    handler: logging.Handler
    if config.log_debug and config.log_file:
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
        log_level = logging.DEBUG
    else:
        handler = logging.StreamHandler(sys.stderr)
        log_level = logging.INFO

    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._shellrun_handler = True  # type: ignore[attr-defined]
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)

    return package_logger
