"""Centralized logging configuration for opcalc.

Every module obtains its logger through :func:`get_logger`; all of them hang
off the single ``"opcalc"`` root logger configured here. Log records go to
stderr so that machine-readable CLI output on stdout stays clean.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional

ROOT_LOGGER_NAME = "opcalc"

#: Environment variable consulted for the initial level (e.g. ``DEBUG``).
LOG_LEVEL_ENV = "OPCALC_LOG_LEVEL"

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_ROOT_LOGGER_CONFIGURED = False


def _level_from_env(default: int) -> int:
    value = os.environ.get(LOG_LEVEL_ENV)
    if not value:
        return default
    level = logging.getLevelName(value.strip().upper())
    # getLevelName returns a string for unknown names
    return level if isinstance(level, int) else default


def setup_root_logger(
    level: int = logging.INFO,
    format_string: Optional[str] = None,
    handler: Optional[logging.Handler] = None,
) -> None:
    """Set up the root opcalc logger with a single handler.

    Repeated calls are no-ops until :func:`reset_logging` is called.

    Args:
        level: Logging level, overridden by ``OPCALC_LOG_LEVEL`` when set.
        format_string: Custom format string (optional).
        handler: Custom handler (optional, defaults to a stderr StreamHandler).
    """
    global _ROOT_LOGGER_CONFIGURED

    if _ROOT_LOGGER_CONFIGURED:
        return

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(_level_from_env(level))
    root_logger.handlers.clear()

    if handler is None:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(format_string or DEFAULT_FORMAT))
    root_logger.addHandler(handler)

    # Propagate so pytest's caplog sees the records
    root_logger.propagate = True

    _ROOT_LOGGER_CONFIGURED = True


def get_logger(name: str) -> logging.Logger:
    """Return a logger below the ``opcalc`` root logger.

    Args:
        name: Logger name, typically ``__name__`` of the calling module.

    Returns:
        Logger inheriting level and handlers from the root logger.
    """
    setup_root_logger()
    logger = logging.getLogger(name)
    logger.setLevel(logging.NOTSET)
    return logger


def set_global_log_level(level: int) -> None:
    """Set the log level for every opcalc logger and its handlers."""
    setup_root_logger()
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)


def enable_debug_logging() -> None:
    """Enable debug logging for the entire package."""
    set_global_log_level(logging.DEBUG)


def disable_debug_logging() -> None:
    """Return to INFO level."""
    set_global_log_level(logging.INFO)


def reset_logging() -> None:
    """Drop the root handler and allow reconfiguration (mainly for tests)."""
    global _ROOT_LOGGER_CONFIGURED
    _ROOT_LOGGER_CONFIGURED = False

    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    root_logger.handlers.clear()
    root_logger.setLevel(logging.NOTSET)


setup_root_logger()
