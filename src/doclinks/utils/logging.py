"""Debug log file for the doclinks package.

The host owns root logging. Turning on ``debug_logging`` only attaches a
rotating file handler to the ``doclinks`` logger and lowers that logger to
debug; turning it off detaches the handler again.
"""

from __future__ import annotations

import logging
import logging.handlers
import os
from pathlib import Path

__all__ = ["enable_debug_log", "disable_debug_log", "get_log_path", "PACKAGE_LOGGER"]

PACKAGE_LOGGER = "doclinks"
LOG_FILE_NAME = "doclinks-debug.log"

_DEFAULT_LOG_DIR = Path.home() / ".doclinks" / "logs"
# Publishes every event at debug level.
_NOISY_LOGGERS: tuple[str, ...] = ("doclinks.events",)
_HANDLER: logging.Handler | None = None
_LOG_PATH: Path | None = None


def enable_debug_log(
    log_dir: Path | str | None = None,
    *,
    include_events: bool = False,
    max_bytes: int = 1_000_000,
    backup_count: int = 3,
) -> Path:
    """Send debug records of the package to a rotating log file.

    Calling it again while enabled returns the current file; call
    :func:`disable_debug_log` first to move the log elsewhere.
    """

    global _HANDLER, _LOG_PATH
    if _HANDLER is not None and _LOG_PATH is not None:
        return _LOG_PATH

    target_dir = _resolve_log_dir(log_dir)
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / LOG_FILE_NAME

    handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.addHandler(handler)
    package_logger.setLevel(logging.DEBUG)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.DEBUG if include_events else logging.WARNING)

    _HANDLER = handler
    _LOG_PATH = log_path
    package_logger.debug("Debug log enabled at %s", log_path)
    return log_path


def disable_debug_log() -> bool:
    """Detach the debug log file; returns ``False`` when it was not enabled."""

    global _HANDLER, _LOG_PATH
    package_logger = logging.getLogger(PACKAGE_LOGGER)
    package_logger.setLevel(logging.NOTSET)
    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.NOTSET)
    if _HANDLER is None:
        return False
    package_logger.removeHandler(_HANDLER)
    _HANDLER.close()
    _HANDLER = None
    _LOG_PATH = None
    return True


def get_log_path() -> Path | None:
    """Return the debug log file while it is enabled."""

    return _LOG_PATH


def _resolve_log_dir(log_dir: Path | str | None) -> Path:
    env_override = os.environ.get("DOCLINKS_LOG_DIR")
    return Path(log_dir or env_override or _DEFAULT_LOG_DIR).expanduser()
