"""System logger for operational events.

This module provides a singleton system logger. It is the leveled logger the
pipeline talks to:

- Console sink records (rendered lines) are logged at INFO.
- Side monitor records (slow requests, large uploads, user activity) are
  logged as dicts with an "event" key.
- Sink failures and rotation failures are logged at WARNING/ERROR.

Logging strategy:
- Console (stderr): ALL operational messages (INFO, WARNING, ERROR, CRITICAL)
- File (optional): Only issues (WARNING, ERROR, CRITICAL)

The file handler is configured separately via configure_system_logger_file() once
the log_dir from config is available.
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "configure_system_logger_file",
    "get_system_logger",
    "reset_system_logger_file",
]

import logging
import sys
from pathlib import Path

from reqscope.constants import APP_NAME
from reqscope.utils.logging.iso_formatter import ISO8601Formatter


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' field from dict messages for cleaner stderr output.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human-readable console output.

        Args:
            record: The log record to format.

        Returns:
            str: Formatted log message with level prefix.
        """
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        return f"{record.levelname}: {record.getMessage()}"


# Module-level singleton logger - initialized once at first use
_system_logger: logging.Logger | None = None
_file_handler: logging.FileHandler | None = None


def get_system_logger() -> logging.Logger:
    """Get the singleton system logger instance.

    Creates the logger on first call with stderr handler only.
    File handler is added later via configure_system_logger_file().

    Returns:
        logging.Logger: Configured system logger instance.

    Example:
        >>> from reqscope.telemetry.system import get_system_logger
        >>> logger = get_system_logger()
        >>> logger.warning({"event": "sink_write_failed", "error": "..."})
    """
    global _system_logger

    if _system_logger is not None:
        return _system_logger

    _system_logger = logging.getLogger(f"{APP_NAME}.system")
    _system_logger.setLevel(logging.INFO)
    _system_logger.propagate = False  # Don't propagate to root logger

    # Close and remove any existing handlers to avoid duplicates and resource leaks
    for handler in _system_logger.handlers:
        handler.close()
    _system_logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.INFO)
    stderr_handler.setFormatter(ConsoleFormatter())
    _system_logger.addHandler(stderr_handler)

    return _system_logger


def configure_system_logger_file(log_path: Path) -> None:
    """Configure the system logger's file handler.

    The file handler logs WARNING, ERROR, CRITICAL only. Calling again with a
    different path replaces the previous handler.

    Args:
        log_path: Path to the system log file.
    """
    global _file_handler

    logger = get_system_logger()

    if _file_handler is not None:
        if Path(_file_handler.baseFilename) == log_path.resolve():
            return
        reset_system_logger_file()

    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        pass  # If we can't create log dir, stderr will still work

    file_handler = logging.FileHandler(log_path, mode="a", encoding="utf-8")
    file_handler.setLevel(logging.WARNING)
    file_handler.setFormatter(ISO8601Formatter())
    logger.addHandler(file_handler)
    _file_handler = file_handler


def reset_system_logger_file() -> None:
    """Detach and close the system logger's file handler, if any."""
    global _file_handler

    if _file_handler is None:
        return
    get_system_logger().removeHandler(_file_handler)
    _file_handler.close()
    _file_handler = None
