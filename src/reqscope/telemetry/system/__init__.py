"""System operational logging.

Provides the system logger used as the console sink and for side monitor
records, sink failures and rotation events.
"""

from reqscope.telemetry.system.system_logger import (
    ConsoleFormatter,
    configure_system_logger_file,
    get_system_logger,
    reset_system_logger_file,
)

__all__ = [
    "ConsoleFormatter",
    "configure_system_logger_file",
    "get_system_logger",
    "reset_system_logger_file",
]
