"""Log formatting utilities for JSONL output.

Provides ISO 8601 timestamp formatting for the system log file and the
`iso-date` token.
"""

from __future__ import annotations

__all__ = ["ISO8601Formatter", "iso_timestamp"]

import json
import logging
from datetime import datetime, timezone


def iso_timestamp(epoch_seconds: float | None = None) -> str:
    """Format an epoch timestamp as ISO 8601 UTC with milliseconds.

    Args:
        epoch_seconds: Seconds since the epoch. Defaults to now.

    Returns:
        str: Timestamp like 2025-12-04T10:48:37.123Z
    """
    if epoch_seconds is None:
        moment = datetime.now(tz=timezone.utc)
    else:
        moment = datetime.fromtimestamp(epoch_seconds, tz=timezone.utc)
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ISO8601Formatter(logging.Formatter):
    """Custom formatter with ISO 8601 timestamps (UTC) for JSONL output.

    Format: YYYY-MM-DDTHH:MM:SS.sssZ
    Example: 2025-12-04T10:48:37.123Z
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSONL with ISO 8601 timestamp.

        Args:
            record: The log record to format

        Returns:
            str: JSON-formatted log entry with timestamp
        """
        timestamp = iso_timestamp(record.created)

        # Handle dict messages (structured logging)
        if isinstance(record.msg, dict):
            log_data = record.msg
        # Handle JSON string messages
        elif isinstance(record.msg, str) and record.msg.startswith("{"):
            try:
                log_data = json.loads(record.msg)
            except json.JSONDecodeError:
                log_data = {"message": record.msg}
        else:
            log_data = {"message": record.getMessage()}

        # Add timestamp and level as first fields
        log_entry = {"time": timestamp, "level": record.levelname, **log_data}
        return json.dumps(log_entry, default=str)
