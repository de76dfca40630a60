"""Sink set: append-only destinations for rendered records.

- ConsoleSink forwards each record to the system logger at INFO.
- FileSink appends newline-terminated records to <log_dir>/<category>.log.

Each FileSink serialises its own appends and rotation with a private lock
(whole-record atomicity). Different sinks never share a lock, so they proceed
independently. I/O failures are logged and the record is dropped: sinks never
raise into the request path, and there are no retries.

A FileSink also notices when its file was renamed or removed by another
process (``reqscope rotate`` against a live log directory) and reopens the
path before the next write instead of appending into the archive.
"""

from __future__ import annotations

__all__ = [
    "ConsoleSink",
    "FileSink",
    "RotationDescriptor",
    "Sink",
    "archive_path_for",
]

import logging
import os
import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import TextIO

from reqscope.constants import LOG_FILE_NAMES
from reqscope.exceptions import SinkRotationError
from reqscope.telemetry.system.system_logger import get_system_logger


def archive_path_for(path: Path, label_date: date) -> Path:
    """Return ``<path>.<YYYY-MM-DD>``, suffixed ``.1``, ``.2``... if taken."""
    candidate = path.with_name(f"{path.name}.{label_date.isoformat()}")
    counter = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.name}.{label_date.isoformat()}.{counter}")
        counter += 1
    return candidate


class Sink(ABC):
    """Base class for sinks."""

    category: str = "abstract"

    @abstractmethod
    def append(self, record: str) -> bool:
        """Append one rendered record. Returns True if it was written."""

    def close(self) -> None:
        """Release resources (no-op for sinks without a handle)."""


class ConsoleSink(Sink):
    """Forwards rendered lines to the leveled system logger."""

    category = "console"

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or get_system_logger()

    def append(self, record: str) -> bool:
        self.logger.info(record.strip())
        return True

    def __repr__(self) -> str:
        return f"ConsoleSink(logger={self.logger.name!r})"


@dataclass(slots=True)
class RotationDescriptor:
    """Rotation state for a file sink. Mutated only by FileSink.rotate().

    last_scheduled_date is the label of the last scheduled (midnight)
    rotation. Manual rotations never record it.
    """

    category: str
    path: Path
    last_scheduled_date: date | None = None


class FileSink(Sink):
    """Category-specific append-only log file.

    The handle is opened lazily in append mode (parent directories created on
    first use) and swapped only under the same lock as append(): by rotate(),
    or by append() itself when the path no longer points at the open file.
    """

    def __init__(self, category: str, path: Path, logger: logging.Logger | None = None) -> None:
        self.category = category
        self.path = path
        self.descriptor = RotationDescriptor(category=category, path=path)
        self._logger = logger or get_system_logger()
        self._lock = threading.Lock()
        self._stream: TextIO | None = None
        self._stream_identity: tuple[int, int] | None = None

    @classmethod
    def for_category(cls, category: str, log_dir: Path, logger: logging.Logger | None = None) -> "FileSink":
        """Create the sink for a standard category (access, error, api)."""
        return cls(category, log_dir / LOG_FILE_NAMES[category], logger)

    @property
    def is_open(self) -> bool:
        return self._stream is not None

    def _open(self) -> TextIO:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        stream = open(self.path, "a", encoding="utf-8")
        opened = os.fstat(stream.fileno())
        self._stream_identity = (opened.st_dev, opened.st_ino)
        return stream

    def _stream_is_stale(self) -> bool:
        """True when the path was renamed or removed since the handle was opened."""
        try:
            on_disk = os.stat(self.path)
        except FileNotFoundError:
            return True
        return (on_disk.st_dev, on_disk.st_ino) != self._stream_identity

    def append(self, record: str) -> bool:
        line = record.rstrip("\n") + "\n"
        with self._lock:
            try:
                if self._stream is not None and self._stream_is_stale():
                    self._logger.info(
                        {
                            "event": "sink_reopened",
                            "message": f"{self.path} was moved or removed, reopening",
                            "category": self.category,
                            "path": str(self.path),
                        }
                    )
                    self._discard_stream()
                if self._stream is None:
                    self._stream = self._open()
                self._stream.write(line)
                self._stream.flush()
                return True
            except OSError as e:
                self._logger.warning(
                    {
                        "event": "sink_write_failed",
                        "message": f"Dropped record for {self.category} sink: {e}",
                        "category": self.category,
                        "path": str(self.path),
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }
                )
                self._discard_stream()
                return False

    def rotate(self, label_date: date, *, scheduled: bool = False) -> Path | None:
        """Archive the current file as ``<path>.<label_date>`` and reopen.

        No-op (returns None) when the file does not exist. A scheduled
        rotation is also a no-op when a scheduled rotation already ran for
        label_date. Manual rotations always archive what is there, so a
        manual rotation earlier in the day never hides the day's later
        records from the midnight rotation.

        Args:
            label_date: Calendar date the archive is named after.
            scheduled: True for the daily midnight rotation.

        Returns:
            Path of the archive, or None if nothing was rotated.

        Raises:
            SinkRotationError: If the rename or reopen fails.
        """
        with self._lock:
            if scheduled and self.descriptor.last_scheduled_date == label_date:
                return None
            if not self.path.exists():
                return None

            self._discard_stream()
            archive = archive_path_for(self.path, label_date)
            try:
                self.path.rename(archive)
            except OSError as e:
                raise SinkRotationError(
                    f"Failed to rotate {self.path} -> {archive}: {e}", self.category
                ) from e

            try:
                self._stream = self._open()
            except OSError as e:
                # Next append retries the open
                raise SinkRotationError(f"Rotated {self.path} but could not reopen it: {e}", self.category) from e
            finally:
                if scheduled:
                    self.descriptor.last_scheduled_date = label_date
            return archive

    def read_recent(self, limit: int) -> list[str]:
        """Return the last ``limit`` non-empty lines of the current file."""
        if limit <= 0:
            return []
        with self._lock:
            if self._stream is not None:
                self._stream.flush()
            try:
                with open(self.path, encoding="utf-8") as f:
                    lines = deque((line.rstrip("\n") for line in f if line.strip()), maxlen=limit)
            except FileNotFoundError:
                return []
        return list(lines)

    def close(self) -> None:
        with self._lock:
            self._discard_stream()

    def _discard_stream(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.close()
        except OSError:
            pass  # Handle is being dropped either way
        self._stream = None
        self._stream_identity = None

    def __repr__(self) -> str:
        return f"FileSink(category={self.category!r}, path={str(self.path)!r})"
