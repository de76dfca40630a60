"""Daily rotation of persistent sinks.

Runs as a background asyncio task independent of request handling:

1. Compute the delay until the next local midnight and sleep once.
2. Rotate every registered file sink, naming archives after the day that
   just ended (<path>.<YYYY-MM-DD>).
3. Repeat on a fixed 24 hour period until stopped.

A failure rotating one sink is logged and the remaining sinks are still
rotated. The schedule is anchored to the event loop clock, so rotation time
does not drift by the cost of the rotation itself.
"""

from __future__ import annotations

__all__ = [
    "RotationScheduler",
    "next_midnight",
    "seconds_until_next_midnight",
]

import asyncio
import logging
import traceback
from datetime import date, datetime, timedelta
from pathlib import Path
from typing import Awaitable, Callable, Iterable

from reqscope.constants import ROTATION_PERIOD_SECONDS
from reqscope.exceptions import SinkRotationError
from reqscope.telemetry.sinks import FileSink
from reqscope.telemetry.system.system_logger import get_system_logger

SinkSource = Callable[[], Iterable[FileSink]]


def next_midnight(now: datetime) -> datetime:
    """First midnight strictly after ``now`` (same tzinfo as ``now``)."""
    tomorrow = now.date() + timedelta(days=1)
    return datetime(tomorrow.year, tomorrow.month, tomorrow.day, tzinfo=now.tzinfo)


def seconds_until_next_midnight(now: datetime | None = None) -> float:
    """Seconds from ``now`` (local time by default) to the next midnight.

    Uses POSIX timestamps so DST transitions are accounted for.
    """
    if now is None:
        now = datetime.now()
    return max(0.0, next_midnight(now).timestamp() - now.timestamp())


class RotationScheduler:
    """Cancellable periodic rotation task.

    Args:
        sinks: File sinks to rotate, or a callable returning them (evaluated
            at every rotation so sinks registered later are included).
        logger: Logger for rotation events.
        clock: Returns local "now"; injectable for tests.
        period_seconds: Interval between rotations after the first.
        sleep: Awaitable sleep; injectable for tests.
    """

    def __init__(
        self,
        sinks: Iterable[FileSink] | SinkSource,
        logger: logging.Logger | None = None,
        clock: Callable[[], datetime] = datetime.now,
        period_seconds: float = ROTATION_PERIOD_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if callable(sinks):
            self._sink_source: SinkSource = sinks
        else:
            fixed = list(sinks)
            self._sink_source = lambda: fixed
        self.logger = logger or get_system_logger()
        self.clock = clock
        self.period_seconds = period_seconds
        self._sleep = sleep
        self._task: asyncio.Task[None] | None = None
        self._running = False
        self._crashed = False
        self.rotation_count = 0

    @property
    def is_running(self) -> bool:
        return self._running and self._task is not None and not self._task.done()

    @property
    def is_healthy(self) -> bool:
        """Check if the scheduler is running and hasn't crashed."""
        return self.is_running and not self._crashed

    async def start(self) -> None:
        """Start the background task (no-op if already running)."""
        if self.is_running:
            return
        self._running = True
        self._crashed = False
        self._task = asyncio.create_task(self._run(), name="log_rotation_scheduler")
        self.logger.info(
            {
                "event": "log_rotation_scheduled",
                "message": "Log rotation scheduled",
                "next_rotation": next_midnight(self.clock()).isoformat(),
            }
        )

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        self._running = False
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        try:
            now = self.clock()
            boundary = next_midnight(now)
            fire_at = loop.time() + max(0.0, boundary.timestamp() - now.timestamp())

            while self._running:
                await self._sleep(max(0.0, fire_at - loop.time()))
                if not self._running:
                    break

                # Archives are named after the day that just ended
                self.rotate_all((boundary - timedelta(days=1)).date(), scheduled=True)

                boundary += timedelta(seconds=self.period_seconds)
                fire_at += self.period_seconds
        except asyncio.CancelledError:
            raise  # Normal shutdown
        except Exception as e:
            self._crashed = True
            self.logger.error(
                {
                    "event": "log_rotation_scheduler_crashed",
                    "message": f"Log rotation scheduler crashed: {e}",
                    "error": str(e),
                    "traceback": traceback.format_exc(),
                }
            )
        finally:
            self._running = False

    def rotate_all(self, label_date: date | None = None, *, scheduled: bool = False) -> dict[str, Path | None]:
        """Rotate every registered file sink.

        Args:
            label_date: Date used in archive names (defaults to today).
            scheduled: True only for the midnight rotation; a scheduled
                rotation is skipped for sinks already rotated on schedule
                for label_date.

        Returns:
            Mapping of sink category to archive path (None when the sink was
            skipped or failed).
        """
        if label_date is None:
            label_date = self.clock().date()

        results: dict[str, Path | None] = {}
        for sink in self._sink_source():
            try:
                archive = sink.rotate(label_date, scheduled=scheduled)
            except (SinkRotationError, OSError) as e:
                results[sink.category] = None
                self.logger.error(
                    {
                        "event": "log_rotation_failed",
                        "message": f"Log rotation failed for {sink.path}: {e}",
                        "category": sink.category,
                        "path": str(sink.path),
                        "error": str(e),
                        "error_type": type(e).__name__,
                    }
                )
                continue

            results[sink.category] = archive
            if archive is not None:
                self.logger.info(
                    {
                        "event": "log_rotated",
                        "message": f"Log rotated: {sink.path} -> {archive}",
                        "category": sink.category,
                        "path": str(sink.path),
                        "archive": str(archive),
                        "scheduled": scheduled,
                    }
                )

        self.rotation_count += 1
        return results
