"""Side monitors: independent hooks that reuse the tracing data.

- PerformanceMonitor: on completion, warns about slow and memory-intensive
  requests (snapshot taken at trace time).
- SizeMonitor: at trace time, notes requests declaring a large body.
- ActivityTracker: on completion, records state-changing requests made by an
  authenticated user.

All records go to the leveled system logger as dicts with an "event" key.
"""

from __future__ import annotations

__all__ = [
    "ActivityTracker",
    "MemoryProbe",
    "PerformanceMonitor",
    "SizeMonitor",
]

import logging
from typing import Any, Callable

from reqscope.constants import (
    LARGE_REQUEST_THRESHOLD_BYTES,
    MEMORY_INCREASE_THRESHOLD_BYTES,
    READ_ONLY_METHOD,
    SLOW_REQUEST_THRESHOLD_MS,
)
from reqscope.context.exchange import RequestInfo, ResponseInfo
from reqscope.telemetry.system.system_logger import get_system_logger
from reqscope.telemetry.tokens import current_rss_bytes
from reqscope.utils.logging.iso_formatter import iso_timestamp

MemoryProbe = Callable[[], int]


def _megabytes(num_bytes: int) -> str:
    return f"{round(num_bytes / 1024 / 1024)}MB"


class PerformanceMonitor:
    """Duration and memory-growth warnings.

    Thresholds are exclusive: a request warns only when it exceeds them.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        memory_probe: MemoryProbe = current_rss_bytes,
        slow_threshold_ms: int = SLOW_REQUEST_THRESHOLD_MS,
        memory_threshold_bytes: int = MEMORY_INCREASE_THRESHOLD_BYTES,
    ) -> None:
        self.logger = logger or get_system_logger()
        self.memory_probe = memory_probe
        self.slow_threshold_ms = slow_threshold_ms
        self.memory_threshold_bytes = memory_threshold_bytes

    def snapshot(self) -> int:
        """Memory reading taken at trace time."""
        return self.memory_probe()

    def on_complete(self, request: RequestInfo, response: ResponseInfo, start_memory: int) -> list[str]:
        """Evaluate a completed request against the snapshot from trace time."""
        elapsed = request.context.elapsed_ms
        if elapsed is None:
            return []
        return self.evaluate(request, response, int(elapsed), self.memory_probe() - start_memory)

    def evaluate(
        self,
        request: RequestInfo,
        response: ResponseInfo,
        duration_ms: int,
        memory_delta: int,
    ) -> list[str]:
        """Emit warnings for a measured request.

        Args:
            request: The request.
            response: The completed response.
            duration_ms: Wall-clock duration in whole milliseconds.
            memory_delta: Memory growth in bytes between trace and completion.

        Returns:
            Event names emitted (empty if none).
        """
        emitted: list[str] = []
        user_id = request.context.identity

        if duration_ms > self.slow_threshold_ms:
            self.logger.warning(
                {
                    "event": "slow_request",
                    "message": f"Slow request detected: {request.method} {request.url} took {duration_ms}ms",
                    "method": request.method,
                    "url": request.url,
                    "duration": f"{duration_ms}ms",
                    "status_code": response.status_code,
                    "user_id": user_id,
                    "request_id": request.context.correlation_id,
                    "memory_delta": memory_delta,
                }
            )
            emitted.append("slow_request")

        if memory_delta > self.memory_threshold_bytes:
            self.logger.warning(
                {
                    "event": "memory_intensive_request",
                    "message": f"Memory-intensive request: {request.method} {request.url} grew {_megabytes(memory_delta)}",
                    "method": request.method,
                    "url": request.url,
                    "memory_increase": _megabytes(memory_delta),
                    "memory_increase_bytes": memory_delta,
                    "user_id": user_id,
                    "request_id": request.context.correlation_id,
                }
            )
            emitted.append("memory_intensive_request")

        return emitted


class SizeMonitor:
    """Notes requests whose declared Content-Length exceeds the threshold."""

    def __init__(
        self,
        logger: logging.Logger | None = None,
        threshold_bytes: int = LARGE_REQUEST_THRESHOLD_BYTES,
    ) -> None:
        self.logger = logger or get_system_logger()
        self.threshold_bytes = threshold_bytes

    def check(self, request: RequestInfo) -> bool:
        """Returns True if a large_request record was emitted."""
        size = request.context.declared_content_length
        if size <= self.threshold_bytes:
            return False
        self.logger.info(
            {
                "event": "large_request",
                "message": f"Large request received: {request.method} {request.url} ({_megabytes(size)})",
                "method": request.method,
                "url": request.url,
                "size": _megabytes(size),
                "size_bytes": size,
                "user_id": request.context.identity,
                "user_agent": request.header("user-agent"),
                "request_id": request.context.correlation_id,
            }
        )
        return True


class ActivityTracker:
    """Records non-GET requests made by an authenticated user."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or get_system_logger()

    def check(self, request: RequestInfo, response: ResponseInfo) -> bool:
        """Returns True if a user_activity record was emitted."""
        user_id = request.context.identity
        if not user_id or request.method == READ_ONLY_METHOD:
            return False
        fields: dict[str, Any] = {
            "event": "user_activity",
            "message": f"User activity: {user_id} {request.method} {request.url}",
            "user_id": user_id,
            "action": f"{request.method} {request.url}",
            "ip": request.client_host,
            "user_agent": request.header("user-agent"),
            "timestamp": iso_timestamp(),
            "request_id": request.context.correlation_id,
        }
        self.logger.info(fields)
        return True
