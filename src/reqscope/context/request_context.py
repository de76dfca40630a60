"""Per-request telemetry context and lifecycle.

A RequestContext is created by the tracing middleware when a request enters
the application and is owned by that request until it completes. It carries
the correlation id, the timing envelope and the optional data other layers
attach (authenticated identity, session id, error detail).

Lifecycle (one-directional):
    STARTED -> TRACED -> HANDLED -> COMPLETED

Completion is an explicit event: interested parties subscribe with
on_complete() and are called exactly once, after end_instant is recorded.
"""

from __future__ import annotations

__all__ = [
    "CompletionListener",
    "RequestContext",
    "RequestPhase",
]

import time
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Callable

from reqscope.exceptions import LifecycleError


class RequestPhase(IntEnum):
    """Request lifecycle phases, ordered."""

    STARTED = 0
    TRACED = 1
    HANDLED = 2
    COMPLETED = 3


CompletionListener = Callable[["RequestContext"], None]


@dataclass(slots=True)
class RequestContext:
    """Mutable telemetry state for a single request.

    Instants are time.perf_counter_ns() readings; only their difference is
    meaningful.

    Attributes:
        correlation_id: Unique id joining records across sinks.
        start_instant: Captured at trace time.
        end_instant: Captured once when the response completes.
        declared_content_length: Parsed Content-Length, 0 if absent/invalid.
        identity: User id set by the auth layer, None for anonymous.
        session_id: Session id if a session mechanism is present.
        error: Exception attached by error handling for failed responses.
        phase: Current lifecycle phase.
    """

    correlation_id: str
    start_instant: int | None
    declared_content_length: int = 0
    identity: str | None = None
    session_id: str | None = None
    error: BaseException | None = None
    end_instant: int | None = None
    phase: RequestPhase = RequestPhase.STARTED
    _listeners: list[CompletionListener] = field(default_factory=list, repr=False)

    @property
    def is_completed(self) -> bool:
        return self.phase is RequestPhase.COMPLETED

    @property
    def elapsed_ms(self) -> float | None:
        """Response time in milliseconds, or None if either instant is absent."""
        if self.start_instant is None or self.end_instant is None:
            return None
        return (self.end_instant - self.start_instant) / 1_000_000

    def advance(self, phase: RequestPhase) -> None:
        """Move to a later phase.

        Re-entering the current phase is allowed (idempotent).

        Raises:
            LifecycleError: If phase is earlier than the current phase.
        """
        if phase < self.phase:
            raise LifecycleError(
                f"Request {self.correlation_id} cannot move from {self.phase.name} back to {phase.name}"
            )
        self.phase = phase

    def on_complete(self, listener: CompletionListener) -> None:
        """Subscribe to the completion event.

        Raises:
            LifecycleError: If the request already completed.
        """
        if self.is_completed:
            raise LifecycleError(f"Request {self.correlation_id} already completed")
        self._listeners.append(listener)

    def mark_end(self, instant: int | None = None) -> bool:
        """Record end_instant if it is not set yet.

        Args:
            instant: perf_counter_ns reading (defaults to now).

        Returns:
            True if the instant was recorded, False if it was already set.

        Raises:
            LifecycleError: If start_instant was never captured.
        """
        if self.end_instant is not None:
            return False
        if self.start_instant is None:
            raise LifecycleError(f"Request {self.correlation_id} has no start instant")
        self.end_instant = time.perf_counter_ns() if instant is None else instant
        return True

    def complete(self) -> None:
        """Fire the completion event (at most once).

        Records end_instant if the caller has not already done so, moves to
        COMPLETED and calls every listener in subscription order.
        """
        if self.is_completed:
            return
        self.mark_end()
        self.advance(RequestPhase.COMPLETED)
        listeners, self._listeners = self._listeners, []
        for listener in listeners:
            listener(self)

    def attach_error(self, error: BaseException) -> None:
        """Attach error detail for the `error` token (first error wins)."""
        if self.error is None:
            self.error = error
