"""Pipeline stage: one format + one sink + one filter.

Stages are immutable, registered once at startup and evaluated for every
request that matches their activation predicate.
"""

from __future__ import annotations

__all__ = ["ActivationPredicate", "PipelineStage"]

from dataclasses import dataclass, field
from typing import Any, Callable

from reqscope.context.exchange import RequestInfo, ResponseInfo
from reqscope.telemetry.filters import Filter, never
from reqscope.telemetry.formats import Format
from reqscope.telemetry.sinks import Sink

ActivationPredicate = Callable[[RequestInfo], bool]

# Response placeholder for evaluating path-only filters at trace time
_NOT_STARTED = ResponseInfo()


@dataclass(frozen=True, slots=True)
class PipelineStage:
    """Binding of (format, sink, filter) plus an activation predicate.

    Attributes:
        name: Unique stage name within a pipeline.
        format: Format used to render records.
        sink: Destination for rendered records.
        skip: Suppression filter (True = emit nothing).
        active: Optional activation predicate; None means always active.
    """

    name: str
    format: Format
    sink: Sink
    skip: Filter = field(default=never)
    active: ActivationPredicate | None = None

    def is_active(self, request: RequestInfo) -> bool:
        return self.active is None or self.active(request)

    def suppressed_early(self, request: RequestInfo) -> bool:
        """True if the stage can be ruled out before the response exists.

        Only path-only filters are evaluated here; status-dependent filters
        always wait for completion.
        """
        if not self.is_active(request):
            return True
        if self.skip.requires_response:
            return False
        return self.skip(request, _NOT_STARTED)

    def handle(self, request: RequestInfo, response: ResponseInfo) -> bool:
        """Evaluate the filter; if not suppressed, render and append.

        Returns:
            True if a record was written to the sink.
        """
        if self.skip(request, response):
            return False
        return self.sink.append(self.format.render(request, response))

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "format": self.format.name,
            "sink": self.sink.category,
            "skip": self.skip.name,
        }
