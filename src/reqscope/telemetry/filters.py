"""Filter predicates for pipeline stages.

A filter returns True when a stage must SUPPRESS emission for the request.
Composite filters combine members with logical OR: a stage skips if ANY
member matches.

Filters that only look at the path (requires_response=False) may be evaluated
at trace time, before the response exists. Status-dependent filters are
evaluated after completion only.
"""

from __future__ import annotations

__all__ = [
    "Filter",
    "any_of",
    "never",
    "skip_errors",
    "skip_health_checks",
    "skip_static",
    "skip_successful",
    "skip_unless_contains",
    "skip_unless_prefix",
]

from dataclasses import dataclass
from typing import Callable

from reqscope.constants import HEALTH_CHECK_PATHS, STATIC_PREFIXES
from reqscope.context.exchange import RequestInfo, ResponseInfo

Predicate = Callable[[RequestInfo, ResponseInfo], bool]


@dataclass(frozen=True, slots=True)
class Filter:
    """Suppression predicate.

    Attributes:
        name: Label used in descriptions and logs.
        predicate: (request, response) -> True to suppress.
        requires_response: True if the predicate reads response state.
    """

    name: str
    predicate: Predicate
    requires_response: bool = False

    def __call__(self, request: RequestInfo, response: ResponseInfo) -> bool:
        return self.predicate(request, response)

    def __or__(self, other: "Filter") -> "Filter":
        return any_of(self, other)


def any_of(*filters: Filter) -> Filter:
    """Combine filters with OR semantics (suppress if any member matches)."""
    members = tuple(filters)

    def _predicate(request: RequestInfo, response: ResponseInfo) -> bool:
        return any(member(request, response) for member in members)

    return Filter(
        name=" | ".join(member.name for member in members) or "never",
        predicate=_predicate,
        requires_response=any(member.requires_response for member in members),
    )


# ============================================================================
# Primitive predicates
# ============================================================================

never = Filter("never", lambda request, response: False)

skip_health_checks = Filter(
    "health-check",
    lambda request, response: request.path in HEALTH_CHECK_PATHS,
)

# Suppresses successful responses, so the stage only sees errors
skip_successful = Filter(
    "success",
    lambda request, response: response.status_code is None or response.status_code < 400,
    requires_response=True,
)

skip_errors = Filter(
    "error",
    lambda request, response: response.status_code is not None and response.status_code >= 400,
    requires_response=True,
)

skip_static = Filter(
    "static",
    lambda request, response: request.path.startswith(STATIC_PREFIXES),
)


def skip_unless_prefix(prefix: str) -> Filter:
    """Suppress requests whose path lacks ``prefix``."""
    return Filter(
        f"lacks-prefix({prefix})",
        lambda request, response: not request.path.startswith(prefix),
    )


def skip_unless_contains(*parts: str) -> Filter:
    """Suppress requests whose path contains none of ``parts``."""
    return Filter(
        f"lacks({', '.join(parts)})",
        lambda request, response: not any(part in request.path for part in parts),
    )
