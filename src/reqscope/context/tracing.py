"""Correlation id generation and trace-time context creation."""

from __future__ import annotations

__all__ = [
    "generate_correlation_id",
    "parse_content_length",
    "start_trace",
]

import random
import string
import time

from reqscope.context.request_context import RequestContext, RequestPhase

_BASE36_ALPHABET = string.digits + string.ascii_lowercase
_ID_SUFFIX_LENGTH = 9


def generate_correlation_id(now_ms: int | None = None, rng: random.Random | None = None) -> str:
    """Generate a correlation id like ``req_1733309317123_k3j9x0a2b``.

    Args:
        now_ms: Epoch milliseconds (defaults to now).
        rng: Random source (defaults to the module-level generator).

    Returns:
        Correlation id string.
    """
    if now_ms is None:
        now_ms = time.time_ns() // 1_000_000
    choice = (rng or random).choice
    suffix = "".join(choice(_BASE36_ALPHABET) for _ in range(_ID_SUFFIX_LENGTH))
    return f"req_{now_ms}_{suffix}"


def parse_content_length(value: str | None) -> int:
    """Parse a Content-Length header value.

    Returns 0 for absent, non-numeric or negative values.
    """
    if not value:
        return 0
    try:
        length = int(value.strip())
    except ValueError:
        return 0
    return length if length > 0 else 0


def start_trace(content_length: str | None = None, correlation_id: str | None = None) -> RequestContext:
    """Create a traced RequestContext with start_instant captured now.

    Args:
        content_length: Raw Content-Length request header.
        correlation_id: Explicit id (generated if None).

    Returns:
        RequestContext in the TRACED phase.
    """
    context = RequestContext(
        correlation_id=correlation_id or generate_correlation_id(),
        start_instant=time.perf_counter_ns(),
        declared_content_length=parse_content_length(content_length),
    )
    context.advance(RequestPhase.TRACED)
    return context
