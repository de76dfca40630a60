"""Shared fixtures for reqscope tests."""

from __future__ import annotations

from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

from reqscope.context.exchange import RequestInfo, ResponseInfo
from reqscope.context.request_context import RequestContext, RequestPhase
from reqscope.telemetry.sinks import Sink


class MemorySink(Sink):
    """Sink that keeps records in a list."""

    category = "memory"

    def __init__(self) -> None:
        self.records: list[str] = []

    def append(self, record: str) -> bool:
        self.records.append(record)
        return True


@pytest.fixture
def memory_sink() -> MemorySink:
    return MemorySink()


@pytest.fixture
def mock_logger() -> MagicMock:
    """Logger double; monitor and sink events are asserted on its calls."""
    return MagicMock()


@pytest.fixture
def make_request() -> Callable[..., RequestInfo]:
    """Factory for RequestInfo with a context in the HANDLED phase.

    elapsed_ms=None leaves end_instant unset (request still in flight).
    """

    def _make(
        path: str = "/",
        method: str = "GET",
        headers: dict[str, str] | None = None,
        identity: str | None = None,
        elapsed_ms: float | None = None,
        declared_content_length: int = 0,
        query_string: str = "",
        client_host: str | None = "127.0.0.1",
        correlation_id: str = "req_1700000000000_abc123xyz",
        **context_fields: Any,
    ) -> RequestInfo:
        context = RequestContext(
            correlation_id=correlation_id,
            start_instant=0,
            declared_content_length=declared_content_length,
            identity=identity,
            **context_fields,
        )
        context.advance(RequestPhase.HANDLED)
        if elapsed_ms is not None:
            context.mark_end(int(elapsed_ms * 1_000_000))
        return RequestInfo(
            method=method,
            path=path,
            context=context,
            query_string=query_string,
            headers={name.lower(): value for name, value in (headers or {}).items()},
            client_host=client_host,
        )

    return _make


@pytest.fixture
def ok_response() -> ResponseInfo:
    return ResponseInfo(status_code=200, headers={"content-length": "512"})
