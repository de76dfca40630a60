"""Read-only request/response views that tokens and filters evaluate against.

RequestInfo is built from the ASGI scope once per request; ResponseInfo from
the captured ``http.response.start`` message. Both keep headers in a
lower-cased dict so lookups are case-insensitive.
"""

from __future__ import annotations

__all__ = [
    "RequestInfo",
    "ResponseInfo",
    "decode_headers",
]

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from reqscope.context.request_context import RequestContext


def decode_headers(raw_headers: Iterable[tuple[bytes, bytes]] | None) -> dict[str, str]:
    """Decode ASGI header pairs into a lower-cased dict.

    Repeated headers are joined with ", ".
    """
    headers: dict[str, str] = {}
    for raw_name, raw_value in raw_headers or ():
        name = raw_name.decode("latin-1").lower()
        value = raw_value.decode("latin-1")
        if name in headers:
            headers[name] = f"{headers[name]}, {value}"
        else:
            headers[name] = value
    return headers


@dataclass(frozen=True, slots=True)
class RequestInfo:
    """Inbound request state.

    Attributes:
        method: HTTP method (upper case).
        path: Request path.
        query_string: Raw query string without "?".
        http_version: "1.1", "2", ...
        headers: Lower-cased header mapping.
        client_host: Client address, None if unknown.
        context: The request's telemetry context.
    """

    method: str
    path: str
    context: RequestContext
    query_string: str = ""
    http_version: str = "1.1"
    headers: Mapping[str, str] = field(default_factory=dict)
    client_host: str | None = None

    @classmethod
    def from_scope(cls, scope: Mapping[str, Any], context: RequestContext) -> "RequestInfo":
        """Build from an ASGI http scope."""
        client = scope.get("client")
        query = scope.get("query_string") or b""
        return cls(
            method=str(scope.get("method", "GET")).upper(),
            path=scope.get("path") or "/",
            context=context,
            query_string=query.decode("latin-1") if isinstance(query, bytes) else str(query),
            http_version=scope.get("http_version") or "1.1",
            headers=decode_headers(scope.get("headers")),
            client_host=client[0] if client else None,
        )

    @property
    def url(self) -> str:
        """Path with query string, as it appeared on the request line."""
        if self.query_string:
            return f"{self.path}?{self.query_string}"
        return self.path

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())


@dataclass(frozen=True, slots=True)
class ResponseInfo:
    """Response state as known at evaluation time.

    status_code is None until the response has started.
    """

    status_code: int | None = None
    headers: Mapping[str, str] = field(default_factory=dict)
    error: BaseException | None = None

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())

    @property
    def is_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 400
