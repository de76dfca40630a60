"""Token registry: named extractors over request/response state.

A token is a pure function ``(request, response, argument) -> str``. Tokens are
evaluated lazily at render time, never mutate state and never raise for
absent data; they return a sentinel instead ("-", "anonymous", "no-id", "0").

Parameterised tokens take the bracketed argument from the template, e.g.
``:res[content-length]`` calls the ``res`` token with "content-length".
"""

from __future__ import annotations

__all__ = [
    "TOKEN_NAME_PATTERN",
    "TokenExtractor",
    "TokenRegistry",
    "current_rss_bytes",
    "format_response_time",
    "truncate_user_agent",
]

import re
from typing import Callable

import psutil

from reqscope.constants import (
    ANONYMOUS,
    MISSING,
    NO_REQUEST_ID,
    UNKNOWN_ERROR,
    USER_AGENT_SHORT_LENGTH,
)
from reqscope.context.exchange import RequestInfo, ResponseInfo
from reqscope.exceptions import ConfigurationError, UnknownTokenError
from reqscope.utils.logging.iso_formatter import iso_timestamp

TokenExtractor = Callable[[RequestInfo, ResponseInfo, "str | None"], str]

TOKEN_NAME_PATTERN = re.compile(r"^[a-z][a-z0-9-]*$")

_PROCESS = psutil.Process()


def current_rss_bytes() -> int:
    """Resident set size of this process in bytes."""
    return _PROCESS.memory_info().rss


def format_response_time(start_instant: int | None, end_instant: int | None) -> str:
    """Milliseconds between two perf_counter_ns instants, 3 decimals, or "-"."""
    if start_instant is None or end_instant is None:
        return MISSING
    return f"{(end_instant - start_instant) / 1_000_000:.3f}"


def truncate_user_agent(user_agent: str | None) -> str:
    """Hard cut to the first 50 characters, no ellipsis."""
    return (user_agent or "")[:USER_AGENT_SHORT_LENGTH]


# ============================================================================
# Built-in tokens
# ============================================================================


def _response_time_ms(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    context = request.context
    return format_response_time(context.start_instant, context.end_instant)


def _user_id(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return request.context.identity or ANONYMOUS


def _request_id(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return request.context.correlation_id or NO_REQUEST_ID


def _user_agent_short(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return truncate_user_agent(request.header("user-agent"))


def _req_size(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return request.header("content-length") or "0"


def _res_size(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return response.header("content-length") or "0"


def _memory(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return f"{round(current_rss_bytes() / 1024 / 1024)}MB"


def _iso_date(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return iso_timestamp()


def _session_id(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return request.context.session_id or MISSING


def _error(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    if not response.is_error:
        return MISSING
    error = response.error if response.error is not None else request.context.error
    if error is None:
        return MISSING
    return str(error) or UNKNOWN_ERROR


def _method(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return request.method


def _url(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return request.url


def _status(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return str(response.status_code) if response.status_code is not None else MISSING


def _remote_addr(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return request.client_host or MISSING


def _http_version(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return request.http_version or MISSING


def _referrer(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return request.header("referer") or request.header("referrer") or MISSING


def _user_agent(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    return request.header("user-agent") or MISSING


def _req_header(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    if not arg:
        return MISSING
    return request.header(arg) or MISSING


def _res_header(request: RequestInfo, response: ResponseInfo, arg: str | None) -> str:
    if not arg:
        return MISSING
    return response.header(arg) or MISSING


BUILTIN_TOKENS: dict[str, TokenExtractor] = {
    "response-time-ms": _response_time_ms,
    "user-id": _user_id,
    "request-id": _request_id,
    "user-agent-short": _user_agent_short,
    "req-size": _req_size,
    "res-size": _res_size,
    "memory": _memory,
    "iso-date": _iso_date,
    "session-id": _session_id,
    "error": _error,
    "method": _method,
    "url": _url,
    "status": _status,
    "remote-addr": _remote_addr,
    "http-version": _http_version,
    "referrer": _referrer,
    "user-agent": _user_agent,
    "req": _req_header,
    "res": _res_header,
}


class TokenRegistry:
    """Named token extractors.

    Each pipeline owns its registry so custom tokens never leak between
    pipelines (no module-level registration).
    """

    def __init__(self, include_builtins: bool = True) -> None:
        self._tokens: dict[str, TokenExtractor] = dict(BUILTIN_TOKENS) if include_builtins else {}

    def register(self, name: str, extractor: TokenExtractor, *, replace: bool = False) -> None:
        """Register a token.

        Raises:
            ConfigurationError: If the name is malformed, or already taken and
                replace is False.
        """
        if not TOKEN_NAME_PATTERN.match(name):
            raise ConfigurationError(f"Invalid token name {name!r}")
        if name in self._tokens and not replace:
            raise ConfigurationError(f"Token ':{name}' is already registered")
        self._tokens[name] = extractor

    def has(self, name: str) -> bool:
        return name in self._tokens

    def token(self, name: str) -> TokenExtractor:
        """Look up an extractor by name.

        Raises:
            UnknownTokenError: If no token has this name.
        """
        try:
            return self._tokens[name]
        except KeyError:
            raise UnknownTokenError(name) from None

    def names(self) -> list[str]:
        return sorted(self._tokens)

    def evaluate(
        self,
        name: str,
        request: RequestInfo,
        response: ResponseInfo,
        argument: str | None = None,
    ) -> str:
        """Evaluate a token by name (convenience for ad-hoc rendering)."""
        return self.token(name)(request, response, argument)
