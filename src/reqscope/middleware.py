"""Tracing middleware: the entry point of the telemetry pipeline.

This middleware must be the outermost reqscope component (it creates the
context every other component reads) and is responsible for:
1. Creating the RequestContext (correlation id, start instant, declared size)
2. Exposing it as request.state.telemetry for downstream layers (auth sets
   identity, error handlers attach errors)
3. Running the pipeline's trace-time hook
4. Capturing the response status/headers and firing the completion event

It is a pure ASGI middleware rather than BaseHTTPMiddleware: completion is
observed on the final ``http.response.body`` message, so end_instant is
recorded immediately before the last chunk is handed to the server, and
streaming responses are timed to their real end.

Usage:
    pipeline = TelemetryPipeline.from_config(config)
    install_telemetry(app, pipeline)
"""

from __future__ import annotations

__all__ = [
    "TelemetryMiddleware",
    "attach_error",
    "get_request_context",
    "install_telemetry",
    "set_identity",
]

from typing import Any

from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from reqscope.context.exchange import RequestInfo, ResponseInfo, decode_headers
from reqscope.context.request_context import RequestContext, RequestPhase
from reqscope.context.tracing import start_trace
from reqscope.telemetry.pipeline import TelemetryPipeline

# Key under scope["state"] (request.state.telemetry)
STATE_KEY = "telemetry"


class TelemetryMiddleware:
    """ASGI middleware that traces requests through a TelemetryPipeline."""

    def __init__(self, app: ASGIApp, pipeline: TelemetryPipeline) -> None:
        self.app = app
        self.pipeline = pipeline

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = decode_headers(scope.get("headers"))
        context = start_trace(headers.get("content-length"))
        scope.setdefault("state", {})[STATE_KEY] = context
        context.session_id = _session_id_from_scope(scope)

        request = RequestInfo.from_scope(scope, context)
        trace = self.pipeline.begin(request)
        response_start: dict[str, Any] = {}

        def _on_complete(completed: RequestContext) -> None:
            response = ResponseInfo(
                status_code=response_start.get("status"),
                headers=response_start.get("headers", {}),
                error=completed.error,
            )
            self.pipeline.complete(trace, response)

        context.on_complete(_on_complete)
        context.advance(RequestPhase.HANDLED)

        async def send_wrapper(message: Message) -> None:
            message_type = message["type"]
            if message_type == "http.response.start":
                response_start["status"] = message["status"]
                response_start["headers"] = decode_headers(message.get("headers"))
            elif message_type == "http.response.body" and not message.get("more_body", False):
                context.mark_end()
                try:
                    await send(message)
                finally:
                    context.complete()
                return
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception as exc:
            # The outer server error handler will answer with a 500
            context.attach_error(exc)
            response_start.setdefault("status", 500)
            context.complete()
            raise


def _session_id_from_scope(scope: Scope) -> str | None:
    """Session id from an outer session middleware, if one is installed."""
    session = scope.get("session")
    if not isinstance(session, dict):
        return None
    value = session.get("session_id") or session.get("id")
    return str(value) if value else None


def install_telemetry(app: Any, pipeline: TelemetryPipeline) -> None:
    """Add TelemetryMiddleware to a Starlette/FastAPI app.

    Add it last so it wraps every other user middleware.
    """
    app.add_middleware(TelemetryMiddleware, pipeline=pipeline)
    app.state.telemetry_pipeline = pipeline


def get_request_context(request: Request) -> RequestContext | None:
    """Return the RequestContext for a Starlette request, if traced."""
    return getattr(request.state, STATE_KEY, None)


def set_identity(request: Request, user_id: str | None) -> None:
    """Record the authenticated identity (called by the auth layer)."""
    context = get_request_context(request)
    if context is not None:
        context.identity = user_id


def attach_error(request: Request, error: BaseException) -> None:
    """Attach error detail for the `error` token (called by error handlers)."""
    context = get_request_context(request)
    if context is not None:
        context.attach_error(error)
