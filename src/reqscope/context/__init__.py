"""Request context: correlation identity, timing envelope, lifecycle.

Structure:
    request_context   RequestContext and RequestPhase (lifecycle + completion event)
    tracing           Correlation id generation, trace-time context creation
    exchange          RequestInfo / ResponseInfo views for tokens and filters
"""

from reqscope.context.exchange import RequestInfo, ResponseInfo, decode_headers
from reqscope.context.request_context import CompletionListener, RequestContext, RequestPhase
from reqscope.context.tracing import generate_correlation_id, parse_content_length, start_trace

__all__ = [
    "CompletionListener",
    "RequestContext",
    "RequestInfo",
    "RequestPhase",
    "ResponseInfo",
    "decode_headers",
    "generate_correlation_id",
    "parse_content_length",
    "start_trace",
]
