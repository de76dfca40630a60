"""Custom exceptions for reqscope.

Exceptions are organized by how the pipeline treats them:

Startup Failures (application must not start):
    - ConfigurationError: Invalid pipeline configuration
    - UnknownTokenError: A format references a token that is not registered

Contained Failures (logged, never reach the request path):
    - SinkError: A sink could not open or write its file
    - SinkRotationError: A sink could not be rotated

Programming Errors:
    - LifecycleError: A request context was moved backwards through its phases

Usage:
    from reqscope.exceptions import ConfigurationError, UnknownTokenError
"""

from __future__ import annotations

__all__ = [
    "ConfigurationError",
    "LifecycleError",
    "ReqscopeError",
    "SinkError",
    "SinkRotationError",
    "UnknownTokenError",
]


class ReqscopeError(Exception):
    """Base exception for all reqscope errors."""


# =============================================================================
# Startup Failures
# =============================================================================


class ConfigurationError(ReqscopeError):
    """Pipeline configuration is invalid.

    Raised when:
    - Config file contains invalid JSON or fails validation
    - A format template is malformed
    - A stage references an unknown format or sink

    Detected while the pipeline is built, so the application fails to start
    instead of failing per request.
    """

    exit_code: int = 2


class UnknownTokenError(ConfigurationError):
    """A format template references a token that is not registered.

    Attributes:
        token_name: The unknown token name.
        template: The template that referenced it (if known).
    """

    def __init__(self, token_name: str, template: str | None = None) -> None:
        self.token_name = token_name
        self.template = template
        message = f"Unknown token ':{token_name}'"
        if template is not None:
            message += f" in format {template!r}"
        super().__init__(message)


# =============================================================================
# Contained Failures
# =============================================================================


class SinkError(ReqscopeError):
    """A file sink could not be opened or written.

    Attributes:
        category: Sink category ("access", "error", "api").
    """

    def __init__(self, message: str, category: str) -> None:
        super().__init__(message)
        self.category = category


class SinkRotationError(SinkError):
    """A file sink could not be rotated (e.g., rename failed)."""


# =============================================================================
# Programming Errors
# =============================================================================


class LifecycleError(ReqscopeError):
    """A request context transition went backwards or skipped completion rules."""
