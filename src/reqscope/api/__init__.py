"""Management/demo API for reqscope.

The app factory wires the telemetry middleware, structured error handlers
and the rotation scheduler lifecycle into a FastAPI application.
"""

from reqscope.api.server import create_app

__all__ = ["create_app"]
