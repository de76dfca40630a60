"""FastAPI application factory with the telemetry pipeline installed.

Currently implements:
- Liveness probes (/health, /ping)
- Telemetry management API (/api/telemetry)

The lifespan starts the rotation scheduler on startup and, on shutdown,
stops it and closes every sink handle.

Usage:
    uv run uvicorn reqscope.api.server:create_app --factory --port 8000

Applications embedding reqscope typically call create_app() and then
include their own routers, or call install_telemetry() on an existing app.
"""

from __future__ import annotations

__all__ = ["create_app"]

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from reqscope import __version__
from reqscope.api.errors import register_error_handlers
from reqscope.api.routes import health, telemetry
from reqscope.config import AppConfig, load_config
from reqscope.middleware import install_telemetry
from reqscope.telemetry.pipeline import TelemetryPipeline


def create_app(
    config: AppConfig | None = None,
    pipeline: TelemetryPipeline | None = None,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        config: Configuration (defaults plus environment overrides if None).
        pipeline: Pre-built pipeline (built from config if None).

    Returns:
        Configured FastAPI application.

    Raises:
        ConfigurationError: If the pipeline cannot be built.
    """
    if config is None:
        config = load_config()
    if pipeline is None:
        pipeline = TelemetryPipeline.from_config(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await pipeline.start()
        try:
            yield
        finally:
            await pipeline.stop()

    app = FastAPI(
        title="reqscope",
        description="Request observability pipeline",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.config = config

    register_error_handlers(app)
    install_telemetry(app, pipeline)

    app.include_router(health.router, tags=["health"])
    app.include_router(telemetry.router, prefix="/api/telemetry", tags=["telemetry"])

    return app
