"""Serve command for reqscope CLI.

Runs the reqscope FastAPI app under uvicorn, with the telemetry
pipeline installed and rotation scheduled.
"""

from __future__ import annotations

__all__ = ["serve"]

from pathlib import Path

import click

from ..helpers import config_options, load_config_or_exit


@click.command()
@config_options
@click.option("--host", default="127.0.0.1", show_default=True, help="Bind address")
@click.option("--port", "-p", default=8000, show_default=True, type=int, help="Bind port")
def serve(config_path: Path | None, log_dir: Path | None, host: str, port: int) -> None:
    """Start the HTTP server."""
    import uvicorn

    from reqscope.api.server import create_app

    config = load_config_or_exit(config_path, log_dir)
    app = create_app(config)
    uvicorn.run(app, host=host, port=port, log_level="warning")
