"""Command-line interface for reqscope.

Provides commands for inspecting formats, rendering sample records, rotating
and viewing log files, and serving the demo app.
"""

from .main import cli, main

__all__ = ["cli", "main"]
