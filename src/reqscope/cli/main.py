"""Main CLI entry point for reqscope.

Defines the CLI group and registers all subcommands.

Commands:
    formats - List built-in formats and tokens
    logs    - Log viewing (list, show)
    render  - Render a format against a synthetic request
    rotate  - Rotate log files now
    serve   - Start the HTTP server

Subcommand help:
    reqscope COMMAND -h         Show help for a specific command
"""

from __future__ import annotations

__all__ = ["cli", "main"]

import sys

import click

from reqscope import __version__

from .commands.formats import formats
from .commands.logs import logs
from .commands.render import render
from .commands.rotate import rotate
from .commands.serve import serve


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.option("--version", "-v", is_flag=True, help="Show version")
@click.pass_context
def cli(ctx: click.Context, version: bool) -> None:
    """reqscope: request observability for ASGI services."""
    if version:
        click.echo(f"reqscope {__version__}")
        sys.exit(0)
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# Register commands
cli.add_command(formats)
cli.add_command(logs)
cli.add_command(render)
cli.add_command(rotate)
cli.add_command(serve)


def main() -> None:
    """Entry point for the reqscope command."""
    cli()


if __name__ == "__main__":
    main()
