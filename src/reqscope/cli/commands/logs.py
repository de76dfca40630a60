"""Logs command group for reqscope CLI.

Provides log viewing commands that read directly from log files.
No running server required.
"""

from __future__ import annotations

__all__ = ["logs"]

import json
import sys
from pathlib import Path

import click

from reqscope.constants import FILE_SINK_CATEGORIES, LOG_FILE_NAMES, RECENT_RECORDS_DEFAULT_LIMIT
from reqscope.telemetry.sinks import FileSink

from ..helpers import config_options, format_size, load_config_or_exit, style_file_state, style_section

LOG_DESCRIPTIONS: dict[str, str] = {
    "access": "Access log (combined format)",
    "error": "Failed requests (status >= 400)",
    "api": "API requests (structured JSON)",
}


@click.group()
def logs() -> None:
    """Log viewing commands.

    View the access, error and api logs directly from disk.
    """
    pass


@logs.command("list")
@config_options
def logs_list(config_path: Path | None, log_dir: Path | None) -> None:
    """List log files and their rotated archives."""
    config = load_config_or_exit(config_path, log_dir)
    directory = config.logging.log_path

    click.echo("\n" + style_section("Log files", str(directory)) + "\n")

    for category in FILE_SINK_CATEGORIES:
        log_path = directory / LOG_FILE_NAMES[category]
        click.echo(f"  {category:8} - {LOG_DESCRIPTIONS[category]}")
        click.echo(f"             {style_file_state(log_path)}")
        click.echo(f"             {log_path}")

        archives = sorted(directory.glob(f"{log_path.name}.*")) if directory.exists() else []
        if archives:
            click.echo(f"             {click.style(f'{len(archives)} archive(s):', fg='yellow')}")
            for archive in archives:
                click.echo(f"               - {archive.name} ({format_size(archive.stat().st_size)})")
        click.echo()


@logs.command("show")
@config_options
@click.option(
    "--type",
    "-t",
    "log_type",
    type=click.Choice(list(FILE_SINK_CATEGORIES)),
    required=True,
    help="Log type to show (required)",
)
@click.option(
    "--limit",
    "-n",
    default=RECENT_RECORDS_DEFAULT_LIMIT,
    show_default=True,
    help="Number of records to show",
)
def logs_show(config_path: Path | None, log_dir: Path | None, log_type: str, limit: int) -> None:
    """Show the most recent records of a log, oldest first."""
    config = load_config_or_exit(config_path, log_dir)
    sink = FileSink.for_category(log_type, config.logging.log_path)

    if not sink.path.exists():
        click.echo(
            json.dumps(
                {
                    "error": f"Log file not found: {sink.path}",
                    "hint": "No request has been recorded in this log yet",
                }
            )
        )
        return

    try:
        records = sink.read_recent(limit)
    except OSError as e:
        click.echo(json.dumps({"error": f"Failed to read log file: {e}"}))
        sys.exit(1)

    for record in records:
        click.echo(record)
