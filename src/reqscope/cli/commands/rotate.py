"""Rotate command for reqscope CLI.

Rotates the access, error and api logs in a log directory immediately.
No running server required. When a server is writing to the same
directory, its sinks notice the renamed files and reopen fresh ones on
their next write, so new records never land in the archives.
"""

from __future__ import annotations

__all__ = ["rotate"]

import sys
from datetime import date, datetime
from pathlib import Path

import click

from reqscope.constants import FILE_SINK_CATEGORIES
from reqscope.telemetry.rotation import RotationScheduler
from reqscope.telemetry.sinks import FileSink

from ..helpers import config_options, echo_rotation, load_config_or_exit


@click.command()
@config_options
@click.option(
    "--date",
    "label",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    help="Archive date label (default: today)",
)
def rotate(config_path: Path | None, log_dir: Path | None, label: datetime | None) -> None:
    """Rotate log files now.

    Each existing log is renamed to <name>.<YYYY-MM-DD>; missing logs are
    skipped. Exits 1 if any rotation failed.
    """
    config = load_config_or_exit(config_path, log_dir)
    directory = config.logging.log_path
    sinks = [FileSink.for_category(category, directory) for category in FILE_SINK_CATEGORIES]
    existed = {sink.category: sink.path.exists() for sink in sinks}

    label_date: date = label.date() if label is not None else date.today()
    results = RotationScheduler(sinks).rotate_all(label_date)

    ok = True
    for sink in sinks:
        ok = echo_rotation(sink.path, results.get(sink.category), existed[sink.category]) and ok

    if not ok:
        sys.exit(1)
