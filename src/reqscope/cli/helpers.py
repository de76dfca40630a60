"""Shared CLI helpers: config loading, common options and output styling.

Output conventions: section titles in cyan bold, successful rotations in
green, errors in red on stderr, neutral states dimmed.
"""

from __future__ import annotations

__all__ = [
    "config_options",
    "echo_error",
    "echo_rotation",
    "format_size",
    "load_config_or_exit",
    "style_file_state",
    "style_section",
]

import sys
from pathlib import Path
from typing import Any, Callable

import click

from reqscope.config import AppConfig, load_config
from reqscope.exceptions import ConfigurationError


# =============================================================================
# Styling
# =============================================================================


def style_section(title: str, detail: str | None = None) -> str:
    """Section title, e.g. "Formats" or "Log files: /var/log/app"."""
    text = f"{title}: {detail}" if detail else title
    return click.style(text, fg="cyan", bold=True)


def echo_error(message: str) -> None:
    click.echo(click.style(f"✗ {message}", fg="red"), err=True)


def format_size(size: int) -> str:
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def style_file_state(path: Path) -> str:
    """Green "exists (<size>)" or yellow "not created"."""
    if not path.exists():
        return click.style("not created", fg="yellow")
    return click.style("exists", fg="green") + f" ({format_size(path.stat().st_size)})"


def echo_rotation(path: Path, archive: Path | None, existed: bool) -> bool:
    """Report one sink's rotation outcome. Returns False if it failed."""
    if archive is not None:
        click.echo(click.style(f"✓ {path.name} -> {archive.name}", fg="green"))
        return True
    if existed:
        echo_error(f"{path.name}: rotation failed")
        return False
    click.echo(click.style(f"{path.name}: nothing to rotate", dim=True))
    return True


# =============================================================================
# Options and config
# =============================================================================


def config_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Add --config and --log-dir options to a command."""
    func = click.option(
        "--log-dir",
        "-d",
        "log_dir",
        type=click.Path(file_okay=False, path_type=Path),
        help="Log directory (overrides config and REQSCOPE_LOG_DIR)",
    )(func)
    func = click.option(
        "--config",
        "-c",
        "config_path",
        type=click.Path(dir_okay=False, path_type=Path),
        help="Path to a JSON config file",
    )(func)
    return func


def load_config_or_exit(config_path: Path | None, log_dir: Path | None = None) -> AppConfig:
    """Load effective config, exiting with the config error code on failure."""
    try:
        config = load_config(config_path)
    except ConfigurationError as e:
        echo_error(str(e))
        sys.exit(ConfigurationError.exit_code)

    if log_dir is not None:
        config = config.model_copy(
            update={"logging": config.logging.model_copy(update={"log_dir": str(log_dir)})}
        )
    return config
