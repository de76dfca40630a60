"""Formats command for reqscope CLI.

Lists the built-in formats and the registered tokens.
"""

from __future__ import annotations

__all__ = ["formats"]

import json

import click

from reqscope.telemetry.formats import StructuredFormat, build_formats
from reqscope.telemetry.tokens import TokenRegistry

from ..helpers import style_section


@click.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def formats(as_json: bool) -> None:
    """List built-in formats and available tokens."""
    registry = TokenRegistry()
    compiled = build_formats(registry)

    if as_json:
        click.echo(
            json.dumps(
                {
                    "formats": [fmt.describe() for fmt in compiled.values()],
                    "tokens": registry.names(),
                },
                indent=2,
            )
        )
        return

    click.echo(style_section("Formats"))
    for fmt in compiled.values():
        click.echo(f"  {fmt.name} ({fmt.kind})")
        if isinstance(fmt, StructuredFormat):
            for field_name, template in fmt.describe()["fields"].items():
                click.echo(f"    {field_name}: {template}")
        else:
            click.echo(f"    {fmt.describe()['template']}")

    click.echo()
    click.echo(style_section("Tokens"))
    for name in registry.names():
        click.echo(f"  :{name}")
