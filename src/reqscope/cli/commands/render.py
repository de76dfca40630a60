"""Render command for reqscope CLI.

Renders a format against a synthetic request, for checking templates
before deploying them.
"""

from __future__ import annotations

__all__ = ["render"]

import sys

import click

from reqscope.context.exchange import RequestInfo, ResponseInfo
from reqscope.context.request_context import RequestContext, RequestPhase
from reqscope.exceptions import ConfigurationError
from reqscope.telemetry.formats import BUILTIN_FORMATS, build_format
from reqscope.telemetry.tokens import TokenRegistry

from ..helpers import echo_error


def _parse_headers(values: tuple[str, ...]) -> dict[str, str]:
    headers: dict[str, str] = {}
    for value in values:
        name, sep, header_value = value.partition(":")
        if not sep or not name.strip():
            raise click.BadParameter(f"Expected 'Name: value', got {value!r}", param_hint="--header")
        headers[name.strip().lower()] = header_value.strip()
    return headers


@click.command()
@click.option(
    "--format",
    "-f",
    "format_name",
    type=click.Choice(list(BUILTIN_FORMATS.keys())),
    default="dev",
    show_default=True,
    help="Built-in format to render",
)
@click.option("--template", "-t", help="Ad-hoc flat template (overrides --format)")
@click.option("--method", "-m", default="GET", show_default=True)
@click.option("--path", "-p", "path", default="/", show_default=True)
@click.option("--status", "-s", type=int, default=200, show_default=True)
@click.option("--duration-ms", type=float, help="Response time; omit to render an unfinished request")
@click.option("--user-id", help="Authenticated identity")
@click.option("--error", "error_message", help="Attached error message")
@click.option("--remote-addr", default="127.0.0.1", show_default=True)
@click.option("--header", "-H", "headers", multiple=True, help="Request header 'Name: value' (repeatable)")
def render(
    format_name: str,
    template: str | None,
    method: str,
    path: str,
    status: int,
    duration_ms: float | None,
    user_id: str | None,
    error_message: str | None,
    remote_addr: str,
    headers: tuple[str, ...],
) -> None:
    """Render one record for a synthetic request."""
    registry = TokenRegistry()
    try:
        if template is not None:
            fmt = build_format("adhoc", template, registry)
        else:
            fmt = build_format(format_name, BUILTIN_FORMATS[format_name], registry)
    except ConfigurationError as e:
        echo_error(str(e))
        sys.exit(ConfigurationError.exit_code)

    context = RequestContext(correlation_id="req_cli_render", start_instant=0, identity=user_id)
    context.advance(RequestPhase.HANDLED)
    if duration_ms is not None:
        context.mark_end(int(duration_ms * 1_000_000))

    error = RuntimeError(error_message) if error_message else None
    path_part, _, query = path.partition("?")
    request = RequestInfo(
        method=method.upper(),
        path=path_part,
        query_string=query,
        context=context,
        headers=_parse_headers(headers),
        client_host=remote_addr,
    )
    response = ResponseInfo(status_code=status, error=error)
    click.echo(fmt.render(request, response))
