"""Format definitions: ordered token templates.

Template syntax:
    :token              substitute the token's value
    :token[argument]    parameterised token (e.g. :res[content-length])
    anything else       literal text

Templates are compiled once into an ordered list of (literal, token) segments
and every token is resolved against the TokenRegistry at compile time, so an
unknown token fails pipeline construction rather than a request.

Two kinds:
    FlatFormat        one template -> one delimited line (console / access logs)
    StructuredFormat  field -> template mapping -> JSON object, fields in
                      declaration order, every field always present
"""

from __future__ import annotations

__all__ = [
    "BUILTIN_FORMATS",
    "CompiledTemplate",
    "FlatFormat",
    "Format",
    "Segment",
    "StructuredFormat",
    "build_format",
    "build_formats",
    "compile_template",
]

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping

from reqscope.context.exchange import RequestInfo, ResponseInfo
from reqscope.exceptions import ConfigurationError, UnknownTokenError
from reqscope.telemetry.tokens import TokenExtractor, TokenRegistry

_TOKEN_PATTERN = re.compile(r":([a-z][a-z0-9-]*)(?:\[([^\]]+)\])?")


@dataclass(frozen=True, slots=True)
class Segment:
    """Literal text followed by an optional token reference."""

    literal: str
    token_name: str | None = None
    argument: str | None = None
    extractor: TokenExtractor | None = None


@dataclass(frozen=True, slots=True)
class CompiledTemplate:
    """A template resolved against a registry."""

    source: str
    segments: tuple[Segment, ...]

    @property
    def token_names(self) -> tuple[str, ...]:
        return tuple(s.token_name for s in self.segments if s.token_name is not None)

    def render(self, request: RequestInfo, response: ResponseInfo) -> str:
        parts: list[str] = []
        for segment in self.segments:
            parts.append(segment.literal)
            if segment.extractor is not None:
                parts.append(segment.extractor(request, response, segment.argument))
        return "".join(parts)


def compile_template(template: str, registry: TokenRegistry) -> CompiledTemplate:
    """Compile a template string into segments.

    Raises:
        UnknownTokenError: If a referenced token is not registered.
    """
    segments: list[Segment] = []
    position = 0
    for match in _TOKEN_PATTERN.finditer(template):
        name, argument = match.group(1), match.group(2)
        try:
            extractor = registry.token(name)
        except UnknownTokenError:
            raise UnknownTokenError(name, template) from None
        segments.append(
            Segment(
                literal=template[position : match.start()],
                token_name=name,
                argument=argument,
                extractor=extractor,
            )
        )
        position = match.end()
    if position < len(template):
        segments.append(Segment(literal=template[position:]))
    return CompiledTemplate(source=template, segments=tuple(segments))


class Format(ABC):
    """Base class for named formats."""

    kind: str = "abstract"

    def __init__(self, name: str) -> None:
        self.name = name

    @property
    @abstractmethod
    def token_names(self) -> tuple[str, ...]:
        """Names of the tokens the format references, in order."""

    @abstractmethod
    def render(self, request: RequestInfo, response: ResponseInfo) -> str:
        """Render one record for a completed request."""

    @abstractmethod
    def describe(self) -> dict[str, Any]:
        """JSON-friendly description (used by the API and CLI)."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r})"


class FlatFormat(Format):
    """Single-line template for human reading."""

    kind = "flat"

    def __init__(self, name: str, template: str, registry: TokenRegistry) -> None:
        super().__init__(name)
        self.template = compile_template(template, registry)

    @property
    def token_names(self) -> tuple[str, ...]:
        return self.template.token_names

    def render(self, request: RequestInfo, response: ResponseInfo) -> str:
        return self.template.render(request, response)

    def describe(self) -> dict[str, Any]:
        return {"name": self.name, "kind": self.kind, "template": self.template.source}


class StructuredFormat(Format):
    """Named fields rendered as one JSON object per record."""

    kind = "structured"

    def __init__(self, name: str, fields: Mapping[str, str], registry: TokenRegistry) -> None:
        super().__init__(name)
        if not fields:
            raise ConfigurationError(f"Structured format {name!r} declares no fields")
        # dict preserves declaration order; json.dumps keeps it
        self.fields: dict[str, CompiledTemplate] = {
            field_name: compile_template(template, registry) for field_name, template in fields.items()
        }

    @property
    def token_names(self) -> tuple[str, ...]:
        names: list[str] = []
        for compiled in self.fields.values():
            names.extend(compiled.token_names)
        return tuple(names)

    def render_record(self, request: RequestInfo, response: ResponseInfo) -> dict[str, str]:
        return {field_name: compiled.render(request, response) for field_name, compiled in self.fields.items()}

    def render(self, request: RequestInfo, response: ResponseInfo) -> str:
        return json.dumps(self.render_record(request, response))

    def describe(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "kind": self.kind,
            "fields": {field_name: compiled.source for field_name, compiled in self.fields.items()},
        }


# ============================================================================
# Built-in formats
# ============================================================================

BUILTIN_FORMATS: dict[str, str | dict[str, str]] = {
    # Development - detailed, console
    "dev": ":method :url :status :response-time-ms ms - :res[content-length] - :user-id - :user-agent-short",
    # Production - structured JSON
    "production": {
        "timestamp": ":iso-date",
        "method": ":method",
        "url": ":url",
        "status": ":status",
        "responseTime": ":response-time-ms ms",
        "requestSize": ":req-size",
        "responseSize": ":res-size",
        "userAgent": ":user-agent",
        "ip": ":remote-addr",
        "userId": ":user-id",
        "requestId": ":request-id",
        "referer": ":referrer",
        "memory": ":memory",
    },
    # Combined access log with custom fields
    "combined": (
        ':remote-addr - :user-id [:iso-date] ":method :url HTTP/:http-version" :status '
        ':res[content-length] ":referrer" ":user-agent" :response-time-ms ms'
    ),
    # High-throughput endpoints
    "minimal": ":method :url :status :response-time-ms ms",
    # Error log
    "error": ":iso-date :method :url :status :response-time-ms ms - :user-id - :error",
}


def build_format(name: str, definition: str | Mapping[str, str], registry: TokenRegistry) -> Format:
    """Build a flat (str) or structured (mapping) format."""
    if isinstance(definition, str):
        return FlatFormat(name, definition, registry)
    return StructuredFormat(name, definition, registry)


def build_formats(
    registry: TokenRegistry,
    definitions: Mapping[str, str | Mapping[str, str]] | None = None,
) -> dict[str, Format]:
    """Compile a set of named formats (built-ins by default).

    Raises:
        UnknownTokenError: If any definition references an unknown token.
    """
    source = BUILTIN_FORMATS if definitions is None else definitions
    return {name: build_format(name, definition, registry) for name, definition in source.items()}
