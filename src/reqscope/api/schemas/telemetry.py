"""Telemetry API schemas."""

from __future__ import annotations

__all__ = [
    "FormatInfo",
    "HealthResponse",
    "LogRecordsResponse",
    "RotateRequest",
    "RotationResponse",
    "StageInfo",
    "TelemetryResponse",
]

from datetime import date
from typing import Literal

from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Liveness probe response."""

    status: Literal["ok"] = "ok"


class FormatInfo(BaseModel):
    """A named format and its template(s)."""

    name: str
    kind: Literal["flat", "structured"]
    template: str | None = None
    fields: dict[str, str] | None = None


class StageInfo(BaseModel):
    """A registered pipeline stage."""

    name: str
    format: str
    sink: str
    skip: str


class TelemetryResponse(BaseModel):
    """Pipeline description."""

    log_dir: str
    environment: Literal["development", "production"]
    stages: list[StageInfo]
    formats: list[FormatInfo]
    tokens: list[str]
    rotation_running: bool


class LogRecordsResponse(BaseModel):
    """Most recent records of a file sink."""

    category: str
    log_file: str
    records: list[str]
    total_returned: int


class RotateRequest(BaseModel):
    """Manual rotation request. label_date defaults to today."""

    label_date: date | None = None


class RotationResponse(BaseModel):
    """Result of a rotation, per sink category (archive path or null)."""

    rotated: dict[str, str | None]
