"""API request/response schemas."""

from reqscope.api.schemas.telemetry import (
    FormatInfo,
    HealthResponse,
    LogRecordsResponse,
    RotateRequest,
    RotationResponse,
    StageInfo,
    TelemetryResponse,
)

__all__ = [
    "FormatInfo",
    "HealthResponse",
    "LogRecordsResponse",
    "RotateRequest",
    "RotationResponse",
    "StageInfo",
    "TelemetryResponse",
]
