"""Telemetry management endpoints.

- GET  /api/telemetry             - Stages, formats and tokens of the pipeline
- GET  /api/telemetry/logs/{category} - Most recent records of a file sink
- POST /api/telemetry/rotate      - Rotate all file sinks now

Routes mounted at: /api/telemetry
"""

from __future__ import annotations

__all__ = ["router"]

from fastapi import APIRouter, Query

from reqscope.api.deps import ConfigDep, PipelineDep
from reqscope.api.errors import APIError, ErrorCode
from reqscope.api.schemas import (
    FormatInfo,
    LogRecordsResponse,
    RotateRequest,
    RotationResponse,
    StageInfo,
    TelemetryResponse,
)
from reqscope.constants import RECENT_RECORDS_DEFAULT_LIMIT

router = APIRouter()


@router.get("")
async def describe_pipeline(pipeline: PipelineDep, config: ConfigDep) -> TelemetryResponse:
    """Describe the running pipeline."""
    description = pipeline.describe()
    return TelemetryResponse(
        log_dir=description["log_dir"],
        environment=config.logging.environment,
        stages=[StageInfo(**stage) for stage in description["stages"]],
        formats=[FormatInfo(**fmt) for fmt in description["formats"]],
        tokens=description["tokens"],
        rotation_running=description["rotation_running"],
    )


@router.get("/logs/{category}")
async def recent_records(
    category: str,
    pipeline: PipelineDep,
    limit: int = Query(default=RECENT_RECORDS_DEFAULT_LIMIT, ge=1, le=1000),
) -> LogRecordsResponse:
    """Return the most recent records written by a file sink."""
    sink = pipeline.file_sink(category)
    if sink is None:
        raise APIError(
            status_code=404,
            code=ErrorCode.LOG_NOT_AVAILABLE,
            message=f"No file sink for category '{category}'",
            details={"category": category},
        )

    try:
        records = sink.read_recent(limit)
    except OSError as e:
        raise APIError(
            status_code=500,
            code=ErrorCode.LOG_READ_FAILED,
            message=f"Failed to read {sink.path}: {e}",
            details={"category": category},
        ) from e

    return LogRecordsResponse(
        category=category,
        log_file=str(sink.path),
        records=records,
        total_returned=len(records),
    )


@router.post("/rotate")
async def rotate(pipeline: PipelineDep, body: RotateRequest | None = None) -> RotationResponse:
    """Rotate all file sinks immediately.

    Per-sink failures are logged and reported as null.
    """
    label_date = body.label_date if body is not None else None
    results = pipeline.rotate_now(label_date)
    return RotationResponse(rotated={category: str(path) if path else None for category, path in results.items()})
