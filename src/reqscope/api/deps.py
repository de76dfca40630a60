"""Shared dependencies for API routes.

Usage with Annotated:
    from reqscope.api.deps import PipelineDep

    @router.get("/formats")
    async def list_formats(pipeline: PipelineDep) -> FormatsResponse:
        ...
"""

from __future__ import annotations

__all__ = [
    "get_config",
    "get_pipeline",
    "ConfigDep",
    "PipelineDep",
]

from typing import TYPE_CHECKING, Annotated, Any, Callable

from fastapi import Depends, HTTPException, Request

if TYPE_CHECKING:
    from reqscope.config import AppConfig
    from reqscope.telemetry.pipeline import TelemetryPipeline


def _create_state_getter(attr_name: str, type_hint: str, error_detail: str) -> Callable[[Request], Any]:
    """Create a dependency that reads app.state.<attr_name>, 503 if unset."""

    def getter(request: Request) -> Any:
        value = getattr(request.app.state, attr_name, None)
        if value is None:
            raise HTTPException(status_code=503, detail=error_detail)
        return value

    getter.__name__ = f"get_{attr_name}"
    getter.__doc__ = f"Get {type_hint} from app.state.\n\nRaises HTTPException 503 if not available."
    return getter


get_config: Callable[[Request], "AppConfig"] = _create_state_getter(
    "config",
    "AppConfig",
    "Config not available.",
)

get_pipeline: Callable[[Request], "TelemetryPipeline"] = _create_state_getter(
    "telemetry_pipeline",
    "TelemetryPipeline",
    "Telemetry pipeline not available.",
)

ConfigDep = Annotated["AppConfig", Depends(get_config)]
PipelineDep = Annotated["TelemetryPipeline", Depends(get_pipeline)]
