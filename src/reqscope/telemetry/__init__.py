"""Telemetry domain: tokens, formats, sinks, filters, stages, monitors, rotation.

Structure:
    tokens.py       Token registry (named extractors over request/response)
    formats.py      Flat and structured formats compiled from token templates
    sinks.py        Console sink and category file sinks (access, error, api)
    filters.py      Suppression predicates, OR-composable
    stage.py        PipelineStage: format + sink + filter
    monitors.py     Performance, size and activity side monitors
    rotation.py     Daily rotation scheduler for file sinks
    pipeline.py     TelemetryPipeline: the constructed instance tying it together
    system/         System logger (console sink target, operational events)
"""

from reqscope.telemetry.pipeline import RequestTrace, TelemetryPipeline

__all__ = [
    "RequestTrace",
    "TelemetryPipeline",
]
