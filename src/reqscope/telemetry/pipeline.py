"""Telemetry pipeline instance.

Holds everything the request-observability layer needs, constructed
explicitly and passed to the middleware (no module-level state):

- token registry and compiled formats
- sinks (console + one FileSink per category)
- pipeline stages
- side monitors
- rotation scheduler

Per-request flow:
    begin(request)      at trace time: size monitor, memory snapshot,
                        early (path-only) stage elimination
    complete(trace, response)
                        from the completion event: remaining stages, then
                        performance monitor and activity tracker
"""

from __future__ import annotations

__all__ = [
    "RequestTrace",
    "TelemetryPipeline",
]

import logging
import traceback
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Mapping

from reqscope.config import AppConfig, LoggingConfig
from reqscope.constants import API_PREFIX, FILE_SINK_CATEGORIES, STREAMING_MARKERS
from reqscope.context.exchange import RequestInfo, ResponseInfo
from reqscope.exceptions import ConfigurationError
from reqscope.telemetry.filters import (
    Filter,
    any_of,
    never,
    skip_health_checks,
    skip_static,
    skip_successful,
    skip_unless_contains,
    skip_unless_prefix,
)
from reqscope.telemetry.formats import Format, build_format, build_formats
from reqscope.telemetry.monitors import ActivityTracker, MemoryProbe, PerformanceMonitor, SizeMonitor
from reqscope.telemetry.rotation import RotationScheduler
from reqscope.telemetry.sinks import ConsoleSink, FileSink, Sink
from reqscope.telemetry.stage import ActivationPredicate, PipelineStage
from reqscope.telemetry.system.system_logger import configure_system_logger_file, get_system_logger
from reqscope.telemetry.tokens import TokenRegistry


@dataclass(slots=True)
class RequestTrace:
    """Per-request bookkeeping between begin() and complete()."""

    request: RequestInfo
    stages: list[PipelineStage] = field(default_factory=list)
    start_memory: int | None = None


class TelemetryPipeline:
    """Explicitly constructed telemetry pipeline.

    Args:
        log_dir: Directory for file sinks.
        registry: Token registry (a fresh one with built-ins by default).
        logger: Leveled logger for console records and monitor events.
    """

    def __init__(
        self,
        log_dir: Path,
        registry: TokenRegistry | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.log_dir = log_dir
        self.registry = registry or TokenRegistry()
        self.logger = logger or get_system_logger()
        self.formats: dict[str, Format] = build_formats(self.registry)
        self.sinks: dict[str, Sink] = {"console": ConsoleSink(self.logger)}
        self.stages: list[PipelineStage] = []
        self.performance_monitor: PerformanceMonitor | None = None
        self.size_monitor: SizeMonitor | None = None
        self.activity_tracker: ActivityTracker | None = None
        self.rotation = RotationScheduler(self.file_sinks, logger=self.logger)
        self.rotation_enabled = True

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_config(
        cls,
        config: AppConfig | LoggingConfig,
        logger: logging.Logger | None = None,
        memory_probe: MemoryProbe | None = None,
    ) -> "TelemetryPipeline":
        """Build the standard pipeline.

        Stages:
            development  dev format -> console, skip health checks
                         (development only)
            access       combined format -> access.log, skip health OR static
                         (production only)
            error        error format -> error.log, skip successful
            api          production format -> api.log, skip non-/api OR health
            streaming    minimal format -> console, skip unless /stream or
                         /video (opt-in)

        Raises:
            ConfigurationError: If a format or stage is misconfigured.
        """
        settings = config.logging if isinstance(config, AppConfig) else config
        pipeline = cls(settings.log_path, logger=logger)
        pipeline.rotation_enabled = settings.rotation_enabled

        if settings.system_log_file:
            configure_system_logger_file(settings.log_path / settings.system_log_file)

        for category in FILE_SINK_CATEGORIES:
            pipeline.add_sink(FileSink.for_category(category, settings.log_path, pipeline.logger))

        if settings.is_development:
            pipeline.add_stage("development", "dev", "console", skip=skip_health_checks)
        else:
            pipeline.add_stage("access", "combined", "access", skip=any_of(skip_health_checks, skip_static))

        pipeline.add_stage("error", "error", "error", skip=skip_successful)
        pipeline.add_stage(
            "api",
            "production",
            "api",
            skip=any_of(skip_unless_prefix(API_PREFIX), skip_health_checks),
        )
        if settings.streaming_stage:
            pipeline.add_stage("streaming", "minimal", "console", skip=skip_unless_contains(*STREAMING_MARKERS))

        probe_kwargs: dict[str, Any] = {} if memory_probe is None else {"memory_probe": memory_probe}
        pipeline.performance_monitor = PerformanceMonitor(pipeline.logger, **probe_kwargs)
        pipeline.size_monitor = SizeMonitor(pipeline.logger)
        pipeline.activity_tracker = ActivityTracker(pipeline.logger)

        pipeline.logger.info(
            {
                "event": "telemetry_pipeline_initialized",
                "message": "Logging middleware initialized",
                "environment": settings.environment,
                "log_dir": str(settings.log_path),
                "stages": [stage.name for stage in pipeline.stages],
            }
        )
        return pipeline

    def add_format(self, name: str, definition: str | Mapping[str, str]) -> Format:
        """Compile and register a named format.

        Raises:
            UnknownTokenError: If the definition references an unknown token.
        """
        fmt = build_format(name, definition, self.registry)
        self.formats[name] = fmt
        return fmt

    def add_sink(self, sink: Sink) -> Sink:
        """Register a sink under its category (replacing any previous one)."""
        previous = self.sinks.get(sink.category)
        if previous is not None and previous is not sink:
            previous.close()
        self.sinks[sink.category] = sink
        return sink

    def add_stage(
        self,
        name: str,
        format_name: str,
        sink_category: str,
        skip: Filter = never,
        active: ActivationPredicate | None = None,
    ) -> PipelineStage:
        """Bind a format, sink and filter into a stage.

        Raises:
            ConfigurationError: If the format or sink is unknown, or the name
                is already taken.
        """
        if any(stage.name == name for stage in self.stages):
            raise ConfigurationError(f"Stage {name!r} is already registered")
        if format_name not in self.formats:
            raise ConfigurationError(f"Stage {name!r} references unknown format {format_name!r}")
        if sink_category not in self.sinks:
            raise ConfigurationError(f"Stage {name!r} references unknown sink {sink_category!r}")

        stage = PipelineStage(
            name=name,
            format=self.formats[format_name],
            sink=self.sinks[sink_category],
            skip=skip,
            active=active,
        )
        self.stages.append(stage)
        return stage

    def file_sinks(self) -> list[FileSink]:
        return [sink for sink in self.sinks.values() if isinstance(sink, FileSink)]

    def file_sink(self, category: str) -> FileSink | None:
        sink = self.sinks.get(category)
        return sink if isinstance(sink, FileSink) else None

    # ------------------------------------------------------------------
    # Request flow
    # ------------------------------------------------------------------

    def begin(self, request: RequestInfo) -> RequestTrace:
        """Trace-time hook: run early checks and select candidate stages."""
        trace = RequestTrace(request=request)

        if self.size_monitor is not None:
            self._guard("size_monitor", self.size_monitor.check, request)

        if self.performance_monitor is not None:
            trace.start_memory = self._guard("performance_monitor", self.performance_monitor.snapshot)

        for stage in self.stages:
            suppressed = self._guard(stage.name, stage.suppressed_early, request)
            if suppressed is False:
                trace.stages.append(stage)
        return trace

    def complete(self, trace: RequestTrace, response: ResponseInfo) -> list[str]:
        """Completion hook: run remaining stages, then completion monitors.

        Never raises; failures are logged.

        Returns:
            Names of stages that wrote a record.
        """
        request = trace.request
        emitted: list[str] = []

        for stage in trace.stages:
            if self._guard(stage.name, stage.handle, request, response):
                emitted.append(stage.name)

        if self.performance_monitor is not None and trace.start_memory is not None:
            self._guard(
                "performance_monitor",
                self.performance_monitor.on_complete,
                request,
                response,
                trace.start_memory,
            )

        if self.activity_tracker is not None:
            self._guard("activity_tracker", self.activity_tracker.check, request, response)

        return emitted

    def _guard(self, component: str, func: Any, *args: Any) -> Any:
        """Run an observability callback without letting it fail the request."""
        try:
            return func(*args)
        except Exception as e:
            self.logger.error(
                {
                    "event": "stage_failed",
                    "message": f"Telemetry component {component!r} failed: {e}",
                    "component": component,
                    "error": str(e),
                    "error_type": type(e).__name__,
                    "traceback": traceback.format_exc(),
                }
            )
            return None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start background work (the rotation scheduler, if enabled)."""
        if self.rotation_enabled:
            await self.rotation.start()

    async def stop(self) -> None:
        """Stop background work and close file handles."""
        await self.rotation.stop()
        self.close()

    def rotate_now(self, label_date: date | None = None) -> dict[str, Path | None]:
        """Rotate all file sinks immediately (outside the schedule)."""
        return self.rotation.rotate_all(label_date)

    def close(self) -> None:
        for sink in self.sinks.values():
            sink.close()

    def describe(self) -> dict[str, Any]:
        return {
            "log_dir": str(self.log_dir),
            "stages": [stage.describe() for stage in self.stages],
            "formats": [fmt.describe() for fmt in self.formats.values()],
            "tokens": self.registry.names(),
            "rotation_running": self.rotation.is_running,
        }
