"""Unit tests for TelemetryPipeline construction and request flow.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

from __future__ import annotations

import json

import pytest

from reqscope.config import LoggingConfig
from reqscope.context.exchange import ResponseInfo
from reqscope.exceptions import ConfigurationError, UnknownTokenError
from reqscope.telemetry.pipeline import TelemetryPipeline
from reqscope.telemetry.sinks import Sink


@pytest.fixture
def production_pipeline(tmp_path, mock_logger) -> TelemetryPipeline:
    config = LoggingConfig(log_dir=str(tmp_path), environment="production")
    pipeline = TelemetryPipeline.from_config(config, logger=mock_logger, memory_probe=lambda: 0)
    yield pipeline
    pipeline.close()


def _run(pipeline: TelemetryPipeline, request, response: ResponseInfo) -> list[str]:
    trace = pipeline.begin(request)
    return pipeline.complete(trace, response)


# ============================================================================
# Tests: Construction
# ============================================================================


class TestFromConfig:
    """Tests for the standard stage layout."""

    def test_production_stages(self, production_pipeline):
        assert [stage.name for stage in production_pipeline.stages] == ["access", "error", "api"]

    def test_development_stages(self, tmp_path, mock_logger):
        # Arrange
        config = LoggingConfig(log_dir=str(tmp_path), environment="development")

        # Act
        pipeline = TelemetryPipeline.from_config(config, logger=mock_logger)

        # Assert
        assert [stage.name for stage in pipeline.stages] == ["development", "error", "api"]
        assert pipeline.stages[0].sink.category == "console"

    def test_streaming_stage_opt_in(self, tmp_path, mock_logger):
        # Arrange
        config = LoggingConfig(log_dir=str(tmp_path), streaming_stage=True)

        # Act
        pipeline = TelemetryPipeline.from_config(config, logger=mock_logger)

        # Assert
        assert pipeline.stages[-1].name == "streaming"
        assert pipeline.stages[-1].format.name == "minimal"

    def test_file_sinks_registered(self, production_pipeline, tmp_path):
        # Act
        sinks = production_pipeline.file_sinks()

        # Assert
        assert sorted(sink.category for sink in sinks) == ["access", "api", "error"]
        assert production_pipeline.file_sink("api").path == tmp_path / "api.log"
        assert production_pipeline.file_sink("console") is None

    def test_initialization_logged(self, production_pipeline, mock_logger):
        events = [call.args[0] for call in mock_logger.info.call_args_list]
        assert events[-1]["event"] == "telemetry_pipeline_initialized"
        assert events[-1]["stages"] == ["access", "error", "api"]

    def test_no_files_created_at_startup(self, production_pipeline, tmp_path):
        assert list(tmp_path.iterdir()) == []


class TestRegistration:
    """Tests for add_format, add_sink and add_stage validation."""

    def test_duplicate_stage_rejected(self, production_pipeline):
        with pytest.raises(ConfigurationError):
            production_pipeline.add_stage("api", "minimal", "console")

    def test_unknown_format_rejected(self, production_pipeline):
        with pytest.raises(ConfigurationError):
            production_pipeline.add_stage("extra", "nope", "console")

    def test_unknown_sink_rejected(self, production_pipeline):
        with pytest.raises(ConfigurationError):
            production_pipeline.add_stage("extra", "minimal", "nope")

    def test_format_with_unknown_token_rejected(self, production_pipeline):
        with pytest.raises(UnknownTokenError):
            production_pipeline.add_format("broken", ":method :nope")

    def test_custom_stage(self, production_pipeline, make_request, memory_sink):
        """A custom format, sink and stage can be added after construction."""
        # Arrange
        production_pipeline.add_format("ids", ":request-id :status")
        production_pipeline.add_sink(memory_sink)
        production_pipeline.add_stage("ids", "ids", "memory")
        request = make_request(path="/health", correlation_id="req_1_abcdefghi", elapsed_ms=1)

        # Act
        emitted = _run(production_pipeline, request, ResponseInfo(status_code=200))

        # Assert
        assert emitted == ["ids"]
        assert memory_sink.records == ["req_1_abcdefghi 200"]


# ============================================================================
# Tests: Request flow
# ============================================================================


class TestRequestFlow:
    """Tests for begin() and complete()."""

    def test_health_check_only_keeps_error_stage(self, production_pipeline, make_request):
        """Path-only filters rule stages out at trace time."""
        # Act
        trace = production_pipeline.begin(make_request(path="/health"))

        # Assert
        assert [stage.name for stage in trace.stages] == ["error"]

    def test_health_check_writes_nothing(self, production_pipeline, make_request, tmp_path):
        # Act
        emitted = _run(production_pipeline, make_request(path="/health", elapsed_ms=1), ResponseInfo(status_code=200))

        # Assert
        assert emitted == []
        assert not (tmp_path / "access.log").exists()
        assert not (tmp_path / "api.log").exists()
        assert not (tmp_path / "error.log").exists()

    def test_api_success(self, production_pipeline, make_request, ok_response, tmp_path):
        """A successful /api request goes to access.log and api.log only."""
        # Arrange
        request = make_request(path="/api/videos", elapsed_ms=3)

        # Act
        emitted = _run(production_pipeline, request, ok_response)
        production_pipeline.close()

        # Assert
        assert emitted == ["access", "api"]
        assert len((tmp_path / "access.log").read_text().splitlines()) == 1
        api_record = json.loads((tmp_path / "api.log").read_text())
        assert api_record["userId"] == "anonymous"
        assert api_record["status"] == "200"
        assert api_record["requestId"] == request.context.correlation_id
        assert not (tmp_path / "error.log").exists()

    def test_static_asset(self, production_pipeline, make_request, ok_response, tmp_path):
        # Act
        emitted = _run(production_pipeline, make_request(path="/static/app.js", elapsed_ms=1), ok_response)

        # Assert
        assert emitted == []
        assert not (tmp_path / "access.log").exists()

    def test_failed_request(self, production_pipeline, make_request, tmp_path):
        """A failed request also reaches error.log with the error message."""
        # Arrange
        request = make_request(path="/api/items", elapsed_ms=2)

        # Act
        emitted = _run(production_pipeline, request, ResponseInfo(status_code=500, error=RuntimeError("boom")))
        production_pipeline.close()

        # Assert
        assert emitted == ["access", "error", "api"]
        error_line = (tmp_path / "error.log").read_text().strip()
        assert error_line.endswith("GET /api/items 500 2.000 ms - anonymous - boom")

    def test_correlation_id_joins_records(self, production_pipeline, make_request, tmp_path):
        """Records of one request across sinks share a correlation id."""
        # Arrange
        production_pipeline.add_format("ids", ":request-id")
        production_pipeline.add_stage("error-ids", "ids", "error")
        request = make_request(path="/api/items", elapsed_ms=2, correlation_id="req_5_joinjoinj")

        # Act
        _run(production_pipeline, request, ResponseInfo(status_code=503))
        production_pipeline.close()

        # Assert
        api_record = json.loads((tmp_path / "api.log").read_text())
        error_lines = (tmp_path / "error.log").read_text().splitlines()
        assert api_record["requestId"] == "req_5_joinjoinj"
        assert error_lines[-1] == "req_5_joinjoinj"

    def test_failing_stage_is_contained(self, production_pipeline, make_request, ok_response, mock_logger):
        """A stage that raises is logged; other stages still run."""

        # Arrange
        class ExplodingSink(Sink):
            category = "exploding"

            def append(self, record: str) -> bool:
                raise RuntimeError("disk on fire")

        production_pipeline.add_sink(ExplodingSink())
        production_pipeline.add_stage("explode", "minimal", "exploding")

        # Act
        emitted = _run(production_pipeline, make_request(path="/api/x", elapsed_ms=1), ok_response)

        # Assert
        assert emitted == ["access", "api"]
        failure = mock_logger.error.call_args[0][0]
        assert failure["event"] == "stage_failed"
        assert failure["component"] == "explode"

    def test_monitors_run(self, production_pipeline, make_request, ok_response, mock_logger):
        """Large, slow and authenticated write requests reach the monitors."""
        # Arrange
        request = make_request(
            path="/api/upload",
            method="POST",
            identity="alice",
            declared_content_length=20 * 1024 * 1024,
            elapsed_ms=1500,
        )

        # Act
        _run(production_pipeline, request, ok_response)

        # Assert
        info_events = [call.args[0].get("event") for call in mock_logger.info.call_args_list]
        warning_events = [call.args[0].get("event") for call in mock_logger.warning.call_args_list]
        assert "large_request" in info_events
        assert "user_activity" in info_events
        assert warning_events == ["slow_request"]


class TestLifecycle:
    """Tests for rotation and description."""

    def test_rotate_now(self, production_pipeline, make_request, ok_response, tmp_path):
        # Arrange
        _run(production_pipeline, make_request(path="/api/x", elapsed_ms=1), ok_response)

        # Act
        results = production_pipeline.rotate_now()

        # Assert
        assert results["access"] is not None
        assert results["api"] is not None
        assert results["error"] is None

    def test_describe(self, production_pipeline, tmp_path):
        # Act
        description = production_pipeline.describe()

        # Assert
        assert description["log_dir"] == str(tmp_path)
        assert description["stages"][0] == {
            "name": "access",
            "format": "combined",
            "sink": "access",
            "skip": "health-check | static",
        }
        assert description["rotation_running"] is False

    @pytest.mark.asyncio
    async def test_start_respects_rotation_disabled(self, tmp_path, mock_logger):
        # Arrange
        config = LoggingConfig(log_dir=str(tmp_path), rotation_enabled=False)
        pipeline = TelemetryPipeline.from_config(config, logger=mock_logger)

        # Act
        await pipeline.start()

        # Assert
        assert pipeline.rotation.is_running is False
        await pipeline.stop()
