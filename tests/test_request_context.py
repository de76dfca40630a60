"""Unit tests for RequestContext lifecycle and trace creation.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

from __future__ import annotations

import random
import re

import pytest

from reqscope.context import (
    RequestContext,
    RequestPhase,
    generate_correlation_id,
    parse_content_length,
    start_trace,
)
from reqscope.exceptions import LifecycleError

CORRELATION_ID_PATTERN = re.compile(r"^req_\d+_[0-9a-z]{9}$")


# ============================================================================
# Tests: Correlation ids and trace creation
# ============================================================================


class TestCorrelationId:
    """Tests for generate_correlation_id."""

    def test_matches_expected_shape(self):
        """Generated ids look like req_<epoch-ms>_<9 base36 chars>."""
        # Act
        correlation_id = generate_correlation_id()

        # Assert
        assert CORRELATION_ID_PATTERN.match(correlation_id)

    def test_uses_given_timestamp_and_rng(self):
        """Timestamp and random source are injectable."""
        # Act
        first = generate_correlation_id(now_ms=1733309317123, rng=random.Random(7))
        second = generate_correlation_id(now_ms=1733309317123, rng=random.Random(7))

        # Assert
        assert first.startswith("req_1733309317123_")
        assert first == second

    def test_ids_are_unique(self):
        """Consecutive ids differ."""
        # Act
        ids = {generate_correlation_id() for _ in range(200)}

        # Assert
        assert len(ids) == 200


class TestParseContentLength:
    """Tests for parse_content_length."""

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            (None, 0),
            ("", 0),
            ("abc", 0),
            ("-5", 0),
            ("0", 0),
            (" 42 ", 42),
            ("10485761", 10485761),
        ],
    )
    def test_parses_or_defaults_to_zero(self, raw, expected):
        """Absent, invalid and negative values become 0."""
        assert parse_content_length(raw) == expected


class TestStartTrace:
    """Tests for start_trace."""

    def test_context_is_traced_with_start_instant(self):
        """A fresh trace is TRACED, has a start instant and no end instant."""
        # Act
        context = start_trace("128")

        # Assert
        assert context.phase is RequestPhase.TRACED
        assert context.start_instant is not None
        assert context.end_instant is None
        assert context.declared_content_length == 128
        assert CORRELATION_ID_PATTERN.match(context.correlation_id)

    def test_explicit_correlation_id(self):
        """An explicit id is used as given."""
        # Act
        context = start_trace(correlation_id="req_1_abcdefghi")

        # Assert
        assert context.correlation_id == "req_1_abcdefghi"


# ============================================================================
# Tests: Lifecycle
# ============================================================================


class TestLifecycle:
    """Tests for phase transitions and the completion event."""

    def test_phases_only_move_forward(self):
        """Moving back to an earlier phase raises LifecycleError."""
        # Arrange
        context = start_trace()
        context.advance(RequestPhase.HANDLED)

        # Act & Assert
        with pytest.raises(LifecycleError):
            context.advance(RequestPhase.TRACED)

    def test_reentering_current_phase_is_allowed(self):
        """advance() to the current phase is a no-op."""
        # Arrange
        context = start_trace()

        # Act
        context.advance(RequestPhase.TRACED)

        # Assert
        assert context.phase is RequestPhase.TRACED

    def test_complete_fires_listeners_once(self):
        """Listeners run exactly once, after end_instant is recorded."""
        # Arrange
        context = start_trace()
        seen: list[int | None] = []
        context.on_complete(lambda ctx: seen.append(ctx.end_instant))

        # Act
        context.complete()
        context.complete()

        # Assert
        assert len(seen) == 1
        assert seen[0] is not None
        assert context.is_completed

    def test_listeners_run_in_subscription_order(self):
        """Listeners are called in the order they subscribed."""
        # Arrange
        context = start_trace()
        order: list[str] = []
        context.on_complete(lambda ctx: order.append("first"))
        context.on_complete(lambda ctx: order.append("second"))

        # Act
        context.complete()

        # Assert
        assert order == ["first", "second"]

    def test_subscribing_after_completion_raises(self):
        """on_complete() on a completed context raises LifecycleError."""
        # Arrange
        context = start_trace()
        context.complete()

        # Act & Assert
        with pytest.raises(LifecycleError):
            context.on_complete(lambda ctx: None)

    def test_end_instant_is_recorded_once(self):
        """A second mark_end() leaves the first instant in place."""
        # Arrange
        context = RequestContext(correlation_id="req_1_x", start_instant=1_000)

        # Act
        first = context.mark_end(5_000)
        second = context.mark_end(9_000)

        # Assert
        assert first is True
        assert second is False
        assert context.end_instant == 5_000

    def test_complete_keeps_explicit_end_instant(self):
        """complete() does not overwrite an end instant recorded earlier."""
        # Arrange
        context = RequestContext(correlation_id="req_1_x", start_instant=1_000)
        context.mark_end(3_000_000)

        # Act
        context.complete()

        # Assert
        assert context.end_instant == 3_000_000
        assert context.elapsed_ms == pytest.approx(2.999)

    def test_mark_end_without_start_raises(self):
        """An end instant cannot be recorded without a start instant."""
        # Arrange
        context = RequestContext(correlation_id="req_1_x", start_instant=None)

        # Act & Assert
        with pytest.raises(LifecycleError):
            context.mark_end()

    def test_elapsed_ms_is_none_until_completed(self):
        """elapsed_ms is None while the request is in flight."""
        # Arrange
        context = start_trace()

        # Assert
        assert context.elapsed_ms is None

    def test_first_attached_error_wins(self):
        """attach_error() keeps the first error."""
        # Arrange
        context = start_trace()
        first = RuntimeError("first")

        # Act
        context.attach_error(first)
        context.attach_error(ValueError("second"))

        # Assert
        assert context.error is first
