"""Unit tests for the token registry and built-in tokens.

Tests use the AAA pattern (Arrange-Act-Assert) for clarity.
"""

from __future__ import annotations

import re

import pytest

from reqscope.context.exchange import ResponseInfo
from reqscope.exceptions import ConfigurationError, UnknownTokenError
from reqscope.telemetry import tokens as tokens_module
from reqscope.telemetry.tokens import TokenRegistry, format_response_time, truncate_user_agent


@pytest.fixture
def registry() -> TokenRegistry:
    return TokenRegistry()


# ============================================================================
# Tests: Helpers
# ============================================================================


class TestFormatResponseTime:
    """Tests for format_response_time."""

    def test_three_decimal_milliseconds(self):
        """Nanosecond instants render as milliseconds with 3 decimals."""
        assert format_response_time(0, 12_345_678) == "12.346"

    def test_whole_milliseconds_keep_decimals(self):
        """Exact values still render 3 decimals."""
        assert format_response_time(0, 5_000_000) == "5.000"

    @pytest.mark.parametrize(("start", "end"), [(None, 1), (1, None), (None, None)])
    def test_missing_instant_renders_dash(self, start, end):
        """Absent timing renders the "-" sentinel."""
        assert format_response_time(start, end) == "-"


class TestTruncateUserAgent:
    """Tests for truncate_user_agent."""

    def test_cuts_to_fifty_characters(self):
        """Long user agents are cut at 50 chars with no ellipsis."""
        # Arrange
        user_agent = "Mozilla/5.0 " + "x" * 60

        # Act
        result = truncate_user_agent(user_agent)

        # Assert
        assert len(result) == 50
        assert result == user_agent[:50]

    def test_short_value_unchanged(self):
        assert truncate_user_agent("curl/8.0") == "curl/8.0"

    def test_absent_is_empty(self):
        assert truncate_user_agent(None) == ""


# ============================================================================
# Tests: Built-in tokens
# ============================================================================


class TestBuiltinTokens:
    """Tests for built-in token extraction and sentinels."""

    def test_response_time(self, registry, make_request, ok_response):
        """response-time-ms renders the elapsed time."""
        # Arrange
        request = make_request(elapsed_ms=12.345678)

        # Act
        value = registry.evaluate("response-time-ms", request, ok_response)

        # Assert
        assert value == "12.346"

    def test_response_time_in_flight(self, registry, make_request, ok_response):
        """response-time-ms is "-" before the request completes."""
        assert registry.evaluate("response-time-ms", make_request(), ok_response) == "-"

    def test_user_id_defaults_to_anonymous(self, registry, make_request, ok_response):
        assert registry.evaluate("user-id", make_request(), ok_response) == "anonymous"

    def test_user_id_from_identity(self, registry, make_request, ok_response):
        assert registry.evaluate("user-id", make_request(identity="alice"), ok_response) == "alice"

    def test_request_id(self, registry, make_request, ok_response):
        request = make_request(correlation_id="req_1_abcdefghi")
        assert registry.evaluate("request-id", request, ok_response) == "req_1_abcdefghi"

    def test_request_id_sentinel(self, registry, make_request, ok_response):
        assert registry.evaluate("request-id", make_request(correlation_id=""), ok_response) == "no-id"

    def test_session_id_sentinel(self, registry, make_request, ok_response):
        assert registry.evaluate("session-id", make_request(), ok_response) == "-"

    def test_session_id_present(self, registry, make_request, ok_response):
        request = make_request(session_id="sess-42")
        assert registry.evaluate("session-id", request, ok_response) == "sess-42"

    def test_user_agent_short(self, registry, make_request, ok_response):
        """user-agent-short truncates the User-Agent header."""
        # Arrange
        request = make_request(headers={"User-Agent": "A" * 80})

        # Act
        value = registry.evaluate("user-agent-short", request, ok_response)

        # Assert
        assert value == "A" * 50

    @pytest.mark.parametrize("agent", ["curl/8.0", "B" * 50])
    def test_user_agent_short_keeps_short_values(self, registry, make_request, ok_response, agent):
        request = make_request(headers={"User-Agent": agent})
        assert registry.evaluate("user-agent-short", request, ok_response) == agent

    def test_sizes(self, registry, make_request, ok_response):
        """req-size defaults to "0"; res-size reads the response header."""
        # Arrange
        request = make_request()

        # Act & Assert
        assert registry.evaluate("req-size", request, ok_response) == "0"
        assert registry.evaluate("res-size", request, ok_response) == "512"
        assert registry.evaluate("res-size", request, ResponseInfo(status_code=204)) == "0"

    def test_memory_in_megabytes(self, registry, make_request, ok_response, monkeypatch):
        """memory renders process RSS as rounded megabytes."""
        # Arrange
        monkeypatch.setattr(tokens_module, "current_rss_bytes", lambda: 100 * 1024 * 1024 + 300_000)

        # Act
        value = registry.evaluate("memory", make_request(), ok_response)

        # Assert
        assert value == "100MB"

    def test_iso_date(self, registry, make_request, ok_response):
        value = registry.evaluate("iso-date", make_request(), ok_response)
        assert re.match(r"^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}\.\d{3}Z$", value)

    def test_parameterised_header_tokens(self, registry, make_request, ok_response):
        """req[...] and res[...] read named headers, "-" when absent."""
        # Arrange
        request = make_request(headers={"X-Trace": "abc"})

        # Act & Assert
        assert registry.evaluate("req", request, ok_response, "x-trace") == "abc"
        assert registry.evaluate("req", request, ok_response, "x-missing") == "-"
        assert registry.evaluate("res", request, ok_response, "content-length") == "512"

    def test_url_includes_query(self, registry, make_request, ok_response):
        request = make_request(path="/api/items", query_string="page=2")
        assert registry.evaluate("url", request, ok_response) == "/api/items?page=2"


class TestErrorToken:
    """Tests for the error token."""

    def test_dash_for_success_even_with_error(self, registry, make_request):
        """Successful responses render "-" regardless of attached errors."""
        # Arrange
        response = ResponseInfo(status_code=200, error=RuntimeError("ignored"))

        # Act & Assert
        assert registry.evaluate("error", make_request(), response) == "-"

    def test_message_for_failed_response(self, registry, make_request):
        response = ResponseInfo(status_code=500, error=RuntimeError("boom"))
        assert registry.evaluate("error", make_request(), response) == "boom"

    def test_falls_back_to_context_error(self, registry, make_request):
        """The context's attached error is used when the response has none."""
        # Arrange
        request = make_request()
        request.context.attach_error(ValueError("bad input"))

        # Act
        value = registry.evaluate("error", request, ResponseInfo(status_code=422))

        # Assert
        assert value == "bad input"

    def test_unknown_error_for_empty_message(self, registry, make_request):
        response = ResponseInfo(status_code=500, error=RuntimeError())
        assert registry.evaluate("error", make_request(), response) == "Unknown error"

    def test_dash_for_failed_response_without_error(self, registry, make_request):
        assert registry.evaluate("error", make_request(), ResponseInfo(status_code=404)) == "-"


# ============================================================================
# Tests: Registry
# ============================================================================


class TestTokenRegistry:
    """Tests for TokenRegistry registration and lookup."""

    def test_register_custom_token(self, registry, make_request, ok_response):
        """Custom tokens are evaluated like built-ins."""
        # Arrange
        registry.register("tenant", lambda request, response, arg: request.header("x-tenant") or "-")

        # Act
        value = registry.evaluate("tenant", make_request(headers={"X-Tenant": "acme"}), ok_response)

        # Assert
        assert value == "acme"

    def test_duplicate_registration_raises(self, registry):
        with pytest.raises(ConfigurationError):
            registry.register("status", lambda request, response, arg: "x")

    def test_replace_allows_override(self, registry, make_request, ok_response):
        # Arrange
        registry.register("status", lambda request, response, arg: "overridden", replace=True)

        # Act & Assert
        assert registry.evaluate("status", make_request(), ok_response) == "overridden"

    @pytest.mark.parametrize("name", ["", "Bad", "1abc", "with space", "under_score"])
    def test_invalid_names_rejected(self, registry, name):
        with pytest.raises(ConfigurationError):
            registry.register(name, lambda request, response, arg: "x")

    def test_unknown_token_raises(self, registry):
        """Looking up an unregistered token raises UnknownTokenError."""
        # Act & Assert
        with pytest.raises(UnknownTokenError) as exc_info:
            registry.token("nope")
        assert exc_info.value.token_name == "nope"

    def test_registries_are_independent(self):
        """Registering on one registry does not affect another."""
        # Arrange
        first = TokenRegistry()
        second = TokenRegistry()

        # Act
        first.register("custom", lambda request, response, arg: "x")

        # Assert
        assert first.has("custom")
        assert not second.has("custom")

    def test_without_builtins(self):
        assert TokenRegistry(include_builtins=False).names() == []

    def test_names_sorted(self, registry):
        names = registry.names()
        assert names == sorted(names)
        assert "response-time-ms" in names
