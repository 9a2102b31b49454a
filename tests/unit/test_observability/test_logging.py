"""Unit tests for structured logging configuration."""

import io
import json
import logging
from collections.abc import Iterator

import pytest
import structlog

from strollerscout.observability import (
    bind_request_context,
    clear_request_context,
    configure_logging,
    configure_logging_from_settings,
)
from strollerscout.settings import AppSettings


@pytest.fixture(autouse=True)
def restore_structlog() -> Iterator[None]:
    """Reset structlog configuration after each test."""
    yield
    clear_request_context()
    structlog.reset_defaults()


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_json_output_with_request_context(self) -> None:
        """Test that events render as JSON with bound context."""
        output = io.StringIO()
        configure_logging(level="INFO", output=output)
        bind_request_context("req-123")

        structlog.get_logger().bind(component="fetch").info("fetch_complete", attempts=1)

        event = json.loads(output.getvalue().strip())
        assert event["event"] == "fetch_complete"
        assert event["component"] == "fetch"
        assert event["request_id"] == "req-123"
        assert event["level"] == "info"
        assert "timestamp" in event

    def test_level_filters_events(self) -> None:
        """Test that events below the configured level are dropped."""
        output = io.StringIO()
        configure_logging(level="WARNING", output=output)

        structlog.get_logger().info("fetch_attempt")

        assert output.getvalue() == ""

    def test_unknown_level_name_defaults_to_info(self) -> None:
        """Test that an unrecognized level name falls back to INFO."""
        output = io.StringIO()
        configure_logging(level="verbose", output=output)

        structlog.get_logger().debug("hidden")
        structlog.get_logger().info("shown")

        assert "hidden" not in output.getvalue()
        assert "shown" in output.getvalue()

    def test_credential_keys_redacted(self) -> None:
        """Test that secret-named event keys never reach the output."""
        output = io.StringIO()
        configure_logging(level="INFO", output=output)

        structlog.get_logger().info(
            "token_issued", access_token="abc", Authorization="Bearer abc", attempt=1
        )

        event = json.loads(output.getvalue().strip())
        assert event["access_token"] == "[REDACTED]"
        assert event["Authorization"] == "[REDACTED]"
        assert event["attempt"] == 1
        assert "abc" not in output.getvalue()

    def test_http_client_loggers_quieted(self) -> None:
        """Test that httpx request lines (which carry query keys) are not logged at INFO."""
        configure_logging(level="DEBUG", output=io.StringIO())

        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("httpcore").level == logging.WARNING

    def test_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that settings drive level and renderer."""
        captured: dict[str, object] = {}

        def fake_configure(**kwargs: object) -> None:
            captured.update(kwargs)

        monkeypatch.setattr(
            "strollerscout.observability.logging.configure_logging", fake_configure
        )
        monkeypatch.setenv("LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("LOG_JSON", "false")

        configure_logging_from_settings(AppSettings())

        assert captured == {"level": "DEBUG", "json_format": False}
