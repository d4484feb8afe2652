"""Unit tests for logging configuration."""

import io
import json
import logging
from collections.abc import Generator

import pytest
import structlog

from bytefeed.observability import (
    bind_run_context,
    clear_run_context,
    configure_logging,
)


@pytest.fixture(autouse=True)
def reset_structlog() -> Generator[None]:
    """Restore structlog defaults after each test."""
    yield
    clear_run_context()
    structlog.reset_defaults()


class TestConfigureLogging:
    """Tests for configure_logging."""

    @pytest.mark.unit
    def test_json_lines_with_run_context(self) -> None:
        """Test events render as JSON carrying the bound run id."""
        output = io.StringIO()
        configure_logging(level=logging.INFO, output=output)

        bind_run_context("run-42")
        structlog.get_logger().bind(component="queue").info("batch_started", editions=3)

        record = json.loads(output.getvalue().strip().splitlines()[-1])
        assert record["event"] == "batch_started"
        assert record["run_id"] == "run-42"
        assert record["component"] == "queue"
        assert record["editions"] == 3
        assert record["level"] == "info"

    @pytest.mark.unit
    def test_level_filters_events(self) -> None:
        """Test events below the configured level are dropped."""
        output = io.StringIO()
        configure_logging(level=logging.WARNING, output=output)

        structlog.get_logger().info("quiet_event")

        assert "quiet_event" not in output.getvalue()

    @pytest.mark.unit
    def test_cleared_context_is_not_rendered(self) -> None:
        """Test the run id disappears once the context is cleared."""
        output = io.StringIO()
        configure_logging(level=logging.INFO, output=output)

        bind_run_context("run-1")
        clear_run_context()
        structlog.get_logger().info("after_clear")

        record = json.loads(output.getvalue().strip().splitlines()[-1])
        assert "run_id" not in record
