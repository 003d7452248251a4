"""
Tests for logging configuration helpers.
"""

import json
import logging

import pytest
import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars, get_contextvars

from partymix.utils.logging_config import (
    clear_request_context,
    get_logger,
    log_error,
    log_service_fetch,
    set_request_context,
    setup_logging,
)


@pytest.fixture
def restore_logging():
    yield
    logging.getLogger().handlers.clear()
    structlog.reset_defaults()
    clear_request_context()


def flush_handlers():
    for handler in logging.getLogger().handlers:
        handler.flush()


class TestSetupLogging:
    """Test handler setup."""

    def test_file_handlers_write_json(self, tmp_path, restore_logging):
        setup_logging(log_dir=str(tmp_path), log_level="DEBUG", enable_console=False)

        get_logger("partymix.tests").info("profile generated", user_id="user-1")
        log_error(ValueError("bad payload"), {"operation": "adapt"})
        flush_handlers()

        main_lines = (tmp_path / "partymix.log").read_text().strip().splitlines()
        error_lines = (tmp_path / "errors.log").read_text().strip().splitlines()

        events = [json.loads(line) for line in main_lines]
        assert any(e["event"] == "profile generated" and e["user_id"] == "user-1" for e in events)

        errors = [json.loads(line) for line in error_lines]
        assert len(errors) == 1
        assert errors[0]["error_type"] == "ValueError"
        assert errors[0]["context"] == {"operation": "adapt"}

    def test_external_modules_quieted(self, restore_logging):
        setup_logging(log_level="DEBUG", enable_console=False)

        assert logging.getLogger("aiohttp").level == logging.WARNING


class TestRequestContext:
    """Test per-generation context binding."""

    def test_set_and_clear(self, restore_logging):
        clear_contextvars()
        set_request_context(request_id="req-1", user_id="user-1")

        context = get_contextvars()
        assert context["request_id"] == "req-1"
        assert context["user_id"] == "user-1"

        clear_request_context()
        assert get_contextvars() == {}

    def test_caller_context_survives(self, restore_logging):
        clear_contextvars()
        bind_contextvars(trace_id="web-42")

        set_request_context(request_id="req-1", user_id="user-1")
        assert get_contextvars()["trace_id"] == "web-42"

        clear_request_context()
        assert get_contextvars() == {"trace_id": "web-42"}
        clear_contextvars()


class TestServiceFetchLogging:
    """Test the per-service fetch log line."""

    def test_failed_fetch_logged_as_warning(self, tmp_path, restore_logging):
        setup_logging(log_dir=str(tmp_path), log_level="INFO", enable_console=False)

        log_service_fetch("spotify", "timeout", 15.0, timeout_seconds=15.0)
        flush_handlers()

        event = json.loads((tmp_path / "partymix.log").read_text().strip().splitlines()[-1])
        assert event["event"] == "service_fetch"
        assert event["level"] == "warning"
        assert event["source_service"] == "spotify"
        assert event["duration_ms"] == 15000.0
