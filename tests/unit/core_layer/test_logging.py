"""
Unit Tests for Logging Module

Tests logger creation, request context, processors and logging utilities.
"""

from unittest.mock import MagicMock

import pytest

from backoffice_cache.core.config.constants import Stage
from backoffice_cache.core.logging.logger import (
    add_log_level_name,
    add_request_id,
    clear_request_id,
    get_logger,
    get_request_id,
    log_stage,
    redact_pii,
    set_request_id,
    setup_logging,
)


@pytest.mark.unit
class TestLoggerCreation:
    """Test logger creation and configuration."""

    def test_get_logger_returns_logger_instance(self):
        """Test that get_logger returns a logger instance."""
        logger = get_logger(__name__)
        assert logger is not None
        assert hasattr(logger, "info")

    def test_setup_logging_accepts_both_formats(self):
        """Test that setup_logging configures json and console renderers."""
        setup_logging(log_level="DEBUG", log_format="json")
        setup_logging(log_level="INFO", log_format="console")


@pytest.mark.unit
class TestRequestContext:
    """Test request ID context management."""

    def test_set_and_get_request_id(self):
        """Test that set_request_id stores the request context."""
        set_request_id("req-123")
        try:
            assert get_request_id() == "req-123"
        finally:
            clear_request_id()

    def test_clear_request_id(self):
        """Test that clear_request_id clears the context."""
        set_request_id("req-123")
        clear_request_id()

        assert get_request_id() is None

    def test_add_request_id_processor(self):
        """Test that the processor injects the current request ID."""
        set_request_id("req-9")
        try:
            event = add_request_id(None, "info", {"event": "hello"})
        finally:
            clear_request_id()

        assert event["request_id"] == "req-9"

    def test_add_request_id_without_context(self):
        """Test that no request_id field is added outside a request."""
        clear_request_id()
        event = add_request_id(None, "info", {"event": "hello"})

        assert "request_id" not in event


@pytest.mark.unit
class TestProcessors:
    """Test custom structlog processors."""

    def test_redacts_email_in_event(self):
        """Test that emails in the message are redacted."""
        event = redact_pii(None, "info", {"event": "lookup for jane.doe@example.com"})
        assert event["event"] == "lookup for [EMAIL]"

    def test_redacts_encoded_email_in_cache_key(self):
        """Test that percent-encoded emails inside cache keys are redacted."""
        event = redact_pii(None, "info", {"event": "hit", "key": "customers:search:jane%40example.com"})
        assert event["key"] == "customers:search:[EMAIL]"

    def test_redacts_phone_in_pattern(self):
        """Test that phone numbers in invalidation patterns are redacted."""
        event = redact_pii(None, "info", {"event": "x", "pattern": "customers:phone:555-123-4567*"})
        assert "[PHONE]" in event["pattern"]

    def test_leaves_other_fields_untouched(self):
        """Test that non-string and unlisted fields pass through."""
        event = redact_pii(None, "info", {"event": "x", "count": 3, "user": "a@b.co"})
        assert event["count"] == 3
        assert event["user"] == "a@b.co"

    def test_uppercases_level(self):
        """Test level name normalization."""
        assert add_log_level_name(None, "info", {"level": "warning"})["level"] == "WARNING"


@pytest.mark.unit
class TestLogStageFunction:
    """Test the log_stage utility function."""

    def test_log_stage_calls_logger(self):
        """Test that log_stage calls the logger with the stage value."""
        mock_logger = MagicMock()

        log_stage(mock_logger, Stage.CACHE_LOOKUP, "Cache miss", cache_key="invoices:page:1")

        mock_logger.info.assert_called_once_with(
            "Cache miss", stage="2.0_CACHE_LOOKUP", cache_key="invoices:page:1"
        )

    def test_log_stage_with_level_and_plain_stage(self):
        """Test that log_stage honours level and accepts plain strings."""
        mock_logger = MagicMock()

        log_stage(mock_logger, "9.9", "Something odd", level="WARNING")

        mock_logger.warning.assert_called_once_with("Something odd", stage="9.9")
