"""Unit tests for structured logging helpers."""

import json
import logging

import pytest

from deep_citation.core.logging_setup import ColoredFormatter, JsonFormatter
from deep_citation.core.logging_utils import (
    format_log_dict,
    get_logger,
    log_request_coalesced,
    log_upload_error,
    truncate,
)

LOGGER_NAME = "deep_citation.tests.structured"


class TestFormatting:
    """Tests for the formatting helpers."""

    def test_truncate(self) -> None:
        assert truncate("short") == "short"
        assert truncate("x" * 10, max_length=4) == "xxxx..."
        assert truncate(None) == "<none>"

    def test_format_log_dict(self) -> None:
        formatted = format_log_dict({"name": "doc", "count": 3, "ids": [1, 2, 3, 4, 5], "body": {"a": 1}})
        assert formatted == 'name="doc" | count=3 | ids=[1, 2, ... +3 more] | body={...1 keys}'


class TestStructuredLogger:
    """Tests for StructuredLogger output."""

    def test_event_with_fields(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger(LOGGER_NAME)
        with caplog.at_level(logging.INFO, logger=LOGGER_NAME):
            logger.info("VERIFY_REQUEST", attachment_id="doc1", citations=2)
        assert caplog.records[-1].getMessage() == 'VERIFY_REQUEST | attachment_id="doc1" | citations=2'

    def test_event_without_fields(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger(LOGGER_NAME)
        with caplog.at_level(logging.WARNING, logger=LOGGER_NAME):
            logger.warning("SLOW")
        assert caplog.records[-1].getMessage() == "SLOW"
        assert logger.name == LOGGER_NAME

    def test_event_helpers(self, caplog: pytest.LogCaptureFixture) -> None:
        logger = get_logger(LOGGER_NAME)
        with caplog.at_level(logging.DEBUG, logger=LOGGER_NAME):
            log_upload_error(logger, filename=None, error=ValueError("bad"), status_code=400)
            log_request_coalesced(logger, attachment_id="doc1", fingerprint="abc")
        error_record, coalesced_record = caplog.records[-2:]
        assert error_record.levelno == logging.ERROR
        assert error_record.getMessage().startswith('UPLOAD_ERROR | filename="<unnamed>"')
        assert coalesced_record.levelno == logging.DEBUG
        assert coalesced_record.getMessage() == 'VERIFY_COALESCED | attachment_id="doc1" | fingerprint="abc"'


class TestFormatters:
    """Tests for the root logging formatters."""

    def _record(self) -> logging.LogRecord:
        return logging.LogRecord(LOGGER_NAME, logging.WARNING, __file__, 1, "hello %s", ("world",), None)

    def test_json_formatter(self) -> None:
        payload = json.loads(JsonFormatter().format(self._record()))
        assert payload["level"] == "WARNING"
        assert payload["logger"] == LOGGER_NAME
        assert payload["message"] == "hello world"

    def test_colored_formatter_leaves_record_untouched(self) -> None:
        record = self._record()
        output = ColoredFormatter(fmt="%(levelname)s %(message)s").format(record)
        assert "\033[33m" in output
        assert record.levelname == "WARNING"
