"""Tests for structured logging helpers."""

import json
import logging

import pytest
from rich.logging import RichHandler

from vnbrowse.shared.errors import ErrorCode, ErrorContext, TransportFailure
from vnbrowse.shared.logging import (
    StructuredFormatter,
    log_api_call,
    log_operation_error,
    log_operation_success,
    setup_structured_logger,
)


@pytest.fixture
def test_logger():
    logger = logging.getLogger("vnbrowse.tests.logging")
    logger.setLevel(logging.DEBUG)
    return logger


class TestSetup:
    def test_rich_console_handler(self):
        logger = setup_structured_logger("vnbrowse.tests.setup", level="warning")
        assert logger.level == logging.WARNING
        assert isinstance(logger.handlers[0], RichHandler)
        assert logger.propagate is False

    def test_json_file_handler(self, tmp_path):
        log_file = tmp_path / "vnbrowse.log"
        logger = setup_structured_logger(
            "vnbrowse.tests.file",
            level="DEBUG",
            log_file=str(log_file),
            use_rich_console=False,
        )

        logger.info("hello", extra={"operation": "test"})
        for handler in logger.handlers:
            handler.flush()

        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
        assert entry["message"] == "hello"
        assert entry["operation"] == "test"
        for handler in logger.handlers:
            handler.close()

    def test_repeated_setup_does_not_duplicate_handlers(self):
        setup_structured_logger("vnbrowse.tests.repeat")
        logger = setup_structured_logger("vnbrowse.tests.repeat")
        assert len(logger.handlers) == 1


class TestFormatter:
    def test_includes_structured_fields(self):
        record = logging.LogRecord("x", logging.ERROR, __file__, 1, "failed %s", ("now",), None)
        record.error_code = "NETWORK_ERROR"
        record.duration_ms = 12.5

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "failed now"
        assert entry["level"] == "ERROR"
        assert entry["error_code"] == "NETWORK_ERROR"
        assert entry["duration_ms"] == 12.5


class TestHelpers:
    """Operation and API call helpers."""

    def test_operation_error(self, test_logger, caplog):
        error = TransportFailure(
            ErrorCode.API_SERVER_ERROR,
            "server down",
            ErrorContext(operation="query_titles", user_id="u1"),
        )

        with caplog.at_level(logging.ERROR, logger=test_logger.name):
            log_operation_error(test_logger, error, additional_context={"page": 2})

        record = caplog.records[0]
        assert record.message == "server down"
        assert record.error_code == "API_SERVER_ERROR"
        assert record.operation == "query_titles"
        assert record.context["page"] == 2
        assert "user_id" not in record.context

    def test_operation_success_is_debug(self, test_logger, caplog):
        with caplog.at_level(logging.DEBUG, logger=test_logger.name):
            log_operation_success(test_logger, "fetch_full_list", 3.0, result_info={"count": 4})

        record = caplog.records[0]
        assert record.levelno == logging.DEBUG
        assert record.result_info == {"count": 4}

    def test_failed_api_call_is_warning(self, test_logger, caplog):
        with caplog.at_level(logging.DEBUG, logger=test_logger.name):
            log_api_call(test_logger, "/vn", status_code=500)
            log_api_call(test_logger, "/vn", status_code=200)

        assert [record.levelno for record in caplog.records] == [logging.WARNING, logging.DEBUG]
        assert "failed with status 500" in caplog.records[0].message
