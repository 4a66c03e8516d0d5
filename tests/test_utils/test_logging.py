"""
Tests for structured logging.
"""

import io
import json
import logging

import pytest

from schemamcp.core.context import Principal, RunContext
from schemamcp.logging import (
    bind_log_fields,
    call_fields,
    configure_logging,
    current_log_fields,
    get_logger,
    log_scope,
)
from schemamcp.mcp.config import McpConfig


@pytest.fixture
def stream():
    output = io.StringIO()
    yield output
    package_logger = logging.getLogger("schemamcp")
    package_logger.handlers.clear()
    package_logger.propagate = True
    package_logger.setLevel(logging.NOTSET)


def lines(stream):
    return [line for line in stream.getvalue().splitlines() if line]


class TestLogScope:
    """Tests for request-scoped fields."""

    def test_nesting(self):
        with log_scope(request_id="r-1", tool_name="CatalogService_Books_query"):
            assert current_log_fields() == {"request_id": "r-1", "tool_name": "CatalogService_Books_query"}
            with log_scope(service="CatalogService", tool_name=None):
                assert current_log_fields()["service"] == "CatalogService"
                assert current_log_fields()["tool_name"] == "CatalogService_Books_query"
            assert "service" not in current_log_fields()
        assert current_log_fields() == {}

    def test_bind_until_scope_closes(self):
        with log_scope(request_id="r-2"):
            bind_log_fields(entity="CatalogService.Books")
            assert current_log_fields()["entity"] == "CatalogService.Books"
        assert current_log_fields() == {}

    def test_call_fields(self):
        ctx = RunContext(principal=Principal(user_id="alice"), request_id="req-1")
        assert call_fields(ctx, tool_name="describe_model") == {
            "request_id": "req-1",
            "user_id": "alice",
            "tool_name": "describe_model",
        }


class TestLogger:
    """Tests for the keyword-field logger."""

    def test_bound_fields(self, caplog):
        logger = get_logger("schemamcp.tests").bind(entity="CatalogService.Books", rows=0)

        with caplog.at_level(logging.INFO, logger="schemamcp"):
            logger.info("Query executed", rows=3)

        (record,) = caplog.records
        assert record.entity == "CatalogService.Books"
        assert record.rows == 3
        assert logger.fields == {"entity": "CatalogService.Books", "rows": 0}

    def test_level_names(self, stream):
        configure_logging(level="warning", output=stream)
        logger = get_logger("schemamcp.tests")
        assert logger.is_enabled_for("ERROR")
        assert not logger.is_enabled_for(logging.INFO)

    def test_unknown_level(self):
        with pytest.raises(ValueError, match="Unknown log level"):
            configure_logging(level="LOUD")


class TestConfigureLogging:
    """Tests for handler setup and formatting."""

    def test_json_output(self, stream):
        configure_logging(level="DEBUG", output=stream)
        logger = get_logger("schemamcp.tests")

        with log_scope(request_id="req-7", user_id="alice"):
            logger.info("Query executed", rows=3)

        (line,) = lines(stream)
        record = json.loads(line)
        assert record["level"] == "INFO"
        assert record["logger"] == "schemamcp.tests"
        assert record["message"] == "Query executed"
        assert record["request_id"] == "req-7"
        assert record["user_id"] == "alice"
        assert record["extra"] == {"rows": 3}

    def test_exception_block(self, stream):
        configure_logging(output=stream)
        logger = get_logger("schemamcp.tests")

        try:
            raise ValueError("bad row")
        except ValueError:
            logger.exception("Unexpected tool failure")

        record = json.loads(lines(stream)[0])
        assert record["level"] == "ERROR"
        assert record["exception"]["type"] == "ValueError"
        assert record["exception"]["message"] == "bad row"
        assert "Traceback" in record["exception"]["traceback"]

    def test_level_filter(self, stream):
        configure_logging(level="WARNING", output=stream)
        logger = get_logger("schemamcp.tests")

        logger.info("hidden")
        logger.warning("shown")

        assert [json.loads(line)["message"] for line in lines(stream)] == ["shown"]

    def test_text_output(self, stream):
        configure_logging(format="text", output=stream)
        logger = get_logger("schemamcp.tests")

        with log_scope(tool_name="CatalogService_Books_get"):
            logger.warning("Key missing", key="ID")

        (line,) = lines(stream)
        assert "\033[" not in line
        assert "WARNING" in line
        assert "schemamcp.tests: Key missing" in line
        assert "tool_name=CatalogService_Books_get" in line
        assert "key=ID" in line

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown log format"):
            configure_logging(format="xml")

    def test_reconfigure_replaces_handler(self, stream):
        first = configure_logging(output=stream)
        second = configure_logging(output=stream)

        handlers = logging.getLogger("schemamcp").handlers
        assert handlers == [second]
        assert first is not second

    def test_from_config(self, stream):
        McpConfig(log_level="ERROR", log_format="text").configure_logging(stream)
        logger = get_logger("schemamcp.tests")

        logger.warning("hidden")
        logger.error("Query failed")

        (line,) = lines(stream)
        assert "Query failed" in line
