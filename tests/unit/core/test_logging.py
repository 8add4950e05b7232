"""Unit tests for src.core.logging module."""

import json
import logging
from datetime import UTC, datetime
from types import SimpleNamespace
from typing import Any

import pytest
from pytest_mock import MockerFixture

from src.core.config import Settings
from src.core.constants import REDACTED
from src.core.logging import (
    InterceptHandler,
    format_console_with_context,
    reset_logging,
    serialize_for_json,
    setup_logging,
)


def make_record(**extra: Any) -> dict[str, Any]:  # noqa: ANN401
    """Build a minimal Loguru-shaped record."""
    return {
        "time": datetime(2025, 1, 1, 12, 0, 0, tzinfo=UTC),
        "level": SimpleNamespace(name="INFO"),
        "message": "Request failed with status 400",
        "name": "src.api.middleware.error_handler",
        "function": "render_failure",
        "line": 10,
        "extra": extra,
        "exception": None,
    }


@pytest.mark.unit
class TestConsoleFormatter:
    """Test the development console formatter."""

    def test_message_is_a_placeholder(self) -> None:
        """Test the message is left for Loguru to substitute."""
        line = format_console_with_context(make_record())

        assert "{message}" in line
        assert line.endswith("\n")

    def test_priority_fields_come_first(self) -> None:
        """Test the reference id is shortened and shown before other fields."""
        line = format_console_with_context(
            make_record(
                error_type="ValueError",
                reference_id="550e8400-e29b-41d4-a716-446655440000",
            )
        )

        assert "550e8400" in line
        assert "e29b" not in line
        assert line.index("550e8400") < line.index("error_type=ValueError")

    def test_sensitive_fields_are_redacted(self) -> None:
        """Test sensitive extras never print in clear text."""
        line = format_console_with_context(make_record(password="hunter2"))

        assert "hunter2" not in line
        assert f"password={REDACTED}" in line

    def test_braces_and_markup_are_escaped(self) -> None:
        """Test values cannot inject format fields or color tags."""
        line = format_console_with_context(make_record(detail="{oops} <red>"))

        assert "{{oops}}" in line
        assert r"\<red>" in line

    def test_stack_is_appended(self) -> None:
        """Test the stack goes after the line, not inline."""
        line = format_console_with_context(make_record(stack="Traceback: boom"))

        assert "\nTraceback: boom" in line
        assert "stack=" not in line


@pytest.mark.unit
class TestJsonFormatter:
    """Test the structured JSON formatter."""

    def test_one_json_object_per_line(self) -> None:
        """Test the output is a single parseable JSON line."""
        output = serialize_for_json(make_record(status_code=400, reference_id="abc"))

        assert output.endswith("\n")
        entry = json.loads(output)
        assert entry["level"] == "INFO"
        assert entry["message"] == "Request failed with status 400"
        assert entry["status_code"] == 400
        assert entry["reference_id"] == "abc"
        assert entry["timestamp"].startswith("2025-01-01T12:00:00")

    def test_sensitive_and_private_fields(self) -> None:
        """Test sensitive extras are redacted and private ones dropped."""
        entry = json.loads(
            serialize_for_json(make_record(Authorization="Bearer x", _internal=1))
        )

        assert entry["Authorization"] == REDACTED
        assert "_internal" not in entry

    def test_exception_summary(self) -> None:
        """Test exceptions are reduced to type and value."""
        record = make_record()
        record["exception"] = SimpleNamespace(type=ValueError, value=ValueError("bad"))

        entry = json.loads(serialize_for_json(record))

        assert entry["exception"] == {"type": "ValueError", "value": "bad"}


@pytest.mark.unit
class TestInterceptHandler:
    """Test forwarding of standard library records."""

    def test_forwards_to_loguru(self, log_records: list[dict[str, Any]]) -> None:
        """Test a stdlib record reaches Loguru with its level."""
        record = logging.LogRecord(
            "some.library", logging.WARNING, __file__, 1, "disk %s", ("full",), None
        )

        InterceptHandler().emit(record)

        forwarded = log_records[-1]
        assert forwarded["message"] == "disk full"
        assert forwarded["level"].name == "WARNING"

    def test_access_log_scope(self, log_records: list[dict[str, Any]]) -> None:
        """Test uvicorn access records carry method, path and client."""
        record = logging.LogRecord(
            "uvicorn.access", logging.INFO, __file__, 1, "GET / 200", None, None
        )
        record.scope = {"method": "GET", "path": "/", "client": ("10.0.0.1", 1)}

        InterceptHandler().emit(record)

        extra = log_records[-1]["extra"]
        assert extra["method"] == "GET"
        assert extra["path"] == "/"
        assert extra["client_ip"] == "10.0.0.1"


@pytest.mark.unit
class TestSetupLogging:
    """Test logging configuration."""

    def test_idempotent(self, mocker: MockerFixture) -> None:
        """Test sinks are only installed by the first call."""
        mock_logger = mocker.patch("src.core.logging.logger")
        mocker.patch("logging.basicConfig")
        settings = Settings(_env_file=None)  # type: ignore[call-arg]
        reset_logging()

        setup_logging(settings)
        setup_logging(settings)

        mock_logger.remove.assert_called_once_with()
        assert mock_logger.add.call_count == 1

    def test_json_formatter_uses_structured_sink(self, mocker: MockerFixture) -> None:
        """Test non-development environments get a callable sink."""
        mock_logger = mocker.patch("src.core.logging.logger")
        mocker.patch("logging.basicConfig")
        settings = Settings(_env_file=None, environment="production")  # type: ignore[call-arg]
        reset_logging()

        setup_logging(settings)

        sink = mock_logger.add.call_args.args[0]
        assert callable(sink)
        assert mock_logger.add.call_args.kwargs["diagnose"] is False
