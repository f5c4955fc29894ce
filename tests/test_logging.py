"""Unit tests for brain_mcp/utils/logging.py."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from loguru import logger

from brain_mcp.utils.logging import (
    LogFormat,
    configure_logging,
    get_session_id,
    get_tool_name,
    json_serializer,
    log_context,
    scrub_extra,
    text_format,
)


def _record(**overrides: Any) -> dict[str, Any]:
    record: dict[str, Any] = {
        "level": MagicMock(),
        "message": "Test message",
        "name": "test_module",
        "function": "test_func",
        "line": 42,
        "extra": {},
        "exception": None,
    }
    record["level"].name = "INFO"
    record.update(overrides)
    return record


@pytest.fixture(autouse=True)
def restore_logger() -> Any:
    yield
    configure_logging("WARNING")


class TestLogFormatEnum:
    """Test LogFormat enum."""

    def test_values(self) -> None:
        assert LogFormat.JSON.value == "json"
        assert LogFormat.TEXT.value == "text"


class TestScrubExtra:
    """Test credential masking and text clipping."""

    def test_redacts_api_key(self) -> None:
        result = scrub_extra({"api_key": "sk-secret-key-123"})
        assert result["api_key"] == "[REDACTED]"

    def test_redacts_openai_api_key(self) -> None:
        result = scrub_extra({"OPENAI_API_KEY": "sk-openai-key"})
        assert result["OPENAI_API_KEY"] == "[REDACTED]"

    def test_redacts_nested_and_lists(self) -> None:
        data = {
            "config": {"password": "hunter2", "model": "gpt-4o-mini"},
            "headers": [{"Authorization": "Bearer xyz"}, "plain"],
        }
        result = scrub_extra(data)

        assert result["config"]["password"] == "[REDACTED]"
        assert result["config"]["model"] == "gpt-4o-mini"
        assert result["headers"][0]["Authorization"] == "[REDACTED]"
        assert result["headers"][1] == "plain"

    def test_preserves_non_sensitive(self) -> None:
        data = {"session_id": "thinking_1", "thought_number": 3}
        assert scrub_extra(data) == data

    def test_max_depth_protection(self) -> None:
        data: dict[str, Any] = {"token": "deep"}
        for _ in range(15):
            data = {"nested": data}
        # Must not raise; the deepest levels are returned untouched.
        result = scrub_extra(data)
        assert "nested" in result

    def test_clips_long_reasoning_text(self) -> None:
        problem = "x" * 500
        result = scrub_extra({"problem": problem, "content": "short"})

        assert result["problem"].startswith("x" * 200)
        assert result["problem"].endswith("(500 chars)")
        assert result["content"] == "short"

    def test_drops_private_keys(self) -> None:
        assert scrub_extra({"_json_line": "{}", "tool": "brain_think"}) == {
            "tool": "brain_think"
        }


class TestJsonSerializer:
    """Test JSON log serialization."""

    def test_basic_serialization(self) -> None:
        parsed = json.loads(json_serializer(_record()))

        assert parsed["level"] == "INFO"
        assert parsed["message"] == "Test message"
        assert parsed["source"] == "test_module:test_func:42"
        assert "timestamp" in parsed
        assert "session_id" not in parsed
        assert "extra" not in parsed

    def test_includes_context(self) -> None:
        with log_context(session_id="thinking_1_abc", tool="sequential_thinking"):
            parsed = json.loads(json_serializer(_record()))

        assert parsed["session_id"] == "thinking_1_abc"
        assert parsed["tool"] == "sequential_thinking"

    def test_with_exception(self) -> None:
        exception = MagicMock()
        exception.type = ValueError
        exception.value = "bad input"
        parsed = json.loads(json_serializer(_record(exception=exception)))

        assert parsed["exception"] == {"type": "ValueError", "value": "bad input"}

    def test_redacts_extra(self) -> None:
        record = _record(extra={"api_key": "secret", "data": "public"})
        parsed = json.loads(json_serializer(record))

        assert parsed["extra"]["api_key"] == "[REDACTED]"
        assert parsed["extra"]["data"] == "public"


class TestTextFormat:
    """Test text log formatting."""

    def test_without_context(self) -> None:
        fmt = text_format(_record())
        assert "sess=" not in fmt
        assert "{message}" in fmt

    def test_with_context(self) -> None:
        with log_context(session_id="thinking_1700000000000_ab12cd3", tool="brain_think"):
            fmt = text_format(_record())

        assert "sess=thinking_1700000" in fmt
        assert "tool=brain_think" in fmt


class TestLogContext:
    """Test context variable scoping."""

    def test_sets_and_resets(self) -> None:
        assert get_session_id() is None
        with log_context(session_id="s1", tool="brain_solve"):
            assert get_session_id() == "s1"
            assert get_tool_name() == "brain_solve"
        assert get_session_id() is None
        assert get_tool_name() is None

    def test_nested(self) -> None:
        with log_context(tool="outer"):
            with log_context(session_id="s2"):
                assert get_tool_name() == "outer"
                assert get_session_id() == "s2"
            assert get_session_id() is None
            assert get_tool_name() == "outer"

    def test_resets_on_error(self) -> None:
        with pytest.raises(RuntimeError):
            with log_context(session_id="s3"):
                raise RuntimeError("boom")
        assert get_session_id() is None


class TestConfigureLogging:
    """Test sink configuration."""

    def test_json_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("INFO", "json")
        logger.info("structured hello")

        line = capsys.readouterr().err.strip().splitlines()[-1]
        assert json.loads(line)["message"] == "structured hello"

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]) -> None:
        configure_logging("error", LogFormat.JSON)
        logger.info("dropped")

        assert "dropped" not in capsys.readouterr().err

    def test_file_sink(self, tmp_path: Path) -> None:
        log_file = tmp_path / "logs" / "brain.log"
        configure_logging("INFO", "text", log_file)
        logger.info("to file")
        logger.complete()

        assert log_file.exists()
        assert "to file" in log_file.read_text()

    def test_invalid_format(self) -> None:
        with pytest.raises(ValueError):
            configure_logging("INFO", "xml")
