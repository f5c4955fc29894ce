"""Logging setup for Brain MCP.

Every sink writes to stderr or a file; stdout belongs to the stdio transport.
Log lines carry the active reasoning session and tool through context
variables, and structured extras are scrubbed before serialization:
credentials are masked and long reasoning text is clipped to a preview.
"""

from __future__ import annotations

import sys
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import UTC, datetime
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson
from loguru import logger

if TYPE_CHECKING:
    from loguru import Record

_session_id: ContextVar[str | None] = ContextVar("session_id", default=None)
_tool_name: ContextVar[str | None] = ContextVar("tool_name", default=None)

# Substrings matched against normalized keys (lowercase, no "_" or "-")
CREDENTIAL_MARKERS = ("apikey", "password", "secret", "token", "authorization", "credential")

# Extras holding problem statements or generated text
TEXT_FIELDS = frozenset({"problem", "content", "thought", "analysis", "prompt", "response"})
TEXT_PREVIEW_CHARS = 200
MAX_SCRUB_DEPTH = 8

# Internal extra key used to hand the JSON line to the sink format
_JSON_KEY = "_json_line"


class LogFormat(str, Enum):
    TEXT = "text"
    JSON = "json"


def _normalize(key: str) -> str:
    return key.lower().replace("_", "").replace("-", "")


def _scrub_value(key: str, value: Any, depth: int) -> Any:
    if any(marker in _normalize(key) for marker in CREDENTIAL_MARKERS):
        return "[REDACTED]"
    if isinstance(value, dict):
        return scrub_extra(value, depth + 1)
    if isinstance(value, list):
        return [scrub_extra(v, depth + 1) if isinstance(v, dict) else v for v in value]
    if key.lower() in TEXT_FIELDS and isinstance(value, str) and len(value) > TEXT_PREVIEW_CHARS:
        return f"{value[:TEXT_PREVIEW_CHARS]}... ({len(value)} chars)"
    return value


def scrub_extra(data: dict[str, Any], depth: int = 0) -> dict[str, Any]:
    """Mask credentials and clip reasoning text in structured log extras.

    Nested dicts, and dicts inside lists, are scrubbed too. Below
    ``MAX_SCRUB_DEPTH`` levels the data is returned unchanged.

    Args:
        data: Extra fields bound to a log record.
        depth: Current nesting level.

    Returns:
        A scrubbed copy; ``data`` itself is not modified.

    """
    if depth > MAX_SCRUB_DEPTH:
        return data
    return {
        key: _scrub_value(key, value, depth)
        for key, value in data.items()
        if not key.startswith("_")
    }


def _context_fields() -> dict[str, str]:
    fields: dict[str, str] = {}
    if session_id := _session_id.get():
        fields["session_id"] = session_id
    if tool := _tool_name.get():
        fields["tool"] = tool
    return fields


def json_serializer(record: Record) -> str:
    """Render a loguru record as one JSON line (without trailing newline)."""
    entry: dict[str, Any] = {
        "timestamp": datetime.now(UTC).isoformat(),
        "level": record["level"].name,
        "message": record["message"],
        "source": f"{record['name']}:{record['function']}:{record['line']}",
        **_context_fields(),
    }

    extra = scrub_extra(dict(record.get("extra") or {}))
    if extra:
        entry["extra"] = extra

    exception = record["exception"]
    if exception:
        entry["exception"] = {
            "type": exception.type.__name__ if exception.type else None,
            "value": str(exception.value) if exception.value else None,
        }

    return orjson.dumps(entry, default=str).decode("utf-8")


def _json_format(record: Record) -> str:
    record["extra"][_JSON_KEY] = json_serializer(record)
    return "{extra[" + _JSON_KEY + "]}\n"


def text_format(record: Record) -> str:
    """Colored single-line format with a ``[sess=... tool=...]`` prefix."""
    fields = _context_fields()
    prefix = ""
    if fields:
        parts = []
        if "session_id" in fields:
            parts.append(f"sess={fields['session_id'][:16]}")
        if "tool" in fields:
            parts.append(f"tool={fields['tool']}")
        # Escape braces so loguru does not treat ids as format fields
        prefix = "[" + " ".join(parts).replace("{", "{{").replace("}", "}}") + "] "

    return (
        "<green>{time:HH:mm:ss.SSS}</green> <level>{level: <8}</level> "
        "<cyan>{name}:{line}</cyan> " + prefix + "<level>{message}</level>\n{exception}"
    )


def configure_logging(
    level: str = "INFO",
    log_format: LogFormat | str = LogFormat.TEXT,
    log_file: str | Path | None = None,
) -> None:
    """Replace loguru's default handler with the server's sinks.

    Args:
        level: Minimum level, case-insensitive.
        log_format: ``text`` or ``json`` for the stderr sink.
        log_file: Optional path; the file always receives JSON lines.

    Raises:
        ValueError: Unknown ``log_format``.

    """
    fmt = LogFormat(log_format.lower()) if isinstance(log_format, str) else log_format
    level = level.upper()

    logger.remove()
    if fmt is LogFormat.JSON:
        logger.add(sys.stderr, format=_json_format, level=level, colorize=False)
    else:
        logger.add(sys.stderr, format=text_format, level=level, colorize=True)

    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(path, format=_json_format, level=level, rotation="50 MB", retention=5)


@contextmanager
def log_context(session_id: str | None = None, tool: str | None = None) -> Iterator[None]:
    """Attach a session id and/or tool name to every log line in the block.

    Unset arguments leave the enclosing context's values in place.
    """
    tokens = []
    if session_id:
        tokens.append(_session_id.set(session_id))
    if tool:
        tokens.append(_tool_name.set(tool))
    try:
        yield
    finally:
        for token in reversed(tokens):
            token.var.reset(token)


def get_session_id() -> str | None:
    return _session_id.get()


def get_tool_name() -> str | None:
    return _tool_name.get()
