"""Brain MCP Configuration.

Centralized configuration management with environment variable support
and Docker secrets integration.

Usage:
    from brain_mcp.config import get_config
    print(get_config().server.name)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from loguru import logger


def _get_env(key: str, default: str = "") -> str:
    """Get environment variable, treating empty string as unset.

    Also checks Docker secrets path for sensitive values.
    """
    secrets_path = Path(f"/run/secrets/{key.lower()}")
    if secrets_path.is_file():
        try:
            value = secrets_path.read_text().strip()
            if value:
                return value
        except OSError as e:
            logger.debug(f"Could not read secret {secrets_path}: {e}")

    value = os.getenv(key, default)
    return value if value else default


def _get_env_int(key: str, default: int) -> int:
    """Get environment variable as integer."""
    value = os.getenv(key)
    if value:
        try:
            return int(value)
        except ValueError:
            logger.warning(f"Invalid integer for {key}: {value}, using default {default}")
    return default


def _get_env_float(key: str, default: float) -> float:
    """Get environment variable as float."""
    value = os.getenv(key)
    if value:
        try:
            return float(value)
        except ValueError:
            logger.warning(f"Invalid number for {key}: {value}, using default {default}")
    return default


@dataclass(frozen=True)
class ServerConfig:
    """Server runtime configuration."""

    name: str = field(default_factory=lambda: _get_env("SERVER_NAME", "Brain-MCP"))
    transport: str = field(default_factory=lambda: _get_env("SERVER_TRANSPORT", "stdio"))
    host: str = field(default_factory=lambda: _get_env("SERVER_HOST", "127.0.0.1"))
    port: int = field(default_factory=lambda: _get_env_int("SERVER_PORT", 8000))


@dataclass(frozen=True)
class LLMConfig:
    """OpenAI-compatible endpoint used by the Generator.

    The API key itself is read by ``LLMClient`` from ``OPENAI_API_KEY``.
    """

    base_url: str = field(default_factory=lambda: _get_env("OPENAI_BASE_URL", ""))
    model: str = field(default_factory=lambda: _get_env("LLM_MODEL", "gpt-4o-mini"))
    timeout: int = field(default_factory=lambda: _get_env_int("LLM_TIMEOUT", 60))
    max_retries: int = field(default_factory=lambda: _get_env_int("LLM_MAX_RETRIES", 3))
    temperature: float = field(default_factory=lambda: _get_env_float("LLM_TEMPERATURE", 0.7))
    max_tokens: int = field(default_factory=lambda: _get_env_int("LLM_MAX_TOKENS", 1500))


@dataclass(frozen=True)
class PacingConfig:
    """Delays inserted after Generator calls, in milliseconds."""

    initial_ms: int = field(default_factory=lambda: _get_env_int("PACING_INITIAL_MS", 100))
    step_ms: int = field(default_factory=lambda: _get_env_int("PACING_STEP_MS", 150))
    continuation_ms: int = field(
        default_factory=lambda: _get_env_int("PACING_CONTINUATION_MS", 200)
    )
    max_consecutive_failures: int = field(
        default_factory=lambda: _get_env_int("MAX_CONSECUTIVE_FAILURES", 3)
    )

    def seconds(self, pace: str) -> float:
        """Delay for a pace name (``initial``, ``step`` or ``continuation``)."""
        delays = {
            "initial": self.initial_ms,
            "step": self.step_ms,
            "continuation": self.continuation_ms,
        }
        return max(delays.get(pace, self.step_ms), 0) / 1000


@dataclass(frozen=True)
class SessionConfig:
    """Session management configuration for sequential thinking."""

    max_age_minutes: int = field(
        default_factory=lambda: _get_env_int("SESSION_MAX_AGE_MINUTES", 60)
    )
    cleanup_interval_seconds: int = field(
        default_factory=lambda: _get_env_int("CLEANUP_INTERVAL_SECONDS", 1800)
    )
    max_thoughts_per_session: int = field(
        default_factory=lambda: _get_env_int("MAX_THOUGHTS_PER_SESSION", 1000)
    )


@dataclass(frozen=True)
class InputLimitsConfig:
    """Input size limits in characters."""

    min_problem_length: int = field(default_factory=lambda: _get_env_int("MIN_PROBLEM_LENGTH", 10))
    max_problem_length: int = field(
        default_factory=lambda: _get_env_int("MAX_PROBLEM_LENGTH", 2000)
    )
    min_analysis_length: int = field(
        default_factory=lambda: _get_env_int("MIN_ANALYSIS_LENGTH", 50)
    )
    max_analysis_length: int = field(
        default_factory=lambda: _get_env_int("MAX_ANALYSIS_LENGTH", 5000)
    )


@dataclass(frozen=True)
class LoggingConfig:
    level: str = field(default_factory=lambda: _get_env("LOG_LEVEL", "INFO").upper())
    format: str = field(default_factory=lambda: _get_env("LOG_FORMAT", "text").lower())
    file: str = field(default_factory=lambda: _get_env("LOG_FILE", ""))


@dataclass(frozen=True)
class Config:
    """Root configuration object."""

    server: ServerConfig = field(default_factory=ServerConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    pacing: PacingConfig = field(default_factory=PacingConfig)
    session: SessionConfig = field(default_factory=SessionConfig)
    input_limits: InputLimitsConfig = field(default_factory=InputLimitsConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> dict[str, Any]:
        """Convert config to dictionary (for logging/debugging)."""
        return {
            "server": {
                "name": self.server.name,
                "transport": self.server.transport,
                "host": self.server.host,
                "port": self.server.port,
            },
            "llm": {
                "base_url": self.llm.base_url or None,
                "model": self.llm.model,
                "timeout": self.llm.timeout,
                "max_retries": self.llm.max_retries,
            },
            "pacing": {
                "initial_ms": self.pacing.initial_ms,
                "step_ms": self.pacing.step_ms,
                "continuation_ms": self.pacing.continuation_ms,
                "max_consecutive_failures": self.pacing.max_consecutive_failures,
            },
            "session": {
                "max_age_minutes": self.session.max_age_minutes,
                "cleanup_interval_seconds": self.session.cleanup_interval_seconds,
                "max_thoughts_per_session": self.session.max_thoughts_per_session,
            },
            "logging": {
                "level": self.logging.level,
                "format": self.logging.format,
            },
        }


# Global config instance (lazy-loaded)
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration (for testing)."""
    global _config
    _config = Config()
    return _config
