"""Utility modules for Brain MCP."""

from .complexity import ComplexityLevel, ComplexityResult, classify_complexity
from .errors import (
    BrainException,
    ConfigException,
    GenerationError,
    LLMException,
    SessionNotFoundError,
    ThinkingError,
    ToolExecutionError,
)
from .retry import retry_with_backoff, with_timeout

__all__ = [
    "BrainException",
    "ComplexityLevel",
    "ComplexityResult",
    "ConfigException",
    "GenerationError",
    "LLMException",
    "SessionNotFoundError",
    "ThinkingError",
    "ToolExecutionError",
    "classify_complexity",
    "retry_with_backoff",
    "with_timeout",
]
