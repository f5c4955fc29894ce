"""Custom exceptions for Brain MCP."""

from __future__ import annotations

from typing import Any


class BrainException(Exception):
    """Base exception for Brain MCP."""

    pass


class LLMException(BrainException):
    """Raised during LLM API calls."""

    pass


class GenerationError(BrainException):
    """Raised when the generator fails to produce usable text.

    Covers LLM failures, timeouts and empty responses. The control loop
    logs and skips the step that raised it.
    """

    pass


class ConfigException(BrainException):
    """Raised during configuration issues."""

    pass


class SessionNotFoundError(BrainException):
    """Raised when a session ID is not found."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(f"Session not found: {session_id}")


class ThinkingError(BrainException):
    """Structural violation on a reasoning session.

    Raised by the session manager when an operation would break the
    consistency of the session record. Never retried.
    """

    def __init__(
        self,
        message: str,
        code: str,
        context: dict[str, Any] | None = None,
    ) -> None:
        """Initialize thinking error.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            context: Optional details about the rejected operation.

        """
        self.message = message
        self.code = code
        self.context = context or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {"error": self.message, "code": self.code, "context": self.context}


class InvalidRevisionError(ThinkingError):
    """Raised when a revision targets a missing or later thought."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, "INVALID_REVISION", context)


class BranchingError(ThinkingError):
    """Base class for branch-related violations."""

    pass


class BranchingDisabledError(BranchingError):
    """Raised when branching is requested on a session that disables it."""

    def __init__(self, context: dict[str, Any] | None = None) -> None:
        super().__init__("Branching is disabled for this session", "BRANCHING_DISABLED", context)


class InvalidBranchTargetError(BranchingError):
    """Raised when a branch anchor or branch id is invalid."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message, "INVALID_BRANCH_POINT", context)


class HypothesisNotFoundError(ThinkingError):
    """Raised when testing a hypothesis that does not exist."""

    def __init__(self, hypothesis_id: str) -> None:
        self.hypothesis_id = hypothesis_id
        super().__init__(
            f"Hypothesis {hypothesis_id} not found",
            "HYPOTHESIS_NOT_FOUND",
            {"hypothesis_id": hypothesis_id},
        )


class SessionFinalizedError(ThinkingError):
    """Raised when mutating a session after finalize()."""

    def __init__(self, session_id: str) -> None:
        super().__init__(
            f"Session {session_id} is finalized",
            "SESSION_FINALIZED",
            {"session_id": session_id},
        )


class ToolExecutionError(Exception):
    """Raised when tool execution fails in MCP context.

    Provides structured error information that can be returned
    to the MCP client in a parseable format.
    """

    def __init__(
        self,
        tool_name: str,
        error_message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize tool execution error.

        Args:
            tool_name: Name of the tool that failed.
            error_message: Human-readable error message.
            details: Optional dictionary with additional error details.

        """
        self.tool_name = tool_name
        self.error_message = error_message
        self.details = details or {}
        super().__init__(f"Tool {tool_name} failed: {error_message}")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        Returns:
            Dictionary representation of the error.

        """
        return {
            "error": True,
            "tool": self.tool_name,
            "message": self.error_message,
            "details": self.details,
        }
