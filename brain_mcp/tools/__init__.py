"""Brain reasoning tools - session manager, control loop and reasoning modes."""

from .orchestrator import Orchestrator
from .reasoning_types import (
    AnalysisDepth,
    AnalysisResult,
    OutputDetail,
    ProcessingMode,
    ProcessingOptions,
    ReasoningResult,
    ReasoningSession,
    ReflectionFocus,
    ReflectionResult,
    SolutionApproach,
    SolutionResult,
    ThinkingContext,
    ThinkingStyle,
    Thought,
)
from .reflection import ReflectionProcessor, ReflectionRequest
from .sequential_thinking import SequentialThinkingManager
from .thought_manager import ThoughtManager

__all__ = [
    # Control loop
    "Orchestrator",
    "ReflectionProcessor",
    "ReflectionRequest",
    "SequentialThinkingManager",
    "ThoughtManager",
    # Types
    "AnalysisDepth",
    "AnalysisResult",
    "OutputDetail",
    "ProcessingMode",
    "ProcessingOptions",
    "ReasoningResult",
    "ReasoningSession",
    "ReflectionFocus",
    "ReflectionResult",
    "SolutionApproach",
    "SolutionResult",
    "ThinkingContext",
    "ThinkingStyle",
    "Thought",
]
