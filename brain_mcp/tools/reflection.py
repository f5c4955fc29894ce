"""Reflect mode: critique an externally supplied analysis.

Unlike the other modes there is no thought chain. Each focus area gets one
reflection call and each reflection one issue-identification call; the
issues then drive improvements, an optional rewrite and recommended
actions. Every Generator failure degrades to a fixed fallback.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence

from loguru import logger
from pydantic import BaseModel, Field

from brain_mcp.config import PacingConfig
from brain_mcp.tools.reasoning_engine import Reflector, ReflectionNote
from brain_mcp.tools.reasoning_types import (
    IssueSeverity,
    ReflectionFocus,
    ReflectionIssue,
    ReflectionResult,
    ThinkingContext,
)
from brain_mcp.utils.errors import GenerationError

BASE_CONFIDENCE = 0.8
HIGH_SEVERITY_PENALTY = 0.2
MEDIUM_SEVERITY_PENALTY = 0.1
IMPROVEMENT_BONUS = 0.1
MAX_FALLBACK_IMPROVEMENTS = 5

SOUND_ANALYSIS_IMPROVEMENTS = [
    "Analysis appears sound",
    "Consider additional perspectives if needed",
]
FALLBACK_ACTIONS = [
    "Review identified issues",
    "Implement suggested improvements",
    "Validate revised analysis",
    "Consider additional perspectives",
]
REVISION_TRIGGERS = ("significant", "major", "critical")


class ReflectionRequest(BaseModel):
    """Input of a reflect run."""

    original_analysis: str = Field(min_length=1)
    focus: list[ReflectionFocus] = Field(min_length=1)
    improvement_goals: list[str] = Field(default_factory=list)
    new_information: str | None = None
    alternative_viewpoints: list[str] = Field(default_factory=list)
    context: ThinkingContext | None = None

    def extra_context(self) -> str:
        """Optional prompt block with the caller's additional material."""
        parts = []
        if self.new_information:
            parts.append(f"New information: {self.new_information}")
        if self.alternative_viewpoints:
            parts.append(f"Alternative viewpoints: {', '.join(self.alternative_viewpoints)}")
        if self.improvement_goals:
            parts.append(f"Improvement goals: {', '.join(self.improvement_goals)}")
        return "\n".join(parts) + "\n\n" if parts else ""


def reflection_confidence(issues: Sequence[ReflectionIssue], improvements: Sequence[str]) -> float:
    """Confidence in the reviewed analysis.

    Starts at 0.8, loses 0.2 per high and 0.1 per medium issue, gains 0.1
    when any improvement exists, and is kept within [0.1, 1.0].
    """
    high = sum(1 for issue in issues if issue.severity == IssueSeverity.HIGH)
    medium = sum(1 for issue in issues if issue.severity == IssueSeverity.MEDIUM)
    confidence = BASE_CONFIDENCE - HIGH_SEVERITY_PENALTY * high - MEDIUM_SEVERITY_PENALTY * medium
    if improvements:
        confidence += IMPROVEMENT_BONUS
    return max(min(confidence, 1.0), 0.1)


def needs_revision(improvements: Sequence[str]) -> bool:
    return any(trigger in imp for imp in improvements for trigger in REVISION_TRIGGERS)


class ReflectionProcessor:
    """Runs the reflect mode against a ``Reflector``."""

    def __init__(self, reflector: Reflector, *, pacing: PacingConfig | None = None) -> None:
        self._reflector = reflector
        self._pacing = pacing or PacingConfig()

    async def _pause(self, pace: str) -> None:
        delay = self._pacing.seconds(pace)
        if delay > 0:
            await asyncio.sleep(delay)

    async def process(self, request: ReflectionRequest) -> ReflectionResult:
        start = time.time()
        logger.info(
            f"Starting reflection on {len(request.original_analysis)} chars "
            f"with focus {[f.value for f in request.focus]}"
        )

        notes = await self._reflect(request)
        issues = await self._identify_issues(notes)
        improvements = await self._improvements(request, issues)
        revised = await self._revise(request, improvements)
        confidence = reflection_confidence(issues, improvements)
        actions = await self._actions(request, improvements)

        logger.info(
            f"Reflection finished: {len(issues)} issues, {len(improvements)} improvements, "
            f"confidence {confidence:.2f}"
        )
        return ReflectionResult(
            original_analysis=request.original_analysis,
            revised_analysis=revised,
            identified_issues=issues,
            improvements=improvements,
            recommended_actions=actions,
            confidence=confidence,
            processing_time=time.time() - start,
        )

    async def _reflect(self, request: ReflectionRequest) -> list[ReflectionNote]:
        notes = []
        extra = request.extra_context()
        for focus in request.focus:
            try:
                notes.append(
                    await self._reflector.reflect(request.original_analysis, focus, extra)
                )
            except GenerationError as e:
                logger.warning(f"Failed to perform reflection for {focus.value}: {e}")
            await self._pause("step")
        return notes

    async def _identify_issues(self, notes: Sequence[ReflectionNote]) -> list[ReflectionIssue]:
        issues: list[ReflectionIssue] = []
        for note in notes:
            try:
                issues.extend(await self._reflector.identify_issues(note))
            except GenerationError as e:
                logger.warning(f"Failed to identify issues for {note.focus.value}: {e}")
            await self._pause("initial")
        return issues

    async def _improvements(
        self, request: ReflectionRequest, issues: Sequence[ReflectionIssue]
    ) -> list[str]:
        if not issues:
            return list(SOUND_ANALYSIS_IMPROVEMENTS)
        try:
            return await self._reflector.suggest_improvements(
                request.original_analysis, issues, request.improvement_goals
            )
        except GenerationError as e:
            logger.warning(f"Failed to generate improvements: {e}")
        return [
            issue.suggestion
            for issue in issues
            if issue.severity in (IssueSeverity.HIGH, IssueSeverity.MEDIUM)
        ][:MAX_FALLBACK_IMPROVEMENTS]

    async def _revise(self, request: ReflectionRequest, improvements: list[str]) -> str | None:
        if not needs_revision(improvements):
            return None
        try:
            return await self._reflector.revise_analysis(
                request.original_analysis,
                improvements,
                request.new_information,
                request.alternative_viewpoints,
            )
        except GenerationError as e:
            logger.warning(f"Failed to create revised analysis: {e}")
            return None

    async def _actions(self, request: ReflectionRequest, improvements: list[str]) -> list[str]:
        context = request.context.to_prompt() if request.context else ""
        try:
            return await self._reflector.recommend_actions(
                context, improvements, request.improvement_goals
            )
        except GenerationError as e:
            logger.warning(f"Failed to generate recommended actions: {e}")
            return list(FALLBACK_ACTIONS)
