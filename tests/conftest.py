"""pytest configuration and fixtures."""

from __future__ import annotations

import os
from collections.abc import Callable, Sequence
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest

from brain_mcp.config import PacingConfig
from brain_mcp.tools.phase_plan import PhaseStep
from brain_mcp.tools.reasoning_engine import (
    HypothesisDraft,
    HypothesisVerdict,
    ImplementationPlan,
    ReflectionNote,
    SolutionChoice,
    Synthesis,
    ThoughtDraft,
)
from brain_mcp.tools.reasoning_types import (
    Hypothesis,
    HypothesisResult,
    IssueSeverity,
    ReflectionFocus,
    ReflectionIssue,
    ThinkingContext,
    ThinkingStyle,
    Thought,
)
from brain_mcp.utils.errors import GenerationError


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch: pytest.MonkeyPatch) -> None:
    """Set up mock environment variables for testing."""
    if not os.getenv("OPENAI_API_KEY"):
        monkeypatch.setenv("OPENAI_API_KEY", "sk-test-mock-key-for-testing")


class FakeClock:
    """Manually advanced clock for sessions and time limits."""

    def __init__(self, start: datetime | None = None, step: timedelta | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)
        self.step = step or timedelta(0)

    def __call__(self) -> datetime:
        current = self.now
        self.now = current + self.step
        return current

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class FakeGenerator:
    """Scripted generator implementing SolutionPlanner and Reflector.

    ``confidences`` is consumed one value per generated thought and the last
    value repeats. Any method name in ``fail`` raises ``GenerationError``.
    """

    def __init__(
        self,
        confidences: Sequence[float] = (0.8,),
        *,
        fail: Sequence[str] = (),
        verdict: HypothesisResult = HypothesisResult.CONFIRMED,
        issues: Sequence[ReflectionIssue] = (),
        improvements: Sequence[str] = ("Tighten the argument",),
        on_thought: Callable[[], None] | None = None,
    ) -> None:
        self.confidences = list(confidences)
        self.fail = set(fail)
        self.verdict = verdict
        self.issues = list(issues)
        self.improvements = list(improvements)
        self.on_thought = on_thought
        self.calls: list[str] = []
        self.steps: list[PhaseStep | None] = []
        self.styles: list[ThinkingStyle] = []
        self.extra_contexts: list[str | None] = []
        self._thought_index = 0

    def _record(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail:
            raise GenerationError(f"{name} failed")

    def count(self, name: str) -> int:
        return self.calls.count(name)

    async def generate_thought(
        self,
        problem: str,
        prior_thoughts: Sequence[Thought],
        style: ThinkingStyle,
        target_sequence: int,
        context: ThinkingContext | None = None,
        *,
        step: PhaseStep | None = None,
    ) -> ThoughtDraft:
        self._record("generate_thought")
        if self.on_thought:
            self.on_thought()
        self.steps.append(step)
        self.styles.append(style)
        index = min(self._thought_index, len(self.confidences) - 1)
        self._thought_index += 1
        label = step.name if step else "continuation"
        return ThoughtDraft(f"Thought {target_sequence} ({label})", self.confidences[index])

    async def generate_revision(
        self, original: Thought, all_thoughts: Sequence[Thought], problem: str
    ) -> str:
        self._record("generate_revision")
        return f"Revised: {original.content}"

    async def generate_hypothesis(
        self, problem: str, prior_thoughts: Sequence[Thought], style: ThinkingStyle
    ) -> HypothesisDraft:
        self._record("generate_hypothesis")
        return HypothesisDraft("The cache layer is the bottleneck", 0.5, ["latency spikes"])

    async def test_hypothesis(
        self,
        hypothesis: Hypothesis,
        prior_thoughts: Sequence[Thought],
        extra_context: str | None = None,
    ) -> HypothesisVerdict:
        self.extra_contexts.append(extra_context)
        self._record("test_hypothesis")
        return HypothesisVerdict(self.verdict, "Checked against thoughts", ["supporting fact"])

    async def synthesize(
        self,
        problem: str,
        thoughts: Sequence[Thought],
        hypotheses: Sequence[Hypothesis],
        style: ThinkingStyle,
        context: ThinkingContext | None = None,
    ) -> Synthesis:
        self._record("synthesize")
        return Synthesis(
            f"Synthesis of {len(thoughts)} thoughts",
            0.85,
            ["Ship the fix"],
            ["Monitor metrics"],
        )

    async def evaluate_solutions(
        self,
        problem: str,
        candidates: Sequence[Thought],
        tested_hypotheses: Sequence[Hypothesis],
    ) -> SolutionChoice:
        self._record("evaluate_solutions")
        return SolutionChoice(
            "Add a read-through cache",
            0.8,
            "Best trade-off",
            ["Start small"],
            ["Scale the database"],
        )

    async def plan_implementation(
        self, problem: str, solution: str, context: ThinkingContext | None = None
    ) -> ImplementationPlan:
        self._record("plan_implementation")
        return ImplementationPlan(
            steps=["Deploy cache", "Warm cache"],
            obstacles=["Invalidation"],
            success_criteria=["p99 under 100ms"],
            test_plan=["Load test"],
        )

    async def reflect(
        self, original_analysis: str, focus: ReflectionFocus, extra_context: str = ""
    ) -> ReflectionNote:
        self.extra_contexts.append(extra_context)
        self._record("reflect")
        return ReflectionNote(focus, f"Reflection on {focus.value}", ["finding"])

    async def identify_issues(self, note: ReflectionNote) -> list[ReflectionIssue]:
        self._record("identify_issues")
        return [i for i in self.issues if i.focus == note.focus]

    async def suggest_improvements(
        self,
        original_analysis: str,
        issues: Sequence[ReflectionIssue],
        goals: Sequence[str],
    ) -> list[str]:
        self._record("suggest_improvements")
        return list(self.improvements)

    async def revise_analysis(
        self,
        original_analysis: str,
        improvements: Sequence[str],
        new_information: str | None,
        alternative_viewpoints: Sequence[str],
    ) -> str:
        self._record("revise_analysis")
        return "Revised analysis"

    async def recommend_actions(
        self, context: str, improvements: Sequence[str], goals: Sequence[str]
    ) -> list[str]:
        self._record("recommend_actions")
        return ["Act on the improvements"]


@pytest.fixture
def zero_pacing() -> PacingConfig:
    """Pacing without delays."""
    return PacingConfig(initial_ms=0, step_ms=0, continuation_ms=0, max_consecutive_failures=3)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_issues() -> list[ReflectionIssue]:
    return [
        ReflectionIssue(
            ReflectionFocus.ASSUMPTIONS,
            "Assumes traffic stays flat",
            IssueSeverity.HIGH,
            "Model traffic growth",
        ),
        ReflectionIssue(
            ReflectionFocus.LOGIC_GAPS,
            "Skips the cost estimate",
            IssueSeverity.MEDIUM,
            "Add a cost estimate",
        ),
        ReflectionIssue(
            ReflectionFocus.LOGIC_GAPS,
            "Wording is vague",
            IssueSeverity.LOW,
            "Clarify wording",
        ),
    ]


@pytest.fixture
def mock_llm_response() -> MagicMock:
    """Create a mock LLM response."""
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = "This is a mock response from the LLM."
    return response
