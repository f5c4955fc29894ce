"""Tests for the control loop driving think, analyze and solve."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

import pytest

from brain_mcp.config import PacingConfig
from brain_mcp.tools.orchestrator import (
    FALLBACK_NEXT_STEPS,
    FALLBACK_PLAN,
    FALLBACK_RECOMMENDATIONS,
    Orchestrator,
    fallback_solution,
    fallback_synthesis,
    select_revision_target,
    should_revise,
)
from brain_mcp.tools.phase_plan import Pace
from brain_mcp.tools.reasoning_types import (
    AnalysisDepth,
    EvidenceQuality,
    HypothesisResult,
    ProcessingMode,
    ProcessingOptions,
    SolutionApproach,
    ThinkingContext,
    ThinkingStyle,
    Thought,
)
from tests.conftest import FakeClock, FakeGenerator


def _thought(sequence: int, confidence: float, **kwargs: object) -> Thought:
    return Thought(sequence=sequence, content=f"t{sequence}", confidence=confidence, **kwargs)


class ThinkOnlyGenerator:
    """Generator without solution evaluation."""

    async def generate_thought(self, *args: object, **kwargs: object) -> None:
        raise NotImplementedError

    async def generate_revision(self, *args: object) -> str:
        raise NotImplementedError

    async def generate_hypothesis(self, *args: object) -> None:
        raise NotImplementedError

    async def test_hypothesis(self, *args: object) -> None:
        raise NotImplementedError

    async def synthesize(self, *args: object) -> None:
        raise NotImplementedError


# =============================================================================
# Revision policy
# =============================================================================


class TestShouldRevise:
    """Tests for the revise-or-continue decision."""

    def test_two_thoughts_never_revise(self) -> None:
        """Fewer than three thoughts never trigger a revision."""
        thoughts = [_thought(1, 0.3), _thought(2, 0.3)]
        assert should_revise(thoughts, allow_revision=True) is False

    def test_three_thoughts_with_weak_one_revise(self) -> None:
        thoughts = [_thought(1, 0.5), _thought(2, 0.9), _thought(3, 0.9)]
        assert should_revise(thoughts, allow_revision=True) is True

    def test_disallowed(self) -> None:
        thoughts = [_thought(1, 0.5), _thought(2, 0.9), _thought(3, 0.9)]
        assert should_revise(thoughts, allow_revision=False) is False

    def test_no_weak_thoughts(self) -> None:
        thoughts = [_thought(1, 0.6), _thought(2, 0.9), _thought(3, 0.7)]
        assert should_revise(thoughts, allow_revision=True) is False

    def test_recent_revision_blocks(self) -> None:
        """A revision among the last two thoughts blocks another one."""
        thoughts = [
            _thought(1, 0.5),
            _thought(2, 0.4),
            _thought(3, 0.9),
            _thought(4, 0.7, is_revision=True, revises_sequence=1),
            _thought(5, 0.9),
        ]
        assert should_revise(thoughts, allow_revision=True) is False
        thoughts.append(_thought(6, 0.9))
        assert should_revise(thoughts, allow_revision=True) is True


class TestSelectRevisionTarget:
    """Tests for revision target selection."""

    def test_lowest_confidence(self) -> None:
        thoughts = [_thought(1, 0.7), _thought(2, 0.4), _thought(3, 0.5)]
        assert select_revision_target(thoughts).sequence == 2

    def test_tie_goes_to_lowest_sequence(self) -> None:
        thoughts = [_thought(1, 0.8), _thought(2, 0.4), _thought(3, 0.4)]
        assert select_revision_target(thoughts).sequence == 2

    def test_skips_revised_and_revisions(self) -> None:
        thoughts = [
            _thought(1, 0.3),
            _thought(2, 0.5),
            _thought(3, 0.2, is_revision=True, revises_sequence=1),
        ]
        assert select_revision_target(thoughts).sequence == 2

    def test_none_available(self) -> None:
        assert select_revision_target([]) is None


class TestFallbacks:
    """Tests for deterministic fallbacks."""

    def test_fallback_synthesis(self) -> None:
        synthesis = fallback_synthesis([_thought(1, 0.6), _thought(2, 0.8)], ThinkingStyle.CREATIVE)
        assert synthesis.analysis.startswith("Based on 2 thoughts")
        assert "creative thinking" in synthesis.analysis
        assert synthesis.confidence == pytest.approx(0.7)
        assert synthesis.recommendations == FALLBACK_RECOMMENDATIONS
        assert synthesis.next_steps == FALLBACK_NEXT_STEPS

    def test_fallback_synthesis_without_thoughts(self) -> None:
        assert fallback_synthesis([], ThinkingStyle.ANALYTICAL).confidence == 0.0

    def test_fallback_solution_picks_best(self) -> None:
        choice = fallback_solution([_thought(1, 0.6), _thought(2, 0.9), _thought(3, 0.7)])
        assert choice.statement == "t2"
        assert choice.confidence == 0.9
        assert choice.alternatives == ["t3", "t1"]

    def test_fallback_solution_without_candidates(self) -> None:
        choice = fallback_solution([])
        assert choice.statement == "Unable to determine optimal solution"
        assert choice.confidence == 0.5


# =============================================================================
# Think mode
# =============================================================================


class TestThink:
    """Tests for the think mode."""

    @pytest.mark.asyncio
    async def test_runs_to_max_thoughts(self, zero_pacing: PacingConfig) -> None:
        """Without conclusions the loop runs until the thought budget."""
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.think("How should we version a public API?")

        assert result.mode == ProcessingMode.THINK
        assert len(result.session.thoughts) == 10
        assert result.final_answer == "Synthesis of 10 thoughts"
        assert result.confidence == 0.85
        assert result.recommendations == ["Ship the fix"]
        assert result.processing_info.total_thoughts == 10
        assert generator.count("synthesize") == 1
        assert generator.count("generate_hypothesis") == 0

    @pytest.mark.asyncio
    async def test_exact_budget_with_high_threshold(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)
        options = ProcessingOptions(max_thoughts=3, confidence_threshold=0.99)

        result = await orchestrator.think("Plan a database migration", options=options)

        assert [t.sequence for t in result.session.thoughts] == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_initial_thoughts_capped_by_budget(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)
        options = ProcessingOptions(max_thoughts=2)

        result = await orchestrator.think("Plan a database migration", options=options)

        assert len(result.session.thoughts) == 2
        assert all("initial" in t.tags for t in result.session.thoughts)

    @pytest.mark.asyncio
    async def test_revises_weak_thought(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.5, 0.9])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)
        options = ProcessingOptions(max_thoughts=5)

        result = await orchestrator.think(
            "Why is checkout slow?", options=options, initial_thoughts=3
        )

        thoughts = result.session.thoughts
        assert len(thoughts) == 5
        revision = thoughts[3]
        assert revision.is_revision
        assert revision.revises_sequence == 1
        assert revision.confidence == pytest.approx(0.7)
        assert revision.content == "Revised: Thought 1 (Initial thought 1)"
        assert not thoughts[4].is_revision
        assert "continuation" in thoughts[4].tags
        assert result.session.metadata.revisions_count == 1
        assert result.processing_info.revisions_used == 1

    @pytest.mark.asyncio
    async def test_no_revision_when_disallowed(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.5, 0.9])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)
        options = ProcessingOptions(max_thoughts=5, allow_revision=False)

        result = await orchestrator.think("Why is checkout slow?", options=options)

        assert generator.count("generate_revision") == 0
        assert result.session.metadata.revisions_count == 0

    @pytest.mark.asyncio
    async def test_hypothesis_when_evidence_required(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)
        options = ProcessingOptions(max_thoughts=3, require_evidence=True)

        result = await orchestrator.think("Why is checkout slow?", options=options)

        hypotheses = result.session.hypotheses
        assert len(hypotheses) == 1
        assert hypotheses[0].tested
        assert hypotheses[0].result == HypothesisResult.CONFIRMED
        assert hypotheses[0].confidence == pytest.approx(0.8)
        assert result.processing_info.hypotheses_tested == 1

    @pytest.mark.asyncio
    async def test_failed_steps_are_skipped(self, zero_pacing: PacingConfig) -> None:
        """All thought generation failing still yields a result."""
        generator = FakeGenerator(fail=["generate_thought"])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.think("Why is checkout slow?")

        assert result.session.thoughts == []
        # five seed attempts, then three failed continuations
        assert generator.count("generate_thought") == 8
        assert result.final_answer == "Synthesis of 0 thoughts"

    @pytest.mark.asyncio
    async def test_failure_cap_override(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator(fail=["generate_thought"])
        orchestrator = Orchestrator(generator, pacing=zero_pacing, max_consecutive_failures=1)

        await orchestrator.think("Why is checkout slow?", initial_thoughts=1)

        assert generator.count("generate_thought") == 2

    @pytest.mark.asyncio
    async def test_synthesis_fallback(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8], fail=["synthesize"])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)
        options = ProcessingOptions(max_thoughts=4)

        result = await orchestrator.think("Why is checkout slow?", options=options)

        assert result.final_answer.startswith("Based on 4 thoughts")
        assert result.confidence == pytest.approx(0.8)
        assert result.recommendations == FALLBACK_RECOMMENDATIONS

    @pytest.mark.asyncio
    async def test_time_limit(self, zero_pacing: PacingConfig) -> None:
        """Each generation takes 30s on the fake clock; a 60s limit stops at two."""
        clock = FakeClock()
        generator = FakeGenerator([0.8], on_thought=lambda: clock.advance(seconds=30))
        orchestrator = Orchestrator(generator, pacing=zero_pacing, clock=clock)
        options = ProcessingOptions(max_thoughts=50, time_limit=60)

        result = await orchestrator.think(
            "Why is checkout slow?", options=options, initial_thoughts=1
        )

        assert len(result.session.thoughts) == 2
        assert result.session.metadata.total_duration == pytest.approx(60.0)

    @pytest.mark.asyncio
    async def test_session_is_finalized_with_conclusion(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)
        options = ProcessingOptions(max_thoughts=3)

        result = await orchestrator.think("Why is checkout slow?", options=options)

        session = result.session
        assert session.metadata.end_time is not None
        assert len(session.conclusions) == 1
        assert session.conclusions[0].statement == result.final_answer
        assert session.conclusions[0].supporting_thoughts == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_reasoning_chain(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)
        options = ProcessingOptions(max_thoughts=2)

        result = await orchestrator.think("Why is checkout slow?", options=options)

        assert "Thought 1 (Initial thought 1)" in result.reasoning


# =============================================================================
# Analyze mode
# =============================================================================


class TestAnalyze:
    """Tests for the analyze mode."""

    @pytest.mark.asyncio
    async def test_surface_with_alternatives(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.analyze(
            "Moving the monolith to microservices", depth=AnalysisDepth.SURFACE
        )

        session = result.session
        # three analysis steps, four alternative stances, one assumption step
        assert len(session.thoughts) == 8
        assert session.metadata.branches_count == 1
        branch = session.branches[0]
        assert branch.name == "Alternative Perspectives"
        assert branch.from_sequence == 3
        assert branch.thoughts == [4, 5, 6, 7]
        alternatives = [t for t in session.thoughts if "alternative" in t.tags]
        assert all(t.branch_from_sequence == 3 for t in alternatives)
        assert "assumptions" in session.thoughts[-1].tags
        assert result.mode == ProcessingMode.ANALYZE

    @pytest.mark.asyncio
    async def test_alternatives_use_critical_style(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        await orchestrator.analyze(
            "Moving the monolith to microservices",
            ThinkingStyle.CREATIVE,
            depth=AnalysisDepth.SURFACE,
            track_assumptions=False,
        )

        assert generator.styles[:3] == [ThinkingStyle.CREATIVE] * 3
        assert generator.styles[3:] == [ThinkingStyle.CRITICAL] * 4

    @pytest.mark.asyncio
    async def test_depth_and_focus_areas(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.analyze(
            "Moving the monolith to microservices",
            depth=AnalysisDepth.COMPREHENSIVE,
            focus_areas=["security"],
            consider_alternatives=False,
            track_assumptions=False,
        )

        names = [step.name for step in generator.steps]
        assert len(names) == 11
        assert names[-1] == "security Focus"
        assert len(result.session.thoughts) == 11

    @pytest.mark.asyncio
    async def test_without_alternatives_disables_branching(
        self, zero_pacing: PacingConfig
    ) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.analyze(
            "Moving the monolith to microservices",
            depth=AnalysisDepth.SURFACE,
            consider_alternatives=False,
        )

        assert result.session.metadata.branches_count == 0
        assert result.session.options.enable_branching is False
        assert len(result.session.thoughts) == 4

    @pytest.mark.asyncio
    async def test_all_steps_failing(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator(fail=["generate_thought"])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.analyze("Moving the monolith to microservices")

        assert result.session.thoughts == []
        assert result.session.metadata.branches_count == 0
        assert result.evidence_quality == EvidenceQuality.INSUFFICIENT
        assert result.key_findings == []

    @pytest.mark.asyncio
    async def test_result_serializes(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.analyze(
            "Moving the monolith to microservices", depth=AnalysisDepth.SURFACE
        )
        data = result.to_dict()

        assert data["mode"] == "analyze"
        assert "key_findings" in data
        assert "evidence_quality" in data
        assert data["thought_process"]["metadata"]["branches_count"] == 1


# =============================================================================
# Solve mode
# =============================================================================


class TestSolve:
    """Tests for the solve mode."""

    @pytest.mark.asyncio
    async def test_candidates_with_hypotheses(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.solve(
            "Checkout latency doubled after the last release",
            approach=SolutionApproach.SYSTEMATIC,
            max_iterations=2,
        )

        thoughts = result.session.thoughts
        assert [t.tags[0] for t in thoughts] == [
            "problem_definition",
            "solution_candidate",
            "solution_candidate",
            "final_solution",
        ]
        assert thoughts[-1].content == "Selected solution: Add a read-through cache"
        assert result.session.metadata.hypotheses_count == 2
        assert generator.count("test_hypothesis") == 2
        assert result.proposed_solution == "Add a read-through cache"
        assert result.implementation_steps == ["Deploy cache", "Warm cache"]
        assert result.next_steps == ["Deploy cache", "Warm cache"]
        assert result.fallback_options == ["Scale the database"]
        assert result.session.conclusions[0].alternatives == ["Scale the database"]

    @pytest.mark.asyncio
    async def test_retests_untested_hypotheses(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8], fail=["test_hypothesis"])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.solve(
            "Checkout latency doubled after the last release",
            constraints=["no new infrastructure"],
            max_iterations=2,
        )

        assert generator.count("test_hypothesis") == 4
        assert generator.extra_contexts[-1] == (
            "Testing solution viability against constraints: no new infrastructure"
        )
        assert all(not h.tested for h in result.session.hypotheses)

    @pytest.mark.asyncio
    async def test_without_verification(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.solve(
            "Checkout latency doubled after the last release",
            verify_hypotheses=False,
            max_iterations=3,
        )

        assert result.session.hypotheses == []
        assert result.session.options.require_evidence is False

    @pytest.mark.asyncio
    async def test_evaluation_and_plan_fallback(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator(
            [0.9, 0.6, 0.75], fail=["evaluate_solutions", "plan_implementation"]
        )
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.solve(
            "Checkout latency doubled after the last release", max_iterations=2
        )

        assert result.proposed_solution == "Thought 3 (Solution candidate 2)"
        assert result.confidence == 0.75
        assert result.implementation_steps == FALLBACK_PLAN.steps
        assert not any("final_solution" in t.tags for t in result.session.thoughts)

    @pytest.mark.asyncio
    async def test_constraints_merged_into_context(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.solve(
            "Checkout latency doubled after the last release",
            ThinkingContext(constraints=["budget"]),
            constraints=["no downtime"],
            requirements=["p99 under 100ms"],
            max_iterations=1,
        )

        context = result.session.context
        assert context.constraints == ["budget", "no downtime"]
        assert context.requirements == ["p99 under 100ms"]

    @pytest.mark.asyncio
    async def test_approach_sets_style(self, zero_pacing: PacingConfig) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        result = await orchestrator.solve(
            "Checkout latency doubled after the last release",
            approach=SolutionApproach.ITERATIVE,
            max_iterations=1,
        )

        assert result.session.thinking_style == ThinkingStyle.ANALYTICAL

    @pytest.mark.asyncio
    async def test_requires_solution_planner(self, zero_pacing: PacingConfig) -> None:
        orchestrator = Orchestrator(ThinkOnlyGenerator(), pacing=zero_pacing)

        with pytest.raises(TypeError):
            await orchestrator.solve("Checkout latency doubled after the last release")



class TestPacing:
    """Every Generator call is followed by exactly one pacing delay."""

    @pytest.fixture
    def pauses(self, monkeypatch: pytest.MonkeyPatch) -> list[Pace]:
        recorded: list[Pace] = []

        async def record(_self: Orchestrator, pace: Pace) -> None:
            recorded.append(pace)

        monkeypatch.setattr(Orchestrator, "_pause", record)
        return recorded

    @pytest.mark.asyncio
    async def test_think_with_hypothesis(
        self, zero_pacing: PacingConfig, pauses: list[Pace]
    ) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)
        options = ProcessingOptions(max_thoughts=3, require_evidence=True)

        await orchestrator.think("Why is checkout slow?", options=options)

        assert generator.count("generate_hypothesis") == 1
        assert generator.count("test_hypothesis") == 1
        assert generator.count("synthesize") == 1
        assert len(pauses) == len(generator.calls)
        assert pauses[-3:] == [Pace.STEP, Pace.STEP, Pace.STEP]

    @pytest.mark.asyncio
    async def test_failed_calls_are_paced_too(
        self, zero_pacing: PacingConfig, pauses: list[Pace]
    ) -> None:
        generator = FakeGenerator([0.8], fail=["test_hypothesis", "synthesize"])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)
        options = ProcessingOptions(max_thoughts=3, require_evidence=True)

        await orchestrator.think("Why is checkout slow?", options=options)

        assert len(pauses) == len(generator.calls)

    @pytest.mark.asyncio
    async def test_solve(self, zero_pacing: PacingConfig, pauses: list[Pace]) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing)

        await orchestrator.solve(
            "Checkout latency doubled after the last release", max_iterations=2
        )

        assert generator.count("test_hypothesis") >= 2
        assert generator.count("evaluate_solutions") == 1
        assert generator.count("plan_implementation") == 1
        assert len(pauses) == len(generator.calls)

def _started_at(thoughts: Sequence[Thought]) -> datetime:
    return min(t.timestamp for t in thoughts)


class TestClock:
    """Tests for injected time."""

    @pytest.mark.asyncio
    async def test_thought_timestamps_use_clock(
        self, zero_pacing: PacingConfig, fake_clock: FakeClock
    ) -> None:
        generator = FakeGenerator([0.8])
        orchestrator = Orchestrator(generator, pacing=zero_pacing, clock=fake_clock)
        options = ProcessingOptions(max_thoughts=2)

        result = await orchestrator.think("Why is checkout slow?", options=options)

        assert _started_at(result.session.thoughts) == datetime(2024, 1, 1, 12, 0, 0)
        assert result.session.metadata.start_time == datetime(2024, 1, 1, 12, 0, 0)
