"""Control loop for the think, analyze and solve modes.

``Orchestrator`` interprets a ``PhasePlan``:

1. Create the session through ``ThoughtManager``.
2. Run the seed steps, one Generator call each.
3. Run the revise-or-continue loop while the session needs more thoughts.
4. Record alternative stances on a branch, then the closing steps.
5. Generate and test hypotheses.
6. Synthesize the answer, falling back to a deterministic summary.
7. Record the conclusion and finalize.

Generator failures (``GenerationError``) skip the step and are logged.
Structural ``ThinkingError``s from the session manager propagate.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from brain_mcp.config import PacingConfig
from brain_mcp.tools import insights
from brain_mcp.tools.phase_plan import (
    ALTERNATIVES_BRANCH_NAME,
    HypothesisPhase,
    Pace,
    PhasePlan,
    PhaseStep,
    SynthesisKind,
    analyze_plan,
    solve_plan,
    think_plan,
)
from brain_mcp.tools.reasoning_engine import (
    Generator,
    ImplementationPlan,
    SolutionChoice,
    SolutionPlanner,
    Synthesis,
)
from brain_mcp.tools.reasoning_types import (
    AnalysisDepth,
    AnalysisResult,
    Branch,
    Hypothesis,
    ProcessingInfo,
    ProcessingMode,
    ProcessingOptions,
    ReasoningResult,
    ReasoningSession,
    SolutionApproach,
    SolutionResult,
    ThinkingContext,
    ThinkingStyle,
    Thought,
)
from brain_mcp.tools.thought_manager import ThoughtManager, create_session
from brain_mcp.utils.errors import GenerationError
from brain_mcp.utils.logging import log_context
from brain_mcp.utils.parsing import truncate

REVISION_MIN_THOUGHTS = 3
REVISION_CONFIDENCE_CEILING = 0.6
REVISION_BOOST = 0.2
RECENT_REVISION_WINDOW = 2
CANDIDATE_HYPOTHESIS_CONFIDENCE = 0.6

FALLBACK_RECOMMENDATIONS = ["Review the thought process", "Consider implementation"]
FALLBACK_NEXT_STEPS = ["Validate assumptions", "Plan next phase"]
FALLBACK_SOLUTION_RECOMMENDATIONS = ["Review solution candidates", "Consider additional approaches"]
FALLBACK_PLAN = ImplementationPlan(
    steps=["Plan implementation details", "Execute solution", "Monitor results"],
    obstacles=["Resource constraints", "Technical challenges"],
    success_criteria=["Problem is resolved", "Requirements are met"],
    test_plan=["Validate solution", "Monitor outcomes"],
)


# =============================================================================
# Revision policy
# =============================================================================


def should_revise(thoughts: Sequence[Thought], allow_revision: bool) -> bool:
    """Decide whether the next loop iteration revises instead of adding.

    Revise only when revisions are allowed, at least three thoughts exist,
    one of them is below 0.6 confidence and neither of the last two
    thoughts is itself a revision.
    """
    if not allow_revision or len(thoughts) < REVISION_MIN_THOUGHTS:
        return False
    if not any(t.confidence < REVISION_CONFIDENCE_CEILING for t in thoughts):
        return False
    return not any(t.is_revision for t in thoughts[-RECENT_REVISION_WINDOW:])


def select_revision_target(thoughts: Sequence[Thought]) -> Thought | None:
    """Lowest-confidence thought that is not a revision and was never revised.

    Ties go to the lowest sequence number.
    """
    revised = {t.revises_sequence for t in thoughts if t.is_revision}
    candidates = [t for t in thoughts if not t.is_revision and t.sequence not in revised]
    return min(candidates, key=lambda t: (t.confidence, t.sequence), default=None)


def fallback_synthesis(thoughts: Sequence[Thought], style: ThinkingStyle) -> Synthesis:
    """Summary built from the session alone, used when synthesis fails."""
    average = sum(t.confidence for t in thoughts) / len(thoughts) if thoughts else 0.0
    return Synthesis(
        analysis=(
            f"Based on {len(thoughts)} thoughts, the analysis suggests multiple approaches "
            "to the problem. Key insights include the main themes identified through "
            f"{style.value} thinking."
        ),
        confidence=average,
        recommendations=list(FALLBACK_RECOMMENDATIONS),
        next_steps=list(FALLBACK_NEXT_STEPS),
    )


def fallback_solution(candidates: Sequence[Thought]) -> SolutionChoice:
    """Pick the highest-confidence candidate when evaluation fails."""
    ranked = sorted(candidates, key=lambda t: t.confidence, reverse=True)
    best = ranked[0] if ranked else None
    return SolutionChoice(
        statement=best.content if best else "Unable to determine optimal solution",
        confidence=best.confidence if best else 0.5,
        recommendations=list(FALLBACK_SOLUTION_RECOMMENDATIONS),
        alternatives=[t.content for t in ranked[1:4]],
    )


# =============================================================================
# Run outcome
# =============================================================================


@dataclass
class RunOutcome:
    """Everything a finished run produced, before mode-specific packaging."""

    session: ReasoningSession
    answer: str
    confidence: float
    recommendations: list[str]
    next_steps: list[str]
    choice: SolutionChoice | None = None
    implementation: ImplementationPlan | None = None

    def processing_info(self) -> ProcessingInfo:
        metadata = self.session.metadata
        return ProcessingInfo(
            total_thoughts=len(self.session.thoughts),
            processing_time=metadata.total_duration or 0.0,
            revisions_used=metadata.revisions_count,
            branches_explored=metadata.branches_count,
            hypotheses_tested=sum(1 for h in self.session.hypotheses if h.tested),
            final_confidence=self.confidence,
        )


# =============================================================================
# Orchestrator
# =============================================================================


class Orchestrator:
    """Drives reasoning sessions to completion.

    Example:
        orchestrator = Orchestrator(ReasoningEngine(LLMClient()))
        result = await orchestrator.think("How should we version a public API?")
        print(result.final_answer)

    """

    def __init__(
        self,
        generator: Generator,
        *,
        pacing: PacingConfig | None = None,
        clock: Callable[[], datetime] | None = None,
        max_consecutive_failures: int | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            generator: Content producer. ``solve`` needs a ``SolutionPlanner``.
            pacing: Delays after Generator calls, from the environment when omitted.
            clock: Time source for sessions and the time limit.
            max_consecutive_failures: Failed continuation iterations in a row
                that end the loop, from ``pacing`` when omitted.

        """
        self._generator = generator
        self._pacing = pacing or PacingConfig()
        self._clock = clock
        self._max_failures = (
            max_consecutive_failures
            if max_consecutive_failures is not None
            else self._pacing.max_consecutive_failures
        )

    # -------------------------------------------------------------------------
    # Modes
    # -------------------------------------------------------------------------

    async def think(
        self,
        problem: str,
        thinking_style: ThinkingStyle = ThinkingStyle.ANALYTICAL,
        context: ThinkingContext | None = None,
        options: ProcessingOptions | None = None,
        *,
        initial_thoughts: int = 5,
    ) -> ReasoningResult:
        """Sequential thinking with revisions and an optional hypothesis."""
        options = options or ProcessingOptions()
        plan = think_plan(initial_thoughts, options.max_thoughts, options.require_evidence)
        outcome = await self.run(plan, problem, thinking_style, context, options)
        return ReasoningResult(
            mode=ProcessingMode.THINK,
            session=outcome.session,
            final_answer=outcome.answer,
            confidence=outcome.confidence,
            reasoning=insights.build_reasoning_chain(outcome.session),
            recommendations=outcome.recommendations,
            next_steps=outcome.next_steps,
            processing_info=outcome.processing_info(),
        )

    async def analyze(
        self,
        subject: str,
        thinking_style: ThinkingStyle = ThinkingStyle.ANALYTICAL,
        context: ThinkingContext | None = None,
        options: ProcessingOptions | None = None,
        *,
        depth: AnalysisDepth = AnalysisDepth.DETAILED,
        focus_areas: list[str] | None = None,
        consider_alternatives: bool = True,
        track_assumptions: bool = True,
    ) -> AnalysisResult:
        """Structured multi-step analysis.

        ``consider_alternatives`` also decides whether the session allows
        branching, since the alternative stances live on a branch.
        """
        options = (options or ProcessingOptions()).model_copy(
            update={"enable_branching": consider_alternatives}
        )
        plan = analyze_plan(depth, focus_areas, consider_alternatives, track_assumptions)
        outcome = await self.run(plan, subject, thinking_style, context, options)
        thoughts = outcome.session.thoughts
        return AnalysisResult(
            mode=ProcessingMode.ANALYZE,
            session=outcome.session,
            final_answer=outcome.answer,
            confidence=outcome.confidence,
            reasoning=insights.build_analytical_reasoning(outcome.session),
            recommendations=outcome.recommendations,
            next_steps=outcome.next_steps,
            processing_info=outcome.processing_info(),
            key_findings=insights.extract_key_findings(thoughts),
            assumptions=insights.extract_assumptions(thoughts),
            evidence_quality=insights.assess_evidence_quality(thoughts),
            risk_factors=insights.identify_risk_factors(thoughts),
            opportunities=insights.identify_opportunities(thoughts),
        )

    async def solve(
        self,
        problem_statement: str,
        context: ThinkingContext | None = None,
        options: ProcessingOptions | None = None,
        *,
        approach: SolutionApproach = SolutionApproach.SYSTEMATIC,
        constraints: list[str] | None = None,
        requirements: list[str] | None = None,
        verify_hypotheses: bool = True,
        max_iterations: int = 10,
    ) -> SolutionResult:
        """Generate solution candidates, verify them and plan the winner.

        Raises:
            TypeError: If the generator cannot evaluate solutions.

        """
        if not isinstance(self._generator, SolutionPlanner):
            raise TypeError("solve requires a generator implementing SolutionPlanner")

        base = context or ThinkingContext()
        context = base.model_copy(
            update={
                "constraints": [*base.constraints, *(constraints or [])],
                "requirements": [*base.requirements, *(requirements or [])],
            }
        )
        options = (options or ProcessingOptions()).model_copy(
            update={"require_evidence": verify_hypotheses}
        )
        plan = solve_plan(approach, max_iterations, verify_hypotheses, context.constraints)
        outcome = await self.run(plan, problem_statement, approach.thinking_style, context, options)

        choice = outcome.choice or fallback_solution([])
        implementation = outcome.implementation or FALLBACK_PLAN
        return SolutionResult(
            mode=ProcessingMode.SOLVE,
            session=outcome.session,
            final_answer=outcome.answer,
            confidence=outcome.confidence,
            reasoning=insights.build_solution_reasoning(outcome.session),
            recommendations=outcome.recommendations,
            next_steps=outcome.next_steps,
            processing_info=outcome.processing_info(),
            proposed_solution=choice.statement,
            implementation_steps=list(implementation.steps),
            potential_obstacles=list(implementation.obstacles),
            success_criteria=list(implementation.success_criteria),
            test_plan=list(implementation.test_plan),
            fallback_options=list(choice.alternatives),
        )

    # -------------------------------------------------------------------------
    # Plan interpreter
    # -------------------------------------------------------------------------

    async def run(
        self,
        plan: PhasePlan,
        problem: str,
        thinking_style: ThinkingStyle,
        context: ThinkingContext | None,
        options: ProcessingOptions,
    ) -> RunOutcome:
        """Execute ``plan`` on a new session and return the finalized outcome."""
        manager = create_session(problem, thinking_style, context, options, clock=self._clock)
        with log_context(session_id=manager.session_id):
            logger.info(
                f"Starting {plan.mode.value} session {manager.session_id} "
                f"({plan.step_count} planned steps): {truncate(problem, 100)}"
            )

            for step in plan.seed:
                thought = await self._run_step(manager, step)
                if thought is not None and plan.hypothesis_phase == HypothesisPhase.PER_CANDIDATE:
                    if "solution_candidate" in thought.tags:
                        await self._candidate_hypothesis(manager, thought, step.iteration)

            if plan.continuation:
                await self._continue(manager)

            if plan.alternatives:
                await self._explore_alternatives(manager, plan.alternatives)

            for step in plan.closing:
                await self._run_step(manager, step)

            if plan.hypothesis_phase == HypothesisPhase.SINGLE:
                await self._single_hypothesis(manager)
            elif plan.hypothesis_phase == HypothesisPhase.PER_CANDIDATE:
                await self._retest_hypotheses(manager, plan.retest_context)

            if plan.synthesis == SynthesisKind.SOLUTION:
                outcome = await self._synthesize_solution(manager)
            else:
                outcome = await self._synthesize(manager)

            thoughts = manager.thoughts
            manager.add_conclusion(
                outcome.answer,
                [t.sequence for t in thoughts],
                reasoning=(
                    f"Synthesized from {len(thoughts)} thoughts and "
                    f"{len(manager.session.hypotheses)} hypotheses"
                ),
                confidence=outcome.confidence,
                alternatives=outcome.choice.alternatives if outcome.choice else None,
            )
            outcome.session = manager.finalize()
            return outcome

    async def _pause(self, pace: Pace) -> None:
        delay = self._pacing.seconds(pace.value)
        if delay > 0:
            await asyncio.sleep(delay)

    async def _run_step(
        self,
        manager: ThoughtManager,
        step: PhaseStep,
        branch: Branch | None = None,
    ) -> Thought | None:
        """One Generator call recorded as one thought, None when it failed."""
        try:
            draft = await self._generator.generate_thought(
                manager.problem,
                manager.thoughts,
                step.style or manager.thinking_style,
                manager.current_sequence + 1,
                manager.context,
                step=step,
            )
        except GenerationError as e:
            logger.warning(f"Skipping step '{step.name}': {e}")
            await self._pause(step.pace)
            return None

        thought = manager.add_thought(
            draft.content,
            draft.confidence,
            branch_id=branch.id if branch else None,
            branch_from_sequence=branch.from_sequence if branch else None,
            tags=step.tags,
        )
        await self._pause(step.pace)
        return thought

    async def _continue(self, manager: ThoughtManager) -> None:
        """Revise or add thoughts until the session is done or time runs out."""
        options = manager.options
        failures = 0
        while manager.needs_more_thoughts():
            if manager.elapsed() >= options.time_limit:
                logger.info(f"Time limit of {options.time_limit}s reached")
                break
            if failures >= self._max_failures:
                logger.warning(f"Stopping after {failures} consecutive generation failures")
                break

            thoughts = manager.thoughts
            target = (
                select_revision_target(thoughts)
                if should_revise(thoughts, options.allow_revision)
                else None
            )
            try:
                if target is not None:
                    content = await self._generator.generate_revision(
                        target, thoughts, manager.problem
                    )
                else:
                    draft = await self._generator.generate_thought(
                        manager.problem,
                        thoughts,
                        manager.thinking_style,
                        manager.current_sequence + 1,
                        manager.context,
                    )
            except GenerationError as e:
                failures += 1
                logger.warning(f"Continuation failed ({failures}/{self._max_failures}): {e}")
                await self._pause(Pace.CONTINUATION)
                continue

            failures = 0
            if target is not None:
                manager.add_thought(
                    content,
                    min(target.confidence + REVISION_BOOST, 1.0),
                    is_revision=True,
                    revises_sequence=target.sequence,
                )
                logger.debug(f"Revised thought {target.sequence}")
            else:
                manager.add_thought(draft.content, draft.confidence, tags=("continuation",))
            await self._pause(Pace.CONTINUATION)

        logger.info(f"Completed thinking with {manager.thought_count} thoughts")

    async def _explore_alternatives(
        self, manager: ThoughtManager, steps: Sequence[PhaseStep]
    ) -> None:
        if manager.current_sequence == 0:
            logger.warning("No thoughts recorded, skipping alternative perspectives")
            return
        branch = manager.create_branch(manager.current_sequence, ALTERNATIVES_BRANCH_NAME)
        for step in steps:
            await self._run_step(manager, step, branch=branch)

    # -------------------------------------------------------------------------
    # Hypotheses
    # -------------------------------------------------------------------------

    async def _test(
        self, manager: ThoughtManager, hypothesis: Hypothesis, extra_context: str | None = None
    ) -> bool:
        try:
            verdict = await self._generator.test_hypothesis(
                hypothesis, manager.thoughts, extra_context
            )
        except GenerationError as e:
            logger.warning(f"Failed to test hypothesis {hypothesis.id}: {e}")
            await self._pause(Pace.STEP)
            return False
        manager.test_hypothesis(hypothesis.id, verdict.result, verdict.evidence)
        await self._pause(Pace.STEP)
        return True

    async def _single_hypothesis(self, manager: ThoughtManager) -> None:
        try:
            draft = await self._generator.generate_hypothesis(
                manager.problem, manager.thoughts, manager.thinking_style
            )
        except GenerationError as e:
            logger.warning(f"Failed to generate hypothesis: {e}")
            await self._pause(Pace.STEP)
            return
        hypothesis = manager.add_hypothesis(draft.statement, draft.evidence, (), draft.confidence)
        await self._pause(Pace.STEP)
        if await self._test(manager, hypothesis):
            logger.info(f"Generated and tested hypothesis: {hypothesis.result}")

    async def _candidate_hypothesis(
        self, manager: ThoughtManager, candidate: Thought, iteration: int
    ) -> None:
        hypothesis = manager.add_hypothesis(
            f"Solution {iteration} will effectively address the problem",
            [candidate.content],
            (),
            CANDIDATE_HYPOTHESIS_CONFIDENCE,
        )
        await self._test(manager, hypothesis)

    async def _retest_hypotheses(self, manager: ThoughtManager, extra_context: str | None) -> None:
        for hypothesis in manager.get_active_hypotheses():
            await self._test(manager, hypothesis, extra_context)

    # -------------------------------------------------------------------------
    # Synthesis
    # -------------------------------------------------------------------------

    async def _synthesize(self, manager: ThoughtManager) -> RunOutcome:
        thoughts = manager.thoughts
        try:
            synthesis = await self._generator.synthesize(
                manager.problem,
                thoughts,
                manager.session.hypotheses,
                manager.thinking_style,
                manager.context,
            )
        except GenerationError as e:
            logger.error(f"Failed to synthesize analysis: {e}")
            synthesis = fallback_synthesis(thoughts, manager.thinking_style)
        await self._pause(Pace.STEP)

        return RunOutcome(
            session=manager.session,
            answer=synthesis.analysis,
            confidence=synthesis.confidence,
            recommendations=list(synthesis.recommendations),
            next_steps=list(synthesis.next_steps),
        )

    async def _synthesize_solution(self, manager: ThoughtManager) -> RunOutcome:
        assert isinstance(self._generator, SolutionPlanner)
        planner = self._generator
        candidates = manager.get_thoughts(tags=["solution_candidate"])

        try:
            choice = await planner.evaluate_solutions(
                manager.problem, candidates, manager.get_tested_hypotheses()
            )
        except GenerationError as e:
            logger.error(f"Failed to evaluate solutions: {e}")
            choice = fallback_solution(candidates)
        else:
            manager.add_thought(
                f"Selected solution: {choice.statement}",
                choice.confidence,
                tags=("final_solution", "decision"),
            )
        await self._pause(Pace.STEP)

        try:
            implementation = await planner.plan_implementation(
                manager.problem, choice.statement, manager.context
            )
        except GenerationError as e:
            logger.error(f"Failed to generate implementation plan: {e}")
            implementation = FALLBACK_PLAN
        await self._pause(Pace.STEP)

        return RunOutcome(
            session=manager.session,
            answer=choice.statement,
            confidence=choice.confidence,
            recommendations=list(choice.recommendations),
            next_steps=list(implementation.steps),
            choice=choice,
            implementation=implementation,
        )
