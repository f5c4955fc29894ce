"""Phase plans for the reasoning modes.

A ``PhasePlan`` is plain data: the ordered generation steps of a mode plus
the flags that switch the optional phases on. ``Orchestrator`` interprets
any plan with the same loop, so adding a mode means adding a builder here,
not a new processor class.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from brain_mcp.tools.reasoning_types import (
    AnalysisDepth,
    ProcessingMode,
    SolutionApproach,
    ThinkingStyle,
)

MAX_INITIAL_THOUGHTS = 20
MAX_SOLUTION_ITERATIONS = 10
ALTERNATIVES_BRANCH_NAME = "Alternative Perspectives"


class StepKind(str, Enum):
    """Which prompt a step uses."""

    OPEN = "open"  # Free-form sequential thought
    ANALYSIS = "analysis"  # Named analytical step
    ALTERNATIVE = "alternative"  # Stance on the alternatives branch
    ASSUMPTIONS = "assumptions"  # Meta-analysis of assumptions
    PROBLEM_DEFINITION = "problem_definition"
    SOLUTION_CANDIDATE = "solution_candidate"


class Pace(str, Enum):
    """Pacing delay applied after a step's Generator call."""

    INITIAL = "initial"
    STEP = "step"
    CONTINUATION = "continuation"


class HypothesisPhase(str, Enum):
    NONE = "none"
    SINGLE = "single"  # One hypothesis after the thought loop
    PER_CANDIDATE = "per_candidate"  # One per solution candidate, then a re-test pass


class SynthesisKind(str, Enum):
    ANALYSIS = "analysis"  # Generator.synthesize
    SOLUTION = "solution"  # Evaluate candidates, then plan the implementation


@dataclass(frozen=True, slots=True)
class PhaseStep:
    """One Generator call folded into the session as one thought."""

    name: str
    kind: StepKind
    tags: tuple[str, ...] = ()
    objective: str = ""
    category: str = ""
    iteration: int = 0
    total_iterations: int = 0
    style: ThinkingStyle | None = None  # Overrides the session style
    approach: SolutionApproach | None = None
    pace: Pace = Pace.STEP


@dataclass(frozen=True)
class PhasePlan:
    """Ordered phases of one processing mode.

    Attributes:
        mode: Mode the plan was built for.
        seed: Steps run first, in order.
        continuation: Run the revise-or-continue loop after seeding.
        alternatives: Steps recorded on a branch forked from the current thought.
        closing: Steps run after the alternatives.
        hypothesis_phase: Which hypothesis phase runs.
        retest_context: Extra context for re-testing untested hypotheses.
        synthesis: How the final answer is produced.

    """

    mode: ProcessingMode
    seed: tuple[PhaseStep, ...]
    continuation: bool = False
    alternatives: tuple[PhaseStep, ...] = ()
    closing: tuple[PhaseStep, ...] = ()
    hypothesis_phase: HypothesisPhase = HypothesisPhase.NONE
    retest_context: str | None = None
    synthesis: SynthesisKind = SynthesisKind.ANALYSIS

    @property
    def step_count(self) -> int:
        return len(self.seed) + len(self.alternatives) + len(self.closing)


# =============================================================================
# Analysis step catalogue
# =============================================================================

# (name, objective, category)
_BASE_STEPS = (
    ("Problem Definition", "Clearly define and scope the subject for analysis", "definition"),
    ("Context Analysis", "Analyze the broader context and environment", "context"),
    ("Component Breakdown", "Break down the subject into key components", "breakdown"),
)
_DETAILED_STEPS = (
    (
        "Stakeholder Analysis",
        "Identify and analyze key stakeholders and their interests",
        "stakeholders",
    ),
    ("Constraint Analysis", "Identify constraints, limitations, and dependencies", "constraints"),
    ("Impact Assessment", "Assess potential impacts and consequences", "impact"),
)
_COMPREHENSIVE_STEPS = (
    ("Trend Analysis", "Analyze relevant trends and patterns", "trends"),
    ("Risk Analysis", "Identify and evaluate potential risks", "risks"),
    ("Opportunity Analysis", "Identify potential opportunities and benefits", "opportunities"),
    ("Competitive Analysis", "Analyze competitive landscape and positioning", "competition"),
)

ALTERNATIVE_STANCES: dict[str, str] = {
    "contrarian": "Challenge the main assumptions and provide a contrarian perspective",
    "optimistic": "Analyze from an optimistic viewpoint, focusing on positive outcomes",
    "pessimistic": "Consider potential negative outcomes and worst-case scenarios",
    "outsider": "Analyze from an external or outsider perspective",
}


def _analysis_step(name: str, objective: str, category: str) -> PhaseStep:
    return PhaseStep(
        name=name,
        kind=StepKind.ANALYSIS,
        tags=("analytical", category),
        objective=objective,
        category=category,
    )


# =============================================================================
# Builders
# =============================================================================


def think_plan(initial_thoughts: int, max_thoughts: int, require_evidence: bool) -> PhasePlan:
    """Open-ended thoughts, the continuation loop and an optional hypothesis."""
    count = max(1, min(initial_thoughts, MAX_INITIAL_THOUGHTS, max_thoughts))
    seed = tuple(
        PhaseStep(
            name=f"Initial thought {i}",
            kind=StepKind.OPEN,
            tags=("initial",),
            pace=Pace.INITIAL,
        )
        for i in range(1, count + 1)
    )
    return PhasePlan(
        mode=ProcessingMode.THINK,
        seed=seed,
        continuation=True,
        hypothesis_phase=HypothesisPhase.SINGLE if require_evidence else HypothesisPhase.NONE,
    )


def analyze_plan(
    depth: AnalysisDepth,
    focus_areas: list[str] | None = None,
    consider_alternatives: bool = True,
    track_assumptions: bool = True,
) -> PhasePlan:
    """Named analytical steps sized by ``depth``, then alternatives and assumptions."""
    catalogue = list(_BASE_STEPS)
    if depth in (AnalysisDepth.DETAILED, AnalysisDepth.COMPREHENSIVE):
        catalogue.extend(_DETAILED_STEPS)
    if depth == AnalysisDepth.COMPREHENSIVE:
        catalogue.extend(_COMPREHENSIVE_STEPS)
    for area in focus_areas or []:
        catalogue.append(
            (f"{area} Focus", f"Provide detailed analysis specifically focused on {area}", "focus")
        )

    alternatives: tuple[PhaseStep, ...] = ()
    if consider_alternatives:
        alternatives = tuple(
            PhaseStep(
                name="Alternative Perspective",
                kind=StepKind.ALTERNATIVE,
                tags=("alternative", stance),
                objective=objective,
                category="alternative",
                style=ThinkingStyle.CRITICAL,
                pace=Pace.CONTINUATION,
            )
            for stance, objective in ALTERNATIVE_STANCES.items()
        )

    closing: tuple[PhaseStep, ...] = ()
    if track_assumptions:
        closing = (
            PhaseStep(
                name="Assumption Analysis",
                kind=StepKind.ASSUMPTIONS,
                tags=("assumptions", "meta-analysis"),
                category="assumptions",
            ),
        )

    return PhasePlan(
        mode=ProcessingMode.ANALYZE,
        seed=tuple(_analysis_step(*entry) for entry in catalogue),
        alternatives=alternatives,
        closing=closing,
    )


def solve_plan(
    approach: SolutionApproach,
    max_iterations: int,
    verify_hypotheses: bool,
    constraints: list[str] | None = None,
) -> PhasePlan:
    """Problem definition, solution candidates and the solution synthesis."""
    iterations = max(1, min(max_iterations, MAX_SOLUTION_ITERATIONS))
    seed = [
        PhaseStep(
            name="Problem Definition",
            kind=StepKind.PROBLEM_DEFINITION,
            tags=("problem_definition", "foundation"),
            category="definition",
        )
    ]
    seed.extend(
        PhaseStep(
            name=f"Solution candidate {i}",
            kind=StepKind.SOLUTION_CANDIDATE,
            tags=("solution_candidate", f"iteration_{i}"),
            iteration=i,
            total_iterations=iterations,
            approach=approach,
            pace=Pace.CONTINUATION,
        )
        for i in range(1, iterations + 1)
    )
    return PhasePlan(
        mode=ProcessingMode.SOLVE,
        seed=tuple(seed),
        hypothesis_phase=(
            HypothesisPhase.PER_CANDIDATE if verify_hypotheses else HypothesisPhase.NONE
        ),
        retest_context=(
            f"Testing solution viability against constraints: {', '.join(constraints or [])}"
        ),
        synthesis=SynthesisKind.SOLUTION,
    )
