"""Generator boundary for the reasoning tools.

The control loop never talks to an LLM directly. It calls a ``Generator``:
an object that turns the current session state into thought text,
hypotheses, verdicts and a synthesis. ``ReasoningEngine`` is the LLM-backed
implementation; tests substitute a scripted fake.

Every engine method either returns a parsed result or raises
``GenerationError``. LLM failures, timeouts and empty responses are all
reported the same way so the control loop can skip the step uniformly.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from loguru import logger

from brain_mcp.models.llm_client import LLMClient
from brain_mcp.tools.phase_plan import PhaseStep, StepKind
from brain_mcp.tools.reasoning_types import (
    Hypothesis,
    HypothesisResult,
    IssueSeverity,
    ReflectionFocus,
    ReflectionIssue,
    SolutionApproach,
    ThinkingContext,
    ThinkingStyle,
    Thought,
)
from brain_mcp.utils.errors import GenerationError, LLMException
from brain_mcp.utils.parsing import (
    clean_step_content,
    clean_thought_content,
    extract_confidence,
    parse_bullets,
    parse_labeled,
    truncate,
)
from brain_mcp.utils.retry import with_timeout

# =============================================================================
# Generator results
# =============================================================================


@dataclass(frozen=True, slots=True)
class ThoughtDraft:
    content: str
    confidence: float


@dataclass(frozen=True, slots=True)
class HypothesisDraft:
    statement: str
    confidence: float
    evidence: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class HypothesisVerdict:
    result: HypothesisResult
    reasoning: str = ""
    evidence: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class Synthesis:
    analysis: str
    confidence: float
    recommendations: list[str] = field(default_factory=list)
    next_steps: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class SolutionChoice:
    statement: str
    confidence: float
    reasoning: str = ""
    recommendations: list[str] = field(default_factory=list)
    alternatives: list[str] = field(default_factory=list)


@dataclass(frozen=True, slots=True)
class ImplementationPlan:
    steps: list[str]
    obstacles: list[str]
    success_criteria: list[str]
    test_plan: list[str]


@dataclass(frozen=True, slots=True)
class ReflectionNote:
    focus: ReflectionFocus
    analysis: str
    findings: list[str] = field(default_factory=list)


# =============================================================================
# Protocols
# =============================================================================


@runtime_checkable
class Generator(Protocol):
    """Content producer driven by the control loop."""

    async def generate_thought(
        self,
        problem: str,
        prior_thoughts: Sequence[Thought],
        style: ThinkingStyle,
        target_sequence: int,
        context: ThinkingContext | None = None,
        *,
        step: PhaseStep | None = None,
    ) -> ThoughtDraft: ...

    async def generate_revision(
        self, original: Thought, all_thoughts: Sequence[Thought], problem: str
    ) -> str: ...

    async def generate_hypothesis(
        self, problem: str, prior_thoughts: Sequence[Thought], style: ThinkingStyle
    ) -> HypothesisDraft: ...

    async def test_hypothesis(
        self,
        hypothesis: Hypothesis,
        prior_thoughts: Sequence[Thought],
        extra_context: str | None = None,
    ) -> HypothesisVerdict: ...

    async def synthesize(
        self,
        problem: str,
        thoughts: Sequence[Thought],
        hypotheses: Sequence[Hypothesis],
        style: ThinkingStyle,
        context: ThinkingContext | None = None,
    ) -> Synthesis: ...


@runtime_checkable
class SolutionPlanner(Generator, Protocol):
    """Generator that can also rank solution candidates and plan them."""

    async def evaluate_solutions(
        self,
        problem: str,
        candidates: Sequence[Thought],
        tested_hypotheses: Sequence[Hypothesis],
    ) -> SolutionChoice: ...

    async def plan_implementation(
        self, problem: str, solution: str, context: ThinkingContext | None = None
    ) -> ImplementationPlan: ...


@runtime_checkable
class Reflector(Protocol):
    """Content producer for the reflect mode."""

    async def reflect(
        self, original_analysis: str, focus: ReflectionFocus, extra_context: str = ""
    ) -> ReflectionNote: ...

    async def identify_issues(self, note: ReflectionNote) -> list[ReflectionIssue]: ...

    async def suggest_improvements(
        self,
        original_analysis: str,
        issues: Sequence[ReflectionIssue],
        goals: Sequence[str],
    ) -> list[str]: ...

    async def revise_analysis(
        self,
        original_analysis: str,
        improvements: Sequence[str],
        new_information: str | None,
        alternative_viewpoints: Sequence[str],
    ) -> str: ...

    async def recommend_actions(
        self, context: str, improvements: Sequence[str], goals: Sequence[str]
    ) -> list[str]: ...


# =============================================================================
# Prompt fragments
# =============================================================================

STYLE_INSTRUCTIONS: dict[ThinkingStyle, str] = {
    ThinkingStyle.ANALYTICAL: (
        "Reason step by step. Split the problem into parts and trace cause and effect."
    ),
    ThinkingStyle.SYSTEMATIC: (
        "Work methodically with established frameworks. Aim for complete, consistent coverage."
    ),
    ThinkingStyle.CREATIVE: (
        "Look past the obvious. Propose unconventional angles and novel alternatives."
    ),
    ThinkingStyle.SCIENTIFIC: (
        "Form hypotheses, look for evidence and test assumptions before accepting them."
    ),
    ThinkingStyle.CRITICAL: (
        "Question assumptions, weigh evidence skeptically and look for bias or blind spots."
    ),
    ThinkingStyle.STRATEGIC: (
        "Take the long view. Consider broader implications, positioning and planning."
    ),
    ThinkingStyle.INTUITIVE: (
        "Use pattern recognition and experienced judgment, then check it against evidence."
    ),
    ThinkingStyle.COLLABORATIVE: (
        "Weigh the viewpoints of every stakeholder and look for solutions they can share."
    ),
}

APPROACH_INSTRUCTIONS: dict[SolutionApproach, str] = {
    SolutionApproach.SYSTEMATIC: "Decompose the problem and address each component in order.",
    SolutionApproach.CREATIVE: "Favor unconventional approaches and inventive solutions.",
    SolutionApproach.SCIENTIFIC: "Treat each solution as a hypothesis and say how to validate it.",
    SolutionApproach.ITERATIVE: "Start with the simplest workable solution and refine it.",
}

FOCUS_INSTRUCTIONS: dict[ReflectionFocus, str] = {
    ReflectionFocus.ASSUMPTIONS: (
        "Examine the underlying assumptions. Are they valid and supported? What if they fail?"
    ),
    ReflectionFocus.LOGIC_GAPS: (
        "Look for missing steps, leaps in reasoning and conclusions the argument does not support."
    ),
    ReflectionFocus.ALTERNATIVE_APPROACHES: (
        "Consider other methods or perspectives that could have been taken."
    ),
    ReflectionFocus.EVIDENCE_QUALITY: (
        "Judge whether the evidence is sufficient, reliable and credible."
    ),
    ReflectionFocus.BIAS_DETECTION: (
        "Identify bias in the reasoning, the choice of data or its interpretation."
    ),
    ReflectionFocus.CONSISTENCY_CHECK: (
        "Check for contradictions or statements that conflict with each other."
    ),
    ReflectionFocus.COMPLETENESS: (
        "Find important aspects that were skipped or only addressed superficially."
    ),
    ReflectionFocus.FEASIBILITY: (
        "Assess whether the conclusions and recommendations can be carried out in practice."
    ),
}


def format_thoughts(thoughts: Sequence[Thought]) -> str:
    if not thoughts:
        return "No previous thoughts yet."
    lines = []
    for thought in thoughts:
        revision = " (REVISION)" if thought.is_revision else ""
        branch = " (BRANCH)" if thought.branch_id else ""
        lines.append(
            f"{thought.sequence}. {thought.content} "
            f"[Confidence: {thought.confidence:.2f}]{revision}{branch}"
        )
    return "\n\n".join(lines)


def format_hypotheses(hypotheses: Sequence[Hypothesis]) -> str:
    if not hypotheses:
        return "No hypotheses tested yet."
    lines = []
    for hypothesis in hypotheses:
        status = (
            f" - {hypothesis.result.value.upper()}"
            if hypothesis.tested and hypothesis.result
            else " - NOT TESTED"
        )
        lines.append(f"- {hypothesis.statement} [Confidence: {hypothesis.confidence:.2f}]{status}")
    return "\n".join(lines)


def _context_block(context: ThinkingContext | None) -> str:
    text = context.to_prompt() if context else ""
    return f"Context:\n{text}\n" if text else ""


def _joined(items: Sequence[str], empty: str = "None specified") -> str:
    return ", ".join(items) if items else empty


# =============================================================================
# Confidence heuristics
# =============================================================================


def estimate_confidence(content: str, prior_thoughts: Sequence[Thought]) -> float:
    """Heuristic confidence for a thought that carries no explicit marker.

    Starts at 0.5, rewards length, specificity and references to earlier
    thoughts, penalizes hedging, and clamps to [0.1, 0.9].
    """
    confidence = 0.5
    if len(content) > 200:
        confidence += 0.1
    if len(content) > 500:
        confidence += 0.1
    if any(word in content for word in ("specifically", "evidence", "data")):
        confidence += 0.1
    if prior_thoughts and ("previous" in content or "building on" in content):
        confidence += 0.1
    if any(word in content for word in ("might", "possibly", "unclear")):
        confidence -= 0.1
    return min(max(confidence, 0.1), 0.9)


def estimate_step_confidence(content: str, category: str) -> float:
    confidence = 0.7
    if category == "definition" and len(content) > 100:
        confidence += 0.1
    if category == "breakdown" and "component" in content:
        confidence += 0.1
    if category == "evidence" and "data" in content:
        confidence += 0.2
    return min(confidence, 0.95)


def estimate_solution_confidence(content: str, iteration: int, max_iterations: int) -> float:
    confidence = 0.6
    if iteration == 1:
        confidence += 0.1
    if iteration > max_iterations / 2:
        confidence += 0.1
    if "step" in content or "phase" in content:
        confidence += 0.1
    if "test" in content or "validate" in content:
        confidence += 0.1
    if len(content) > 300:
        confidence += 0.05
    return min(confidence, 0.9)


# =============================================================================
# Response parsers
# =============================================================================


def parse_hypothesis(content: str) -> HypothesisDraft:
    parsed = parse_labeled(content, ("HYPOTHESIS", "EVIDENCE", "CONFIDENCE"))
    return HypothesisDraft(
        statement=parsed.get("HYPOTHESIS", "Generated hypothesis"),
        confidence=parsed.number("CONFIDENCE", 0.5),
        evidence=parsed.all_bullets(),
    )


def parse_verdict(content: str) -> HypothesisVerdict:
    parsed = parse_labeled(content, ("RESULT", "REASONING", "EVIDENCE"))
    result_text = parsed.get("RESULT").lower()
    if "confirmed" in result_text:
        result = HypothesisResult.CONFIRMED
    elif "rejected" in result_text:
        result = HypothesisResult.REJECTED
    else:
        result = HypothesisResult.INCONCLUSIVE
    return HypothesisVerdict(
        result=result,
        reasoning=parsed.get("REASONING"),
        evidence=parsed.all_bullets(),
    )


def parse_synthesis(content: str) -> Synthesis:
    parsed = parse_labeled(content, ("ANALYSIS", "CONFIDENCE", "RECOMMENDATIONS", "NEXT_STEPS"))
    return Synthesis(
        analysis=parsed.get("ANALYSIS", "Analysis completed"),
        confidence=parsed.number("CONFIDENCE", 0.7),
        recommendations=parsed.bullets("RECOMMENDATIONS"),
        next_steps=parsed.bullets("NEXT_STEPS"),
    )


def parse_solution_choice(content: str) -> SolutionChoice:
    parsed = parse_labeled(
        content,
        ("SELECTED_SOLUTION", "CONFIDENCE", "REASONING", "RECOMMENDATIONS", "ALTERNATIVES"),
    )
    return SolutionChoice(
        statement=parsed.get("SELECTED_SOLUTION", "Solution selected based on evaluation"),
        confidence=parsed.number("CONFIDENCE", 0.7),
        reasoning=parsed.get("REASONING"),
        recommendations=parsed.bullets("RECOMMENDATIONS"),
        alternatives=parsed.bullets("ALTERNATIVES"),
    )


def parse_implementation_plan(content: str) -> ImplementationPlan:
    parsed = parse_labeled(
        content,
        ("IMPLEMENTATION_STEPS", "POTENTIAL_OBSTACLES", "SUCCESS_CRITERIA", "TEST_PLAN"),
    )
    return ImplementationPlan(
        steps=parsed.bullets("IMPLEMENTATION_STEPS"),
        obstacles=parsed.bullets("POTENTIAL_OBSTACLES"),
        success_criteria=parsed.bullets("SUCCESS_CRITERIA"),
        test_plan=parsed.bullets("TEST_PLAN"),
    )


def parse_reflection(content: str, focus: ReflectionFocus) -> ReflectionNote:
    parsed = parse_labeled(content, ("ANALYSIS", "FINDINGS"))
    return ReflectionNote(
        focus=focus,
        analysis=parsed.get("ANALYSIS", "Reflection completed"),
        findings=parsed.bullets("FINDINGS"),
    )


def parse_issues(content: str, focus: ReflectionFocus) -> list[ReflectionIssue]:
    """Parse repeated ISSUE / SEVERITY / SUGGESTION blocks."""
    issues: list[ReflectionIssue] = []
    current: dict[str, str] | None = None

    def flush() -> None:
        if current and current.get("issue"):
            issues.append(
                ReflectionIssue(
                    focus=focus,
                    issue=current["issue"],
                    severity=IssueSeverity(current.get("severity", "medium")),
                    suggestion=current.get("suggestion", ""),
                )
            )

    for raw_line in content.splitlines():
        line = raw_line.strip()
        upper = line.upper()
        if upper.startswith("ISSUE:"):
            flush()
            current = {"issue": line[len("ISSUE:") :].strip()}
        elif current is None:
            continue
        elif upper.startswith("SEVERITY:"):
            severity = line[len("SEVERITY:") :].strip().lower()
            if "high" in severity:
                current["severity"] = "high"
            elif "low" in severity:
                current["severity"] = "low"
            else:
                current["severity"] = "medium"
        elif upper.startswith("SUGGESTION:"):
            current["suggestion"] = line[len("SUGGESTION:") :].strip()
    flush()
    return issues


# =============================================================================
# LLM-backed engine
# =============================================================================


class ReasoningEngine:
    """LLM-backed implementation of ``SolutionPlanner`` and ``Reflector``.

    Example:
        engine = ReasoningEngine(LLMClient(), timeout=60.0)
        draft = await engine.generate_thought(problem, [], ThinkingStyle.ANALYTICAL, 1)

    """

    def __init__(self, llm: LLMClient, *, timeout: float = 60.0, max_tokens: int = 1500) -> None:
        """Initialize the engine.

        Args:
            llm: Client used for every completion.
            timeout: Upper bound in seconds for one completion, retries included.
            max_tokens: Response token limit per completion.

        """
        self._llm = llm
        self._max_tokens = max_tokens
        self._generate = with_timeout(timeout)(llm.generate_async)

    async def _complete(self, prompt: str, purpose: str) -> str:
        try:
            content = await self._generate(prompt, max_tokens=self._max_tokens)
        except LLMException as e:
            raise GenerationError(f"Failed to {purpose}: {e}") from e
        if not content or not content.strip():
            raise GenerationError(f"No content generated to {purpose}")
        logger.debug(f"Generated content to {purpose}: {content[:100]}...")
        return content

    # -------------------------------------------------------------------------
    # Thoughts
    # -------------------------------------------------------------------------

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
        """Generate the next thought, using the step's prompt when given."""
        kind = step.kind if step else StepKind.OPEN

        if kind == StepKind.OPEN:
            prompt = _thought_prompt(problem, prior_thoughts, style, target_sequence, context)
            content = await self._complete(prompt, f"generate thought {target_sequence}")
            confidence = extract_confidence(content)
            if confidence is None:
                confidence = estimate_confidence(content, prior_thoughts)
            return ThoughtDraft(clean_thought_content(content), confidence)

        assert step is not None
        if kind in (StepKind.ANALYSIS, StepKind.ALTERNATIVE):
            prompt = _step_prompt(problem, step, prior_thoughts, style, context)
            content = await self._complete(prompt, f"complete {step.name}")
            return ThoughtDraft(
                clean_step_content(content, step.name),
                estimate_step_confidence(content, step.category),
            )

        if kind == StepKind.ASSUMPTIONS:
            prompt = _assumptions_prompt(problem, prior_thoughts)
            content = await self._complete(prompt, "analyze assumptions")
            return ThoughtDraft(content.strip(), 0.8)

        if kind == StepKind.PROBLEM_DEFINITION:
            prompt = _definition_prompt(problem, context)
            content = await self._complete(prompt, "define the problem")
            return ThoughtDraft(content.strip(), 0.9)

        prompt = _candidate_prompt(problem, step, prior_thoughts, context)
        content = await self._complete(prompt, f"generate solution candidate {step.iteration}")
        return ThoughtDraft(
            content.strip(),
            estimate_solution_confidence(content, step.iteration, step.total_iterations),
        )

    async def generate_revision(
        self, original: Thought, all_thoughts: Sequence[Thought], problem: str
    ) -> str:
        others = "\n".join(
            f"{t.sequence}. {t.content}" for t in all_thoughts if t.sequence != original.sequence
        )
        prompt = (
            "You are improving an earlier step of a sequential reasoning process.\n\n"
            f"Problem:\n{problem}\n\n"
            f"Thought #{original.sequence} (confidence {original.confidence:.2f}):\n"
            f"{original.content}\n\n"
            f"Other thoughts so far:\n{others or 'None'}\n\n"
            "Rewrite this thought so it is more accurate, better supported and consistent "
            "with the rest of the reasoning. Fix weak assumptions and fill gaps.\n\n"
            "Revised thought:"
        )
        content = await self._complete(prompt, f"revise thought {original.sequence}")
        return clean_thought_content(content)

    # -------------------------------------------------------------------------
    # Hypotheses
    # -------------------------------------------------------------------------

    async def generate_hypothesis(
        self, problem: str, prior_thoughts: Sequence[Thought], style: ThinkingStyle
    ) -> HypothesisDraft:
        prompt = (
            f"Using {style.value} reasoning, propose one testable hypothesis about the problem.\n\n"
            f"Problem:\n{problem}\n\n"
            f"Reasoning so far:\n{format_thoughts(prior_thoughts)}\n\n"
            "Make it specific and falsifiable, cite supporting points from the reasoning "
            "and rate your confidence.\n\n"
            "Reply exactly in this layout:\n"
            "HYPOTHESIS: <statement>\n"
            "EVIDENCE:\n- <supporting point>\n"
            "CONFIDENCE: <0.00-1.00>"
        )
        draft = parse_hypothesis(await self._complete(prompt, "generate a hypothesis"))
        logger.debug(f"Generated hypothesis: {draft.statement}")
        return draft

    async def test_hypothesis(
        self,
        hypothesis: Hypothesis,
        prior_thoughts: Sequence[Thought],
        extra_context: str | None = None,
    ) -> HypothesisVerdict:
        evidence = "\n".join(f"- {e}" for e in hypothesis.evidence) or "None"
        counter = "\n".join(f"- {e}" for e in hypothesis.counter_evidence) or "None"
        extra = f"Additional context:\n{extra_context}\n\n" if extra_context else ""
        prompt = (
            "Decide whether the hypothesis below holds, given the evidence and reasoning.\n\n"
            f"Hypothesis:\n{hypothesis.statement}\n\n"
            f"Supporting evidence:\n{evidence}\n\n"
            f"Counter evidence:\n{counter}\n\n"
            f"Reasoning so far:\n{format_thoughts(prior_thoughts)}\n\n"
            f"{extra}"
            "Reply exactly in this layout:\n"
            "RESULT: <CONFIRMED|REJECTED|INCONCLUSIVE>\n"
            "REASONING: <why>\n"
            "EVIDENCE:\n- <additional evidence>"
        )
        verdict = parse_verdict(await self._complete(prompt, "test a hypothesis"))
        statement = truncate(hypothesis.statement, 60)
        logger.info(f"Tested hypothesis {statement!r}: {verdict.result.value}")
        return verdict

    # -------------------------------------------------------------------------
    # Synthesis
    # -------------------------------------------------------------------------

    async def synthesize(
        self,
        problem: str,
        thoughts: Sequence[Thought],
        hypotheses: Sequence[Hypothesis],
        style: ThinkingStyle,
        context: ThinkingContext | None = None,
    ) -> Synthesis:
        prompt = (
            f"Combine the {style.value} reasoning below into a final analysis.\n\n"
            f"Problem:\n{problem}\n\n"
            f"{_context_block(context)}"
            f"Thought process:\n{format_thoughts(thoughts)}\n\n"
            f"Hypotheses:\n{format_hypotheses(hypotheses)}\n\n"
            "Summarize the key findings, state conclusions with your confidence, give "
            "actionable recommendations and next steps, and note remaining uncertainty.\n\n"
            "Reply exactly in this layout:\n"
            "ANALYSIS: <final analysis>\n"
            "CONFIDENCE: <0.00-1.00>\n"
            "RECOMMENDATIONS:\n- <recommendation>\n"
            "NEXT_STEPS:\n- <next step>"
        )
        synthesis = parse_synthesis(await self._complete(prompt, "synthesize the analysis"))
        logger.info(f"Synthesized analysis with confidence {synthesis.confidence:.2f}")
        return synthesis

    async def evaluate_solutions(
        self,
        problem: str,
        candidates: Sequence[Thought],
        tested_hypotheses: Sequence[Hypothesis],
    ) -> SolutionChoice:
        solutions = "\n\n".join(
            f"Solution {i} (confidence {c.confidence:.2f}):\n{c.content}"
            for i, c in enumerate(candidates, start=1)
        )
        verdicts = "\n".join(
            f"- {h.statement}: {h.result.value.upper() if h.result else 'UNTESTED'} "
            f"({h.confidence:.2f})"
            for h in tested_hypotheses
        )
        prompt = (
            "Compare the solution candidates and pick the best one.\n\n"
            f"Problem:\n{problem}\n\n"
            f"Candidates:\n{solutions or 'None'}\n\n"
            f"Hypothesis results:\n{verdicts or 'No hypotheses tested'}\n\n"
            "Weigh effectiveness, feasibility, cost, risk and fit with the requirements.\n\n"
            "Reply exactly in this layout:\n"
            "SELECTED_SOLUTION: <chosen solution>\n"
            "CONFIDENCE: <0.00-1.00>\n"
            "REASONING: <why it wins>\n"
            "RECOMMENDATIONS:\n- <implementation advice>\n"
            "ALTERNATIVES:\n- <fallback solution>"
        )
        return parse_solution_choice(await self._complete(prompt, "evaluate solutions"))

    async def plan_implementation(
        self, problem: str, solution: str, context: ThinkingContext | None = None
    ) -> ImplementationPlan:
        constraints = context.constraints if context else []
        requirements = context.requirements if context else []
        prompt = (
            "Write an implementation plan for the chosen solution.\n\n"
            f"Problem:\n{problem}\n\n"
            f"Solution:\n{solution}\n\n"
            f"Constraints: {_joined(constraints)}\n"
            f"Requirements: {_joined(requirements)}\n\n"
            "Reply exactly in this layout:\n"
            "IMPLEMENTATION_STEPS:\n- <step>\n"
            "POTENTIAL_OBSTACLES:\n- <obstacle>\n"
            "SUCCESS_CRITERIA:\n- <criterion>\n"
            "TEST_PLAN:\n- <check>"
        )
        return parse_implementation_plan(await self._complete(prompt, "plan the implementation"))

    # -------------------------------------------------------------------------
    # Reflection
    # -------------------------------------------------------------------------

    async def reflect(
        self, original_analysis: str, focus: ReflectionFocus, extra_context: str = ""
    ) -> ReflectionNote:
        label = focus.value.replace("_", " ")
        prompt = (
            f"Review the analysis below with a focus on {label}.\n\n"
            f"{FOCUS_INSTRUCTIONS[focus]}\n\n"
            f"Analysis:\n{original_analysis}\n\n"
            f"{extra_context}"
            "Reply exactly in this layout:\n"
            "ANALYSIS: <your reflection>\n"
            "FINDINGS:\n- <finding or concern>"
        )
        return parse_reflection(await self._complete(prompt, f"reflect on {label}"), focus)

    async def identify_issues(self, note: ReflectionNote) -> list[ReflectionIssue]:
        findings = "\n".join(f"- {f}" for f in note.findings) or "None"
        prompt = (
            "List the concrete issues raised by this review.\n\n"
            f"Focus: {note.focus.value.replace('_', ' ')}\n\n"
            f"Review:\n{note.analysis}\n\n"
            f"Findings:\n{findings}\n\n"
            "For every issue reply with:\n"
            "ISSUE: <description>\n"
            "SEVERITY: <LOW|MEDIUM|HIGH>\n"
            "SUGGESTION: <how to fix it>"
        )
        content = await self._complete(prompt, f"identify {note.focus.value} issues")
        return parse_issues(content, note.focus)

    async def suggest_improvements(
        self,
        original_analysis: str,
        issues: Sequence[ReflectionIssue],
        goals: Sequence[str],
    ) -> list[str]:
        listed = "\n".join(
            f"- {i.focus.value}: {i.issue} ({i.severity.value}) -> {i.suggestion}" for i in issues
        )
        prompt = (
            "Propose specific improvements that resolve these issues.\n\n"
            f"Analysis (excerpt):\n{truncate(original_analysis, 500)}\n\n"
            f"Issues:\n{listed}\n\n"
            f"Goals: {_joined(goals, 'General improvement')}\n\n"
            "One improvement per line, each starting with '- '."
        )
        return parse_bullets(await self._complete(prompt, "suggest improvements"), limit=8)

    async def revise_analysis(
        self,
        original_analysis: str,
        improvements: Sequence[str],
        new_information: str | None,
        alternative_viewpoints: Sequence[str],
    ) -> str:
        listed = "\n".join(f"- {imp}" for imp in improvements)
        prompt = (
            "Rewrite the analysis to apply the improvements while keeping its sound insights.\n\n"
            f"Analysis:\n{original_analysis}\n\n"
            f"Improvements:\n{listed}\n\n"
            f"New information: {new_information or 'None provided'}\n"
            f"Alternative viewpoints: {_joined(alternative_viewpoints, 'None provided')}\n\n"
            "Revised analysis:"
        )
        return (await self._complete(prompt, "revise the analysis")).strip()

    async def recommend_actions(
        self, context: str, improvements: Sequence[str], goals: Sequence[str]
    ) -> list[str]:
        listed = "\n".join(f"- {imp}" for imp in improvements)
        prompt = (
            "Recommend concrete next actions based on this review.\n\n"
            f"Context: {context or 'No context provided'}\n\n"
            f"Improvements:\n{listed}\n\n"
            f"Goals: {_joined(goals, 'General improvement')}\n\n"
            "One action per line, each starting with '- '."
        )
        return parse_bullets(await self._complete(prompt, "recommend actions"), limit=6)


# =============================================================================
# Prompt builders
# =============================================================================


def _thought_prompt(
    problem: str,
    prior_thoughts: Sequence[Thought],
    style: ThinkingStyle,
    target_sequence: int,
    context: ThinkingContext | None,
) -> str:
    return (
        f"You reason through problems one step at a time using {style.value} thinking.\n\n"
        f"{STYLE_INSTRUCTIONS[style]}\n\n"
        f"Problem:\n{problem}\n\n"
        f"{_context_block(context)}"
        f"Previous thoughts ({len(prior_thoughts)}):\n{format_thoughts(prior_thoughts)}\n\n"
        f"Write thought #{target_sequence}. Build on the previous thoughts without repeating "
        "them, be concrete, state the evidence and assumptions you rely on, and name open "
        "questions.\n\n"
        "End with [Confidence: X.XX], a number between 0.00 and 1.00.\n\n"
        f"Thought #{target_sequence}:"
    )


def _step_prompt(
    subject: str,
    step: PhaseStep,
    prior_thoughts: Sequence[Thought],
    style: ThinkingStyle,
    context: ThinkingContext | None,
) -> str:
    previous = "\n\n".join(f"{t.sequence}. {t.content}" for t in prior_thoughts)
    return (
        f"Perform the '{step.name}' step of a structured analysis.\n\n"
        f"Subject:\n{subject}\n\n"
        f"{_context_block(context)}"
        f"Objective: {step.objective}\n\n"
        f"Analysis so far:\n{previous or 'No previous analysis yet.'}\n\n"
        f"Use {style.value} thinking. Be specific and evidence-based, add to the earlier "
        "steps instead of repeating them, and point out insights worth acting on.\n\n"
        f"Your {step.name} analysis:"
    )


def _assumptions_prompt(subject: str, prior_thoughts: Sequence[Thought]) -> str:
    previous = "\n\n".join(t.content for t in prior_thoughts)
    return (
        "Identify the assumptions behind the analysis below.\n\n"
        f"Subject: {subject}\n\n"
        f"Analysis:\n{previous or 'No analysis yet.'}\n\n"
        "Cover explicit and implicit assumptions, how well each is supported, what breaks "
        "if it is wrong, and alternatives worth considering.\n\n"
        "Your assumption analysis:"
    )


def _definition_prompt(problem: str, context: ThinkingContext | None) -> str:
    constraints = context.constraints if context else []
    requirements = context.requirements if context else []
    background = context.to_prompt() if context else ""
    return (
        "Define the problem below precisely before any solution is proposed.\n\n"
        f"Problem:\n{problem}\n\n"
        f"Constraints: {_joined(constraints)}\n"
        f"Requirements: {_joined(requirements)}\n\n"
        f"Context:\n{background or 'No additional context provided'}\n\n"
        "Cover the core problem, scope, affected stakeholders, success criteria and "
        "critical factors.\n\n"
        "Your problem definition:"
    )


def _candidate_prompt(
    problem: str,
    step: PhaseStep,
    prior_thoughts: Sequence[Thought],
    context: ThinkingContext | None,
) -> str:
    approach = step.approach or SolutionApproach.SYSTEMATIC
    constraints = context.constraints if context else []
    requirements = context.requirements if context else []
    previous = "\n".join(
        f"- {t.content}" for t in prior_thoughts if "solution_candidate" in t.tags
    )
    kind = "comprehensive" if step.iteration == 1 else "alternative"
    novelty = (
        "Lay a solid foundation."
        if step.iteration == 1
        else "Differ meaningfully from the earlier candidates."
    )
    return (
        f"Propose solution candidate #{step.iteration}.\n\n"
        f"Problem:\n{problem}\n\n"
        f"Approach: {approach.value}. {APPROACH_INSTRUCTIONS[approach]}\n\n"
        f"Constraints: {_joined(constraints)}\n"
        f"Requirements: {_joined(requirements)}\n\n"
        f"Earlier candidates:\n{previous or 'None yet'}\n\n"
        f"Give a {kind}, practical solution that addresses the core problem and respects "
        f"the constraints and requirements. {novelty}\n\n"
        f"Solution candidate #{step.iteration}:"
    )
