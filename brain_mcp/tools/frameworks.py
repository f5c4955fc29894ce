"""Template-based reasoning frameworks.

Fast, deterministic scaffolds (problem solving, root cause, pros and cons,
SWOT, cause and effect) that need no Generator call. Each framework is a
fixed sequence of sections; applying it fills the sections with generic
prompts for the caller to work through.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from loguru import logger

from brain_mcp.utils.parsing import truncate


class PatternName(str, Enum):
    PROBLEM_SOLVING = "problem_solving"
    ROOT_CAUSE = "root_cause"
    PROS_CONS = "pros_cons"
    SWOT = "swot"
    CAUSE_EFFECT = "cause_effect"


# A section body is either a list of points or a single statement.
SectionBody = tuple[str, ...] | str


@dataclass(frozen=True, slots=True)
class ReasoningPattern:
    key: PatternName
    name: str
    description: str
    use_case: str
    subject_heading: str
    steps: tuple[str, ...]
    sections: tuple[tuple[str, SectionBody], ...]


PATTERNS: dict[PatternName, ReasoningPattern] = {
    PatternName.PROBLEM_SOLVING: ReasoningPattern(
        key=PatternName.PROBLEM_SOLVING,
        name="Problem Solving",
        description="Systematic approach to solving problems",
        use_case="Complex challenges requiring systematic solution development",
        subject_heading="Problem Analysis",
        steps=(
            "Define the problem clearly",
            "Identify constraints and requirements",
            "Generate potential solutions",
            "Evaluate each solution",
            "Select and implement the best solution",
        ),
        sections=(
            (
                "Key Constraints",
                (
                    "Time constraints need consideration",
                    "Resource limitations may apply",
                    "Technical feasibility must be assessed",
                ),
            ),
            (
                "Potential Solutions",
                (
                    "Direct approach: Address the problem head-on",
                    "Alternative approach: Find a workaround solution",
                    "Systematic approach: Break down into smaller parts",
                ),
            ),
            (
                "Recommended Approach",
                "Systematic approach recommended based on complexity and resource considerations",
            ),
            (
                "Implementation Steps",
                (
                    "Plan the implementation approach",
                    "Gather necessary resources",
                    "Execute in phases",
                    "Monitor progress and adjust",
                ),
            ),
        ),
    ),
    PatternName.ROOT_CAUSE: ReasoningPattern(
        key=PatternName.ROOT_CAUSE,
        name="Root Cause Analysis",
        description="Systematic investigation to find the underlying cause",
        use_case="Investigating issues to find underlying causes",
        subject_heading="Issue Description",
        steps=(
            "Describe the symptom or issue",
            "Gather relevant data and evidence",
            "Identify potential causes",
            "Test hypotheses systematically",
            "Identify the root cause",
        ),
        sections=(
            (
                "Observable Symptoms",
                (
                    "Observable issues or behaviors",
                    "Performance indicators",
                    "User feedback or complaints",
                ),
            ),
            (
                "Potential Causes",
                (
                    "Process-related factors",
                    "Environmental conditions",
                    "Human factors",
                    "Technical or system issues",
                ),
            ),
            (
                "Root Cause",
                "Most likely root cause based on symptom analysis and cause investigation",
            ),
            (
                "Corrective Actions",
                (
                    "Address the identified root cause",
                    "Implement preventive measures",
                    "Monitor for recurrence",
                ),
            ),
        ),
    ),
    PatternName.PROS_CONS: ReasoningPattern(
        key=PatternName.PROS_CONS,
        name="Pros and Cons Analysis",
        description="Balanced evaluation of advantages and disadvantages",
        use_case="Decision making when evaluating options",
        subject_heading="Decision/Option",
        steps=(
            "Clearly state the decision or option",
            "List all advantages (pros)",
            "List all disadvantages (cons)",
            "Weight the importance of each factor",
            "Make a recommendation",
        ),
        sections=(
            (
                "Advantages (Pros)",
                (
                    "Potential benefits and advantages",
                    "Positive outcomes and opportunities",
                    "Value creation possibilities",
                ),
            ),
            (
                "Disadvantages (Cons)",
                (
                    "Potential risks and disadvantages",
                    "Negative consequences",
                    "Cost and resource implications",
                ),
            ),
            (
                "Weighted Assessment",
                "Balanced assessment considering the relative importance and impact of each factor",
            ),
            (
                "Recommendation",
                "Recommended course of action based on the weighted pros and cons analysis",
            ),
        ),
    ),
    PatternName.SWOT: ReasoningPattern(
        key=PatternName.SWOT,
        name="SWOT Analysis",
        description="Strengths, Weaknesses, Opportunities, Threats analysis",
        use_case="Strategic planning and competitive analysis",
        subject_heading="SWOT Analysis",
        steps=(
            "Identify internal strengths",
            "Acknowledge internal weaknesses",
            "Recognize external opportunities",
            "Assess external threats",
            "Develop strategic recommendations",
        ),
        sections=(
            (
                "Strengths",
                (
                    "Internal capabilities and advantages",
                    "Existing resources and competencies",
                    "Positive track record",
                ),
            ),
            (
                "Weaknesses",
                (
                    "Internal limitations and challenges",
                    "Resource constraints",
                    "Areas needing improvement",
                ),
            ),
            (
                "Opportunities",
                (
                    "External factors that could be leveraged",
                    "Market trends and possibilities",
                    "Potential partnerships or collaborations",
                ),
            ),
            (
                "Threats",
                (
                    "External risks and challenges",
                    "Competitive pressures",
                    "Environmental or regulatory changes",
                ),
            ),
            (
                "Strategic Recommendations",
                (
                    "Leverage strengths to capitalize on opportunities",
                    "Address weaknesses to mitigate threats",
                    "Develop contingency plans",
                ),
            ),
        ),
    ),
    PatternName.CAUSE_EFFECT: ReasoningPattern(
        key=PatternName.CAUSE_EFFECT,
        name="Cause and Effect Analysis",
        description="Understanding relationships between causes and effects",
        use_case="Understanding relationships between variables",
        subject_heading="Effect/Outcome",
        steps=(
            "Identify the effect or outcome",
            "Brainstorm potential causes",
            "Categorize causes (people, process, environment, etc.)",
            "Analyze relationships",
            "Prioritize most significant causes",
        ),
        sections=(
            (
                "Primary Causes",
                ("Direct causal factors", "Immediate contributing elements", "Primary drivers"),
            ),
            (
                "Secondary Causes",
                ("Supporting or enabling factors", "Indirect influences", "Background conditions"),
            ),
            (
                "Relationships",
                "Analysis of how primary and secondary causes interact and influence each other",
            ),
            (
                "Priority Actions",
                (
                    "Address highest impact causes first",
                    "Implement quick wins",
                    "Plan long-term systematic changes",
                ),
            ),
        ),
    ),
}


def _numbered(items: tuple[str, ...]) -> str:
    return "\n".join(f"{i}. {item}" for i, item in enumerate(items, start=1))


@dataclass(frozen=True, slots=True)
class FrameworkAnalysis:
    """A framework applied to one problem."""

    pattern: ReasoningPattern
    problem: str
    context: str | None = None

    def render(self) -> str:
        """Markdown rendering: subject, sections, then the framework steps."""
        parts = [f"# {self.pattern.name}", "", f"**{self.pattern.subject_heading}:**", self.problem]
        if self.context:
            parts.extend(["", "**Context:**", self.context])
        for heading, body in self.pattern.sections:
            text = body if isinstance(body, str) else _numbered(body)
            parts.extend(["", f"**{heading}:**", text])
        parts.extend(["", "**Analysis Framework:**", _numbered(self.pattern.steps)])
        return "\n".join(parts)

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern.key.value,
            "name": self.pattern.name,
            "problem": self.problem,
            "context": self.context,
            "sections": {
                heading: body if isinstance(body, str) else list(body)
                for heading, body in self.pattern.sections
            },
            "framework_steps": list(self.pattern.steps),
            "analysis": self.render(),
        }


def get_pattern(name: str) -> ReasoningPattern:
    """Look up a framework by key.

    Raises:
        ValueError: Unknown pattern name.

    """
    try:
        return PATTERNS[PatternName(name)]
    except ValueError:
        available = ", ".join(p.value for p in PatternName)
        raise ValueError(f"Unknown reasoning pattern: {name}. Available: {available}") from None


def analyze_with_pattern(
    problem: str, pattern: str, context: str | None = None
) -> FrameworkAnalysis:
    selected = get_pattern(pattern)
    logger.info(f"Applying {selected.key.value} framework to: {truncate(problem, 50)}")
    return FrameworkAnalysis(pattern=selected, problem=problem, context=context or None)


def patterns_info(pattern: str | None = None) -> dict[str, Any]:
    """Describe one framework, or list all of them when ``pattern`` is None."""
    if pattern:
        selected = get_pattern(pattern)
        return {
            "pattern": selected.key.value,
            "name": selected.name,
            "description": selected.description,
            "framework_steps": list(selected.steps),
            "use_case": f"Best for: {selected.use_case}",
        }
    return {
        "patterns": {p.key.value: p.description for p in PATTERNS.values()},
        "usage": "Use the pattern name with brain_analyze_simple to apply the framework.",
    }
