"""Deterministic extras derived from a finished session.

Everything here is a pure function over recorded thoughts and hypotheses:
no Generator calls, no session mutation. The heuristics are keyword based,
matching how the confidence estimators in ``reasoning_engine`` work.
"""

from __future__ import annotations

from collections.abc import Sequence

from brain_mcp.tools.reasoning_types import (
    EvidenceQuality,
    Hypothesis,
    ReasoningSession,
    Thought,
)
from brain_mcp.utils.parsing import truncate

MAX_FINDINGS = 10
MAX_ASSUMPTIONS = 8
MAX_RISKS = 5
MAX_OPPORTUNITIES = 5

FINDING_CATEGORIES = ("definition", "context", "breakdown", "stakeholders", "constraints")
ASSUMPTION_MARKERS = ("assume", "given that", "if we consider")

EVIDENCE_INDICATORS: dict[EvidenceQuality, tuple[str, ...]] = {
    EvidenceQuality.STRONG: (
        "data shows",
        "research indicates",
        "proven",
        "demonstrated",
        "evidence suggests",
    ),
    EvidenceQuality.MODERATE: ("likely", "probably", "indicates", "suggests", "appears"),
    EvidenceQuality.WEAK: ("might", "could", "possibly", "perhaps", "speculation"),
}

RISK_TERMS = ("risk", "threat", "danger")
RISK_PHRASES = ("risk of", "threat of", "danger of", "potential for")
OPPORTUNITY_TERMS = ("opportunity", "benefit", "advantage")
OPPORTUNITY_PHRASES = ("opportunity to", "benefit of", "advantage of", "potential to")


def _percent(value: float) -> str:
    return f"{value * 100:.0f}%"


# =============================================================================
# Analysis extras
# =============================================================================


def extract_key_findings(thoughts: Sequence[Thought]) -> list[str]:
    """High-confidence explicit findings, then the best thought per base category."""
    findings = [
        t.content
        for t in thoughts
        if t.confidence > 0.7 and ("finding:" in t.content or "insight:" in t.content)
    ]
    for category in FINDING_CATEGORIES:
        tagged = [t for t in thoughts if category in t.tags]
        if tagged:
            best = max(tagged, key=lambda t: t.confidence)
            findings.append(f"{category}: {best.content[:200]}...")
    return findings[:MAX_FINDINGS]


def extract_assumptions(thoughts: Sequence[Thought]) -> list[str]:
    """Assumption lines from thoughts tagged ``assumptions``."""
    assumptions: list[str] = []
    for thought in thoughts:
        if "assumptions" not in thought.tags:
            continue
        for line in thought.content.splitlines():
            if any(marker in line for marker in ASSUMPTION_MARKERS):
                assumptions.append(line.strip())
    return assumptions[:MAX_ASSUMPTIONS]


def assess_evidence_quality(thoughts: Sequence[Thought]) -> EvidenceQuality:
    """Grade the evidence language used across all thoughts.

    Counts indicator phrases per grade. Strong when more than 60% of the
    hits are strong, moderate when strong plus moderate exceed 70%, weak
    otherwise, insufficient with no hits at all.
    """
    counts = dict.fromkeys(EVIDENCE_INDICATORS, 0)
    for thought in thoughts:
        content = thought.content.lower()
        for grade, indicators in EVIDENCE_INDICATORS.items():
            counts[grade] += sum(1 for indicator in indicators if indicator in content)

    total = sum(counts.values())
    if total == 0:
        return EvidenceQuality.INSUFFICIENT
    strong_ratio = counts[EvidenceQuality.STRONG] / total
    moderate_ratio = counts[EvidenceQuality.MODERATE] / total
    if strong_ratio > 0.6:
        return EvidenceQuality.STRONG
    if strong_ratio + moderate_ratio > 0.7:
        return EvidenceQuality.MODERATE
    return EvidenceQuality.WEAK


def _statement_windows(content: str, phrases: Sequence[str]) -> list[str]:
    """Text around the first occurrence of each phrase: 50 chars before, 150 after."""
    lowered = content.lower()
    windows = []
    for phrase in phrases:
        index = lowered.find(phrase)
        if index != -1:
            windows.append(content[max(0, index - 50) : index + 150].strip())
    return windows


def _keyword_statements(
    thoughts: Sequence[Thought],
    tag: str,
    terms: Sequence[str],
    phrases: Sequence[str],
    limit: int,
) -> list[str]:
    statements: list[str] = []
    for thought in thoughts:
        lowered = thought.content.lower()
        if tag in thought.tags or any(term in lowered for term in terms):
            statements.extend(_statement_windows(thought.content, phrases))
    return statements[:limit]


def identify_risk_factors(thoughts: Sequence[Thought]) -> list[str]:
    return _keyword_statements(thoughts, "risks", RISK_TERMS, RISK_PHRASES, MAX_RISKS)


def identify_opportunities(thoughts: Sequence[Thought]) -> list[str]:
    return _keyword_statements(
        thoughts, "opportunities", OPPORTUNITY_TERMS, OPPORTUNITY_PHRASES, MAX_OPPORTUNITIES
    )


# =============================================================================
# Reasoning chains
# =============================================================================


def build_reasoning_chain(session: ReasoningSession) -> str:
    """Arrow chain of every thought with a short summary.

    Revisions are marked with ``↻``, other thoughts with ``→``.
    """
    thoughts = session.thoughts
    if not thoughts:
        return "No reasoning chain available."

    chain = "\n\n".join(
        f"{'↻' if t.is_revision else '→'} {t.content} [{_percent(t.confidence)}]"
        for t in thoughts
    )
    average = sum(t.confidence for t in thoughts) / len(thoughts)
    summary = (
        "\nReasoning Summary:\n"
        f"- Total thoughts: {len(thoughts)}\n"
        f"- Revisions: {session.metadata.revisions_count}\n"
        f"- Average confidence: {_percent(average)}"
    )
    return chain + summary


def group_by_category(thoughts: Sequence[Thought]) -> dict[str, list[Thought]]:
    """Group by the second tag, ``general`` when a thought has fewer than two."""
    groups: dict[str, list[Thought]] = {}
    for thought in thoughts:
        category = thought.tags[1] if len(thought.tags) > 1 else "general"
        groups.setdefault(category, []).append(thought)
    return groups


def build_analytical_reasoning(session: ReasoningSession) -> str:
    lines = ["Analytical Reasoning Process:", ""]
    for category, thoughts in group_by_category(session.thoughts).items():
        lines.append(f"{category.upper()}:")
        lines.extend(f"• {truncate(t.content, 200)}" for t in thoughts)
        lines.append("")
    return "\n".join(lines)


def _hypothesis_status(hypothesis: Hypothesis) -> str:
    if hypothesis.tested and hypothesis.result:
        return hypothesis.result.value.upper()
    return "NOT_TESTED"


def build_solution_reasoning(session: ReasoningSession) -> str:
    candidates = [t for t in session.thoughts if "solution_candidate" in t.tags]
    lines = ["Problem-Solving Process:", "", f"SOLUTION CANDIDATES ({len(candidates)}):"]
    lines.extend(
        f"{i}. {truncate(c.content, 150)} [{_percent(c.confidence)}]"
        for i, c in enumerate(candidates, start=1)
    )
    if session.hypotheses:
        lines.extend(["", "HYPOTHESIS TESTING:"])
        lines.extend(f"• {h.statement} → {_hypothesis_status(h)}" for h in session.hypotheses)
    return "\n".join(lines)
