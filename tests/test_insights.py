"""Unit tests for brain_mcp/tools/insights.py and brain_mcp/utils/parsing.py."""

from __future__ import annotations

from brain_mcp.tools.insights import (
    assess_evidence_quality,
    build_analytical_reasoning,
    build_reasoning_chain,
    build_solution_reasoning,
    extract_assumptions,
    extract_key_findings,
    group_by_category,
    identify_opportunities,
    identify_risk_factors,
)
from brain_mcp.tools.reasoning_types import EvidenceQuality, HypothesisResult, Thought
from brain_mcp.tools.thought_manager import ThoughtManager
from brain_mcp.utils.parsing import (
    clean_step_content,
    clean_thought_content,
    extract_confidence,
    parse_bullets,
    parse_labeled,
    truncate,
)


def _thought(content: str, confidence: float = 0.8, *tags: str, sequence: int = 1) -> Thought:
    return Thought(sequence=sequence, content=content, confidence=confidence, tags=tags)


class TestKeyFindings:
    """Test key finding extraction."""

    def test_explicit_findings_need_confidence(self) -> None:
        thoughts = [
            _thought("finding: the index is unused", 0.9),
            _thought("insight: weak signal", 0.5),
        ]
        assert extract_key_findings(thoughts) == ["finding: the index is unused"]

    def test_best_per_category(self) -> None:
        thoughts = [
            _thought("Scope is billing only", 0.6, "analytical", "definition"),
            _thought("Scope is billing and invoicing", 0.9, "analytical", "definition"),
            _thought("Regulated industry", 0.7, "analytical", "context"),
        ]
        findings = extract_key_findings(thoughts)

        assert findings == [
            "definition: Scope is billing and invoicing...",
            "context: Regulated industry...",
        ]


class TestAssumptions:
    """Test assumption extraction."""

    def test_only_assumption_thoughts(self) -> None:
        thoughts = [
            _thought(
                "We assume traffic is flat\nUnrelated line\n given that budgets are fixed",
                0.7,
                "assumptions",
                "meta-analysis",
            ),
            _thought("We assume nothing here", 0.7, "analytical"),
        ]
        assert extract_assumptions(thoughts) == [
            "We assume traffic is flat",
            "given that budgets are fixed",
        ]


class TestEvidenceQuality:
    """Test evidence grading."""

    def test_insufficient(self) -> None:
        assert assess_evidence_quality([_thought("Plain text")]) == EvidenceQuality.INSUFFICIENT

    def test_strong(self) -> None:
        thoughts = [_thought("Data shows a drop and research indicates a cause")]
        assert assess_evidence_quality(thoughts) == EvidenceQuality.STRONG

    def test_moderate(self) -> None:
        thoughts = [_thought("This is likely, and it appears so. Data shows a drop")]
        assert assess_evidence_quality(thoughts) == EvidenceQuality.MODERATE

    def test_weak(self) -> None:
        thoughts = [_thought("It might be the cache, or perhaps the network")]
        assert assess_evidence_quality(thoughts) == EvidenceQuality.WEAK


class TestRisksAndOpportunities:
    """Test keyword windows."""

    def test_risks(self) -> None:
        thoughts = [_thought("There is a real risk of data loss during migration")]
        risks = identify_risk_factors(thoughts)

        assert risks == ["There is a real risk of data loss during migration"]

    def test_tagged_thought_without_terms(self) -> None:
        thoughts = [_thought("Potential for outages", 0.7, "analytical", "risks")]
        assert identify_risk_factors(thoughts) == ["Potential for outages"]

    def test_opportunities(self) -> None:
        thoughts = [_thought("A clear opportunity to consolidate vendors")]
        assert identify_opportunities(thoughts) == ["A clear opportunity to consolidate vendors"]

    def test_no_match(self) -> None:
        assert identify_risk_factors([_thought("All calm")]) == []


class TestReasoningChains:
    """Test reasoning text builders."""

    def test_empty_chain(self) -> None:
        manager = ThoughtManager("Why is the build slow today?")
        assert build_reasoning_chain(manager.session) == "No reasoning chain available."

    def test_chain_marks_revisions(self) -> None:
        manager = ThoughtManager("Why is the build slow today?")
        manager.add_thought("Cache misses", 0.5)
        manager.add_thought("Cache was wiped", 0.9, is_revision=True, revises_sequence=1)
        chain = build_reasoning_chain(manager.session)

        assert "→ Cache misses [50%]" in chain
        assert "↻ Cache was wiped [90%]" in chain
        assert "- Revisions: 1" in chain
        assert "- Average confidence: 70%" in chain

    def test_group_by_category(self) -> None:
        thoughts = [
            _thought("a", 0.7, "analytical", "context"),
            _thought("b", 0.7, "initial"),
        ]
        groups = group_by_category(thoughts)
        assert list(groups) == ["context", "general"]

    def test_analytical_reasoning(self) -> None:
        manager = ThoughtManager("Assess the vendor migration plan")
        manager.add_thought("Scope it", tags=("analytical", "definition"))
        text = build_analytical_reasoning(manager.session)

        assert text.startswith("Analytical Reasoning Process:")
        assert "DEFINITION:\n• Scope it" in text

    def test_solution_reasoning(self) -> None:
        manager = ThoughtManager("Reduce checkout latency")
        manager.add_thought("Add caching", 0.8, tags=("solution_candidate", "iteration_1"))
        hypothesis = manager.add_hypothesis("Caching helps")
        manager.test_hypothesis(hypothesis.id, HypothesisResult.CONFIRMED)
        manager.add_hypothesis("Sharding helps")
        text = build_solution_reasoning(manager.session)

        assert "SOLUTION CANDIDATES (1):" in text
        assert "1. Add caching [80%]" in text
        assert "• Caching helps → CONFIRMED" in text
        assert "• Sharding helps → NOT_TESTED" in text


class TestParsing:
    """Test response parsing helpers."""

    def test_parse_labeled(self) -> None:
        content = (
            "Preamble ignored\n"
            "ANSWER: Use a queue\n"
            "because it smooths spikes\n"
            "RISKS:\n"
            "- Backlog growth\n"
            "* Ordering\n"
        )
        parsed = parse_labeled(content, ["ANSWER", "RISKS"])

        assert parsed.get("ANSWER") == "Use a queue because it smooths spikes"
        assert parsed.bullets("RISKS") == ["Backlog growth", "Ordering"]
        assert parsed.get("MISSING", "default") == "default"
        assert parsed.all_bullets() == ["Backlog growth", "Ordering"]

    def test_number(self) -> None:
        parsed = parse_labeled("CONFIDENCE: 0.85\nOTHER: high", ["CONFIDENCE", "OTHER"])
        assert parsed.number("CONFIDENCE", 0.5) == 0.85
        assert parsed.number("OTHER", 0.5) == 0.5

    def test_parse_bullets_limit(self) -> None:
        assert parse_bullets("- a\n- b\nnot\n- c", limit=2) == ["a", "b"]

    def test_extract_confidence(self) -> None:
        assert extract_confidence("Done [Confidence: 0.75]") == 0.75
        assert extract_confidence("Done [confidence: 3]") == 1.0
        assert extract_confidence("Done") is None

    def test_clean_thought_content(self) -> None:
        content = "Thought #3: The queue backs up [Confidence: 0.7]"
        assert clean_thought_content(content) == "The queue backs up"

    def test_clean_step_content(self) -> None:
        content = "Your Context Analysis analysis: - The market is shrinking"
        assert clean_step_content(content, "Context Analysis") == "The market is shrinking"

    def test_truncate(self) -> None:
        assert truncate("short", 10) == "short"
        assert truncate("a" * 12, 10) == "a" * 10 + "..."
