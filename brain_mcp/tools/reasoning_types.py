"""Reasoning types and data structures.

This module contains the enums, session records, input models and result
records shared by the session manager, the control loop and the server.
Session records are plain dataclasses owned by ``ThoughtManager``; caller
inputs are Pydantic models so the MCP layer can validate them.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from brain_mcp.utils.complexity import ComplexityLevel
from brain_mcp.utils.parsing import truncate

# =============================================================================
# Enums
# =============================================================================


class ThinkingStyle(str, Enum):
    """Approach the generator is asked to take."""

    ANALYTICAL = "analytical"
    SYSTEMATIC = "systematic"
    CREATIVE = "creative"
    SCIENTIFIC = "scientific"
    CRITICAL = "critical"
    STRATEGIC = "strategic"
    INTUITIVE = "intuitive"
    COLLABORATIVE = "collaborative"


class HypothesisResult(str, Enum):
    """Verdict of a hypothesis test."""

    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    INCONCLUSIVE = "inconclusive"


class OutputDetail(str, Enum):
    """How much of the session a result carries."""

    SUMMARY = "summary"  # Answer and statistics only
    DETAILED = "detailed"  # Session record with thought content truncated
    COMPLETE = "complete"  # Everything


class ProcessingMode(str, Enum):
    """Processing modes sharing one control loop."""

    THINK = "think"
    ANALYZE = "analyze"
    SOLVE = "solve"
    REFLECT = "reflect"


class AnalysisDepth(str, Enum):
    SURFACE = "surface"
    DETAILED = "detailed"
    COMPREHENSIVE = "comprehensive"


class SolutionApproach(str, Enum):
    SYSTEMATIC = "systematic"
    CREATIVE = "creative"
    SCIENTIFIC = "scientific"
    ITERATIVE = "iterative"

    @property
    def thinking_style(self) -> ThinkingStyle:
        """Style used for the generator; iterative maps to analytical."""
        if self == SolutionApproach.ITERATIVE:
            return ThinkingStyle.ANALYTICAL
        return ThinkingStyle(self.value)


class ReflectionFocus(str, Enum):
    """Aspects a reflection pass can examine."""

    ASSUMPTIONS = "assumptions"
    LOGIC_GAPS = "logic_gaps"
    ALTERNATIVE_APPROACHES = "alternative_approaches"
    EVIDENCE_QUALITY = "evidence_quality"
    BIAS_DETECTION = "bias_detection"
    CONSISTENCY_CHECK = "consistency_check"
    COMPLETENESS = "completeness"
    FEASIBILITY = "feasibility"


class IssueSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class EvidenceQuality(str, Enum):
    STRONG = "strong"
    MODERATE = "moderate"
    WEAK = "weak"
    INSUFFICIENT = "insufficient"


# =============================================================================
# Caller inputs
# =============================================================================


class ProcessingOptions(BaseModel):
    """Per-session processing options."""

    max_thoughts: int = Field(default=10, ge=1, le=50, description="Thought budget")
    allow_revision: bool = Field(default=True, description="Allow revising earlier thoughts")
    enable_branching: bool = Field(default=True, description="Allow alternative branches")
    require_evidence: bool = Field(default=False, description="Run the hypothesis phase")
    confidence_threshold: float = Field(
        default=0.7, ge=0.0, le=1.0, description="Average confidence that ends the loop"
    )
    time_limit: int = Field(default=60, ge=5, le=300, description="Wall-clock limit in seconds")
    output_detail: OutputDetail = Field(default=OutputDetail.DETAILED)


class ThinkingContext(BaseModel):
    """Optional background handed to the generator."""

    domain: str | None = None
    background: str | None = None
    constraints: list[str] = Field(default_factory=list)
    requirements: list[str] = Field(default_factory=list)
    stakeholders: list[str] = Field(default_factory=list)
    timeframe: str | None = None
    resources: list[str] = Field(default_factory=list)

    def to_prompt(self) -> str:
        """Render the non-empty fields as prompt lines."""
        parts: list[str] = []
        if self.domain:
            parts.append(f"Domain: {self.domain}")
        if self.background:
            parts.append(f"Background: {self.background}")
        if self.constraints:
            parts.append(f"Constraints: {', '.join(self.constraints)}")
        if self.requirements:
            parts.append(f"Requirements: {', '.join(self.requirements)}")
        if self.stakeholders:
            parts.append(f"Stakeholders: {', '.join(self.stakeholders)}")
        if self.timeframe:
            parts.append(f"Timeframe: {self.timeframe}")
        if self.resources:
            parts.append(f"Resources: {', '.join(self.resources)}")
        return "\n".join(parts)


# =============================================================================
# Session records
# =============================================================================


def _short_id() -> str:
    return uuid.uuid4().hex[:8]


@dataclass(frozen=True)
class Thought:
    """A single step in the reasoning chain. Never modified once recorded."""

    sequence: int
    content: str
    confidence: float
    is_revision: bool = False
    revises_sequence: int | None = None
    branch_id: str | None = None
    branch_from_sequence: int | None = None
    tags: tuple[str, ...] = ()
    id: str = field(default_factory=_short_id)
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self, max_content: int | None = None) -> dict[str, Any]:
        """Convert to dictionary, optionally truncating the content."""
        return {
            "id": self.id,
            "sequence": self.sequence,
            "content": truncate(self.content, max_content) if max_content else self.content,
            "confidence": round(self.confidence, 3),
            "is_revision": self.is_revision,
            "revises_sequence": self.revises_sequence,
            "branch_id": self.branch_id,
            "branch_from_sequence": self.branch_from_sequence,
            "tags": list(self.tags),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class Branch:
    """An alternative line of thoughts forked from a main-line thought."""

    id: str
    name: str
    from_sequence: int
    thoughts: list[int] = field(default_factory=list)
    is_active: bool = True
    confidence: float = 0.5

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "from_sequence": self.from_sequence,
            "thoughts": list(self.thoughts),
            "is_active": self.is_active,
            "confidence": round(self.confidence, 3),
        }


@dataclass
class Hypothesis:
    """A testable claim with evidence and an eventual verdict."""

    statement: str
    confidence: float
    generated_at_sequence: int
    evidence: list[str] = field(default_factory=list)
    counter_evidence: list[str] = field(default_factory=list)
    tested: bool = False
    result: HypothesisResult | None = None
    id: str = field(default_factory=_short_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "statement": self.statement,
            "evidence": list(self.evidence),
            "counter_evidence": list(self.counter_evidence),
            "confidence": round(self.confidence, 3),
            "tested": self.tested,
            "result": self.result.value if self.result else None,
            "generated_at_sequence": self.generated_at_sequence,
        }


@dataclass
class Conclusion:
    """A terminal statement derived from the session."""

    statement: str
    supporting_thoughts: list[int]
    confidence: float
    reasoning: str
    alternatives: list[str] | None = None
    id: str = field(default_factory=_short_id)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "statement": self.statement,
            "supporting_thoughts": list(self.supporting_thoughts),
            "confidence": round(self.confidence, 3),
            "reasoning": self.reasoning,
            "alternatives": list(self.alternatives) if self.alternatives else None,
        }


@dataclass
class SessionMetadata:
    """Bookkeeping kept in step with the session's lists."""

    start_time: datetime
    thinking_style: ThinkingStyle
    complexity: ComplexityLevel
    domain: str | None = None
    end_time: datetime | None = None
    total_duration: float | None = None  # seconds
    revisions_count: int = 0
    branches_count: int = 0
    hypotheses_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "total_duration": self.total_duration,
            "thinking_style": self.thinking_style.value,
            "complexity": self.complexity.value,
            "domain": self.domain,
            "revisions_count": self.revisions_count,
            "branches_count": self.branches_count,
            "hypotheses_count": self.hypotheses_count,
        }


@dataclass
class ReasoningSession:
    """Aggregate root for one reasoning run."""

    id: str
    problem: str
    thinking_style: ThinkingStyle
    options: ProcessingOptions
    metadata: SessionMetadata
    context: ThinkingContext | None = None
    thoughts: list[Thought] = field(default_factory=list)
    branches: list[Branch] = field(default_factory=list)
    hypotheses: list[Hypothesis] = field(default_factory=list)
    conclusions: list[Conclusion] = field(default_factory=list)
    current_sequence: int = 0
    total_thoughts_estimate: int = 10

    def to_dict(self, max_content: int | None = None) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization.

        Args:
            max_content: Truncate thought content to this many characters.

        """
        return {
            "id": self.id,
            "problem": self.problem,
            "thinking_style": self.thinking_style.value,
            "options": self.options.model_dump(mode="json"),
            "context": self.context.model_dump(mode="json") if self.context else None,
            "thoughts": [t.to_dict(max_content) for t in self.thoughts],
            "branches": [b.to_dict() for b in self.branches],
            "hypotheses": [h.to_dict() for h in self.hypotheses],
            "conclusions": [c.to_dict() for c in self.conclusions],
            "current_sequence": self.current_sequence,
            "total_thoughts_estimate": self.total_thoughts_estimate,
            "metadata": self.metadata.to_dict(),
        }


# =============================================================================
# Results
# =============================================================================


@dataclass(frozen=True, slots=True)
class ProcessingInfo:
    """Statistics of one processing run."""

    total_thoughts: int
    processing_time: float  # seconds
    revisions_used: int
    branches_explored: int
    hypotheses_tested: int
    final_confidence: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_thoughts": self.total_thoughts,
            "processing_time": round(self.processing_time, 3),
            "revisions_used": self.revisions_used,
            "branches_explored": self.branches_explored,
            "hypotheses_tested": self.hypotheses_tested,
            "final_confidence": round(self.final_confidence, 3),
        }


@dataclass
class ReasoningResult:
    """Result of a think run; base for the analyze and solve results."""

    mode: ProcessingMode
    session: ReasoningSession
    final_answer: str
    confidence: float
    reasoning: str
    recommendations: list[str]
    next_steps: list[str]
    processing_info: ProcessingInfo

    def _extras(self) -> dict[str, Any]:
        return {}

    def to_dict(self, detail: OutputDetail | None = None) -> dict[str, Any]:
        """Convert to dictionary sized by ``detail``.

        Defaults to the session's own ``output_detail`` option.
        """
        detail = detail or self.session.options.output_detail
        data: dict[str, Any] = {
            "mode": self.mode.value,
            "final_answer": self.final_answer,
            "confidence": round(self.confidence, 3),
            "recommendations": list(self.recommendations),
            "next_steps": list(self.next_steps),
            "processing_info": self.processing_info.to_dict(),
        }
        data.update(self._extras())
        if detail == OutputDetail.SUMMARY:
            return data

        data["reasoning"] = self.reasoning
        max_content = 200 if detail == OutputDetail.DETAILED else None
        data["thought_process"] = self.session.to_dict(max_content)
        return data


@dataclass
class AnalysisResult(ReasoningResult):
    """Result of an analyze run."""

    key_findings: list[str] = field(default_factory=list)
    assumptions: list[str] = field(default_factory=list)
    evidence_quality: EvidenceQuality = EvidenceQuality.INSUFFICIENT
    risk_factors: list[str] = field(default_factory=list)
    opportunities: list[str] = field(default_factory=list)

    def _extras(self) -> dict[str, Any]:
        return {
            "key_findings": list(self.key_findings),
            "assumptions": list(self.assumptions),
            "evidence_quality": self.evidence_quality.value,
            "risk_factors": list(self.risk_factors),
            "opportunities": list(self.opportunities),
        }


@dataclass
class SolutionResult(ReasoningResult):
    """Result of a solve run."""

    proposed_solution: str = ""
    implementation_steps: list[str] = field(default_factory=list)
    potential_obstacles: list[str] = field(default_factory=list)
    success_criteria: list[str] = field(default_factory=list)
    test_plan: list[str] = field(default_factory=list)
    fallback_options: list[str] = field(default_factory=list)

    def _extras(self) -> dict[str, Any]:
        return {
            "proposed_solution": self.proposed_solution,
            "implementation_steps": list(self.implementation_steps),
            "potential_obstacles": list(self.potential_obstacles),
            "success_criteria": list(self.success_criteria),
            "test_plan": list(self.test_plan),
            "fallback_options": list(self.fallback_options),
        }


@dataclass
class ReflectionIssue:
    """One problem found while reflecting on an analysis."""

    focus: ReflectionFocus
    issue: str
    severity: IssueSeverity
    suggestion: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.focus.value,
            "description": self.issue,
            "severity": self.severity.value,
            "suggestion": self.suggestion,
        }


@dataclass
class ReflectionResult:
    """Result of a reflect run."""

    original_analysis: str
    revised_analysis: str | None
    identified_issues: list[ReflectionIssue]
    improvements: list[str]
    recommended_actions: list[str]
    confidence: float
    processing_time: float

    def to_dict(self, detail: OutputDetail = OutputDetail.DETAILED) -> dict[str, Any]:
        data: dict[str, Any] = {
            "mode": ProcessingMode.REFLECT.value,
            "identified_issues": [issue.to_dict() for issue in self.identified_issues],
            "improvements": list(self.improvements),
            "recommended_actions": list(self.recommended_actions),
            "confidence": round(self.confidence, 3),
            "processing_time": round(self.processing_time, 3),
        }
        if detail != OutputDetail.SUMMARY:
            data["revised_analysis"] = self.revised_analysis
        if detail == OutputDetail.COMPLETE:
            data["original_analysis"] = self.original_analysis
        return data
