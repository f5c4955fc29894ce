"""Property-based tests for session invariants.

Uses hypothesis to drive random operation sequences through the session
manager and check that the bookkeeping never drifts from the records.
"""

from __future__ import annotations

import orjson
from hypothesis import given, settings
from hypothesis import strategies as st

from brain_mcp.tools.orchestrator import select_revision_target, should_revise
from brain_mcp.tools.reasoning_types import (
    HypothesisResult,
    IssueSeverity,
    ProcessingOptions,
    ReflectionFocus,
    ReflectionIssue,
    Thought,
)
from brain_mcp.tools.reflection import reflection_confidence
from brain_mcp.tools.thought_manager import ThoughtManager
from brain_mcp.utils.errors import ThinkingError
from brain_mcp.utils.parsing import clamp

# =============================================================================
# Strategy Definitions
# =============================================================================

confidence_strategy = st.floats(min_value=-1.0, max_value=2.0, allow_nan=False)

# (operation, argument, confidence); arguments may point at missing thoughts
operation_strategy = st.tuples(
    st.sampled_from(["thought", "revision", "branch", "branch_thought", "hypothesis", "test"]),
    st.integers(min_value=0, max_value=12),
    confidence_strategy,
)

thought_list_strategy = st.lists(
    st.tuples(st.floats(min_value=0.0, max_value=1.0, allow_nan=False), st.booleans()),
    min_size=0,
    max_size=12,
)


def _apply(manager: ThoughtManager, operation: str, arg: int, confidence: float) -> None:
    if operation == "thought":
        manager.add_thought("step", confidence)
    elif operation == "revision":
        manager.add_thought("fix", confidence, is_revision=True, revises_sequence=arg)
    elif operation == "branch":
        manager.create_branch(arg, f"branch {arg}", "start")
    elif operation == "branch_thought":
        branches = manager.session.branches
        if branches:
            branch = branches[arg % len(branches)]
            manager.add_thought(
                "alt", confidence, branch_id=branch.id, branch_from_sequence=branch.from_sequence
            )
    elif operation == "hypothesis":
        manager.add_hypothesis("claim", confidence=confidence)
    else:
        hypotheses = manager.session.hypotheses
        if hypotheses:
            result = list(HypothesisResult)[arg % 3]
            manager.test_hypothesis(hypotheses[arg % len(hypotheses)].id, result)


def _thoughts(shape: list[tuple[float, bool]]) -> list[Thought]:
    thoughts: list[Thought] = []
    for sequence, (confidence, revision) in enumerate(shape, start=1):
        is_revision = revision and sequence > 1
        thoughts.append(
            Thought(
                sequence=sequence,
                content=f"t{sequence}",
                confidence=confidence,
                is_revision=is_revision,
                revises_sequence=sequence - 1 if is_revision else None,
            )
        )
    return thoughts


class TestSessionInvariants:
    """Counters, sequences and bounds hold after any operation sequence."""

    @given(operations=st.lists(operation_strategy, max_size=30))
    @settings(max_examples=50, deadline=None)
    def test_bookkeeping_matches_records(
        self, operations: list[tuple[str, int, float]]
    ) -> None:
        manager = ThoughtManager(
            "Property-based session", options=ProcessingOptions(max_thoughts=50)
        )
        for operation, arg, confidence in operations:
            try:
                _apply(manager, operation, arg, confidence)
            except ThinkingError:
                pass

        session = manager.session
        metadata = session.metadata
        assert [t.sequence for t in session.thoughts] == list(
            range(1, len(session.thoughts) + 1)
        )
        assert session.current_sequence == len(session.thoughts)
        assert metadata.revisions_count == sum(1 for t in session.thoughts if t.is_revision)
        assert metadata.branches_count == len(session.branches)
        assert metadata.hypotheses_count == len(session.hypotheses)
        assert all(0.0 <= t.confidence <= 1.0 for t in session.thoughts)
        assert all(0.0 <= h.confidence <= 1.0 for h in session.hypotheses)
        for thought in session.thoughts:
            if thought.is_revision:
                assert thought.revises_sequence is not None
                assert thought.revises_sequence < thought.sequence
            if thought.branch_id is not None:
                branch = manager.get_branch(thought.branch_id)
                assert branch is not None
                assert thought.sequence in branch.thoughts
                assert branch.from_sequence < thought.sequence

    @given(
        operations=st.lists(operation_strategy, max_size=30),
        allow_revision=st.booleans(),
        enable_branching=st.booleans(),
    )
    @settings(max_examples=50, deadline=None)
    def test_serialized_counts_match_metadata(
        self,
        operations: list[tuple[str, int, float]],
        allow_revision: bool,
        enable_branching: bool,
    ) -> None:
        manager = ThoughtManager(
            "Property-based session",
            options=ProcessingOptions(
                max_thoughts=50,
                allow_revision=allow_revision,
                enable_branching=enable_branching,
            ),
        )
        for operation, arg, confidence in operations:
            try:
                _apply(manager, operation, arg, confidence)
            except ThinkingError:
                pass

        data = orjson.loads(orjson.dumps(manager.finalize().to_dict(), default=str))
        metadata = data["metadata"]
        assert metadata["revisions_count"] == sum(1 for t in data["thoughts"] if t["is_revision"])
        assert metadata["branches_count"] == len(data["branches"])
        assert metadata["hypotheses_count"] == len(data["hypotheses"])
        branch_members = sorted(s for b in data["branches"] for s in b["thoughts"])
        assert branch_members == sorted(
            t["sequence"] for t in data["thoughts"] if t["branch_id"] is not None
        )
        if not enable_branching:
            assert data["branches"] == []
            assert metadata["branches_count"] == 0
        if not allow_revision:
            assert metadata["revisions_count"] == 0


class TestRevisionPolicy:
    """Revision choice properties."""

    @given(shape=thought_list_strategy)
    @settings(max_examples=100, deadline=None)
    def test_target_is_never_a_revision_or_revised(
        self, shape: list[tuple[float, bool]]
    ) -> None:
        thoughts = _thoughts(shape)
        target = select_revision_target(thoughts)
        revised = {t.revises_sequence for t in thoughts if t.is_revision}

        if target is None:
            assert all(t.is_revision or t.sequence in revised for t in thoughts)
        else:
            assert not target.is_revision
            assert target.sequence not in revised
            eligible = [t for t in thoughts if not t.is_revision and t.sequence not in revised]
            assert target.confidence == min(t.confidence for t in eligible)

    @given(shape=thought_list_strategy)
    @settings(max_examples=100, deadline=None)
    def test_no_revision_right_after_a_revision(self, shape: list[tuple[float, bool]]) -> None:
        thoughts = _thoughts(shape)
        if should_revise(thoughts, allow_revision=True):
            assert len(thoughts) >= 3
            assert not any(t.is_revision for t in thoughts[-2:])
        assert not should_revise(thoughts, allow_revision=False)


class TestReflectionConfidence:
    """Reflection confidence stays within its bounds."""

    @given(
        severities=st.lists(st.sampled_from(list(IssueSeverity)), max_size=10),
        improvements=st.lists(st.text(min_size=1, max_size=10), max_size=3),
    )
    @settings(max_examples=100, deadline=None)
    def test_bounded(self, severities: list[IssueSeverity], improvements: list[str]) -> None:
        issues = [
            ReflectionIssue(ReflectionFocus.ASSUMPTIONS, "issue", severity, "fix")
            for severity in severities
        ]
        assert 0.1 <= reflection_confidence(issues, improvements) <= 1.0

    @given(severities=st.lists(st.sampled_from(list(IssueSeverity)), max_size=10))
    @settings(max_examples=50, deadline=None)
    def test_improvements_never_lower_confidence(self, severities: list[IssueSeverity]) -> None:
        issues = [
            ReflectionIssue(ReflectionFocus.LOGIC_GAPS, "issue", severity, "fix")
            for severity in severities
        ]
        assert reflection_confidence(issues, ["improve"]) >= reflection_confidence(issues, [])


class TestClamp:
    """Clamp properties."""

    @given(value=st.floats(allow_nan=False, allow_infinity=True))
    def test_within_bounds(self, value: float) -> None:
        assert 0.0 <= clamp(value) <= 1.0
