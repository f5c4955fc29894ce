"""Session manager for reasoning sessions.

``ThoughtManager`` owns exactly one ``ReasoningSession`` and is the only
code allowed to mutate it. Every append updates the matching metadata
counter in the same call, so the counters always equal the live counts.

Example:
    >>> manager = create_session("How should we shard the orders table?")
    >>> manager.add_thought("Start from the access patterns.", 0.7).sequence
    1
    >>> manager.needs_more_thoughts()
    True

"""

from __future__ import annotations

import copy
import uuid
from collections.abc import Callable, Iterable, Sequence
from datetime import datetime

from loguru import logger

from brain_mcp.tools.reasoning_types import (
    Branch,
    Conclusion,
    Hypothesis,
    HypothesisResult,
    ProcessingOptions,
    ReasoningSession,
    SessionMetadata,
    ThinkingContext,
    ThinkingStyle,
    Thought,
)
from brain_mcp.utils.complexity import classify_complexity
from brain_mcp.utils.errors import (
    BranchingDisabledError,
    HypothesisNotFoundError,
    InvalidBranchTargetError,
    InvalidRevisionError,
    SessionFinalizedError,
)
from brain_mcp.utils.parsing import clamp

DEFAULT_THOUGHT_CONFIDENCE = 0.8
DEFAULT_HYPOTHESIS_CONFIDENCE = 0.5
BRANCH_START_CONFIDENCE = 0.6
CONFIRMED_BOOST = 0.3
REJECTED_PENALTY = 0.4


def _merge_tags(tags: Iterable[str], *extra: str) -> tuple[str, ...]:
    """Ordered, de-duplicated tag tuple."""
    return tuple(dict.fromkeys([*tags, *extra]))


class ThoughtManager:
    """Owns one reasoning session and enforces its invariants.

    All operations are synchronous. Structural violations raise a
    ``ThinkingError`` subclass and leave the session untouched.
    """

    def __init__(
        self,
        problem: str,
        thinking_style: ThinkingStyle = ThinkingStyle.ANALYTICAL,
        context: ThinkingContext | None = None,
        options: ProcessingOptions | None = None,
        *,
        session_id: str | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """Create the session.

        Args:
            problem: Problem statement, immutable for the session.
            thinking_style: Style handed to the generator.
            context: Optional background.
            options: Processing options, defaults when omitted.
            session_id: Explicit id, a random hex id when omitted.
            clock: Time source, ``datetime.now`` when omitted.

        """
        self._clock = clock or datetime.now
        options = options or ProcessingOptions()
        complexity = classify_complexity(problem)

        self._session = ReasoningSession(
            id=session_id or uuid.uuid4().hex[:12],
            problem=problem,
            thinking_style=thinking_style,
            options=options,
            context=context,
            total_thoughts_estimate=options.max_thoughts,
            metadata=SessionMetadata(
                start_time=self._clock(),
                thinking_style=thinking_style,
                complexity=complexity.level,
                domain=context.domain if context else None,
            ),
        )
        self._finalized = False
        logger.debug(
            f"Session {self._session.id} created: style={thinking_style.value}, "
            f"complexity={complexity.level.value}, max_thoughts={options.max_thoughts}"
        )

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def session(self) -> ReasoningSession:
        """Live session record. Mutate only through this manager."""
        return self._session

    @property
    def session_id(self) -> str:
        return self._session.id

    @property
    def problem(self) -> str:
        return self._session.problem

    @property
    def thinking_style(self) -> ThinkingStyle:
        return self._session.thinking_style

    @property
    def options(self) -> ProcessingOptions:
        return self._session.options

    @property
    def context(self) -> ThinkingContext | None:
        return self._session.context

    @property
    def thoughts(self) -> list[Thought]:
        return list(self._session.thoughts)

    @property
    def thought_count(self) -> int:
        return len(self._session.thoughts)

    @property
    def current_sequence(self) -> int:
        return self._session.current_sequence

    @property
    def is_finalized(self) -> bool:
        return self._finalized

    def elapsed(self) -> float:
        """Seconds since the session started."""
        return (self._clock() - self._session.metadata.start_time).total_seconds()

    def get_branch(self, branch_id: str) -> Branch | None:
        return next((b for b in self._session.branches if b.id == branch_id), None)

    def get_thoughts(
        self,
        *,
        branch_id: str | None = None,
        tags: Sequence[str] | None = None,
        min_confidence: float | None = None,
        is_revision: bool | None = None,
    ) -> list[Thought]:
        """Filter thoughts. Tag filtering matches any of the given tags."""
        result = list(self._session.thoughts)
        if branch_id is not None:
            result = [t for t in result if t.branch_id == branch_id]
        if tags:
            wanted = set(tags)
            result = [t for t in result if wanted.intersection(t.tags)]
        if min_confidence is not None:
            result = [t for t in result if t.confidence >= min_confidence]
        if is_revision is not None:
            result = [t for t in result if t.is_revision == is_revision]
        return result

    def get_active_hypotheses(self) -> list[Hypothesis]:
        """Hypotheses not yet tested."""
        return [h for h in self._session.hypotheses if not h.tested]

    def get_tested_hypotheses(self) -> list[Hypothesis]:
        return [h for h in self._session.hypotheses if h.tested]

    def average_confidence(self) -> float:
        """Arithmetic mean of thought confidences, 0.0 with no thoughts."""
        thoughts = self._session.thoughts
        if not thoughts:
            return 0.0
        return sum(t.confidence for t in thoughts) / len(thoughts)

    def needs_more_thoughts(self) -> bool:
        """True while under budget and either unconfident or without a conclusion."""
        if self.thought_count >= self._session.options.max_thoughts:
            return False
        return (
            self.average_confidence() < self._session.options.confidence_threshold
            or not self._session.conclusions
        )

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def _ensure_open(self) -> None:
        if self._finalized:
            raise SessionFinalizedError(self._session.id)

    def set_thoughts_estimate(self, total: int) -> None:
        """Record the caller's estimate of how many thoughts the session needs."""
        self._ensure_open()
        self._session.total_thoughts_estimate = max(total, 1)

    def add_thought(
        self,
        content: str,
        confidence: float = DEFAULT_THOUGHT_CONFIDENCE,
        *,
        is_revision: bool = False,
        revises_sequence: int | None = None,
        branch_id: str | None = None,
        branch_from_sequence: int | None = None,
        tags: Iterable[str] = (),
        create_missing_branch: bool = False,
    ) -> Thought:
        """Append a thought with the next sequence number.

        All checks run before anything is written, so a rejected thought
        leaves the session exactly as it was.

        Args:
            content: Thought text.
            confidence: Confidence, clamped to [0, 1].
            is_revision: Whether this thought revises an earlier one.
            revises_sequence: Sequence of the revised thought.
            branch_id: Branch the thought belongs to.
            branch_from_sequence: Main-line thought the branch forked from.
            tags: Retrieval labels.
            create_missing_branch: Create an unknown ``branch_id`` anchored at
                ``branch_from_sequence`` instead of rejecting it.

        Returns:
            The recorded thought.

        Raises:
            InvalidRevisionError: Revision disallowed or target invalid.
            BranchingDisabledError: Branch fields on a session without branching.
            InvalidBranchTargetError: Partial branch fields, unknown branch,
                out-of-range anchor or an anchor other than the branch's own.
            SessionFinalizedError: Session already finalized.

        """
        self._ensure_open()
        session = self._session
        count = len(session.thoughts)
        extra_tags: list[str] = []

        if is_revision:
            if not session.options.allow_revision:
                raise InvalidRevisionError(
                    "Revisions are not allowed for this session",
                    {"revises_sequence": revises_sequence},
                )
            if revises_sequence is None:
                raise InvalidRevisionError("Revision requires revises_sequence")
            if revises_sequence < 1 or revises_sequence > count:
                raise InvalidRevisionError(
                    f"Cannot revise thought {revises_sequence}: only {count} thoughts exist",
                    {"revises_sequence": revises_sequence, "thought_count": count},
                )
            extra_tags.append("revision")
        else:
            revises_sequence = None

        branch: Branch | None = None
        if branch_id is not None or branch_from_sequence is not None:
            if not session.options.enable_branching:
                raise BranchingDisabledError({"branch_id": branch_id})
            if branch_id is None or branch_from_sequence is None:
                raise InvalidBranchTargetError(
                    "branch_id and branch_from_sequence must be given together",
                    {"branch_id": branch_id, "branch_from_sequence": branch_from_sequence},
                )
            if branch_from_sequence < 1 or branch_from_sequence > count:
                raise InvalidBranchTargetError(
                    f"Cannot branch from thought {branch_from_sequence}: "
                    f"only {count} thoughts exist",
                    {"branch_from_sequence": branch_from_sequence, "thought_count": count},
                )
            branch = self.get_branch(branch_id)
            if branch is None and not create_missing_branch:
                raise InvalidBranchTargetError(
                    f"Unknown branch: {branch_id}", {"branch_id": branch_id}
                )
            if branch is not None and branch.from_sequence != branch_from_sequence:
                raise InvalidBranchTargetError(
                    f"Branch {branch_id} forks from thought {branch.from_sequence}, "
                    f"not {branch_from_sequence}",
                    {
                        "branch_id": branch_id,
                        "branch_from_sequence": branch_from_sequence,
                        "branch_anchor": branch.from_sequence,
                    },
                )
            extra_tags.append("branch")

        if branch is None and branch_id is not None and branch_from_sequence is not None:
            branch = self._append_branch(branch_id, branch_id, branch_from_sequence)

        thought = Thought(
            sequence=session.current_sequence + 1,
            content=content,
            confidence=clamp(confidence),
            is_revision=is_revision,
            revises_sequence=revises_sequence,
            branch_id=branch_id,
            branch_from_sequence=branch_from_sequence,
            tags=_merge_tags(tags, *extra_tags),
            timestamp=self._clock(),
        )

        session.thoughts.append(thought)
        session.current_sequence = thought.sequence
        if is_revision:
            session.metadata.revisions_count += 1
        if branch is not None:
            branch.thoughts.append(thought.sequence)

        logger.debug(
            f"Thought {thought.sequence} added to {session.id} "
            f"(confidence={thought.confidence:.2f}, tags={list(thought.tags)})"
        )
        return thought

    def _append_branch(self, branch_id: str, name: str, from_sequence: int) -> Branch:
        branch = Branch(id=branch_id, name=name, from_sequence=from_sequence)
        self._session.branches.append(branch)
        self._session.metadata.branches_count += 1
        logger.debug(f"Branch {branch.id} ({name}) created from thought {from_sequence}")
        return branch

    def create_branch(
        self,
        from_sequence: int,
        name: str,
        initial_content: str | None = None,
        *,
        branch_id: str | None = None,
    ) -> Branch:
        """Fork a branch from an existing thought.

        Args:
            from_sequence: Main-line thought to fork from.
            name: Human-readable branch name.
            initial_content: Optional first thought recorded on the branch.
            branch_id: Explicit id, a random one when omitted.

        Raises:
            BranchingDisabledError: Branching disabled for the session.
            InvalidBranchTargetError: Anchor out of range or id taken.

        """
        self._ensure_open()
        session = self._session
        if not session.options.enable_branching:
            raise BranchingDisabledError({"from_sequence": from_sequence, "name": name})
        if from_sequence < 1 or from_sequence > session.current_sequence:
            raise InvalidBranchTargetError(
                f"Cannot branch from thought {from_sequence}: "
                f"current sequence is {session.current_sequence}",
                {"from_sequence": from_sequence, "current_sequence": session.current_sequence},
            )
        if branch_id is not None and self.get_branch(branch_id) is not None:
            raise InvalidBranchTargetError(
                f"Branch already exists: {branch_id}", {"branch_id": branch_id}
            )

        branch = self._append_branch(
            branch_id or f"branch_{uuid.uuid4().hex[:8]}", name, from_sequence
        )

        if initial_content:
            self.add_thought(
                initial_content,
                BRANCH_START_CONFIDENCE,
                branch_id=branch.id,
                branch_from_sequence=from_sequence,
                tags=("branch_start",),
            )
        return branch

    def add_hypothesis(
        self,
        statement: str,
        evidence: Iterable[str] = (),
        counter_evidence: Iterable[str] = (),
        confidence: float = DEFAULT_HYPOTHESIS_CONFIDENCE,
    ) -> Hypothesis:
        self._ensure_open()
        hypothesis = Hypothesis(
            statement=statement,
            confidence=clamp(confidence),
            generated_at_sequence=len(self._session.thoughts),
            evidence=list(evidence),
            counter_evidence=list(counter_evidence),
        )
        self._session.hypotheses.append(hypothesis)
        self._session.metadata.hypotheses_count += 1
        return hypothesis

    def test_hypothesis(
        self,
        hypothesis_id: str,
        result: HypothesisResult,
        additional_evidence: Iterable[str] | None = None,
    ) -> Hypothesis:
        """Record a verdict and adjust the hypothesis confidence.

        Confirmed adds 0.3 (capped at 1.0), rejected subtracts 0.4 (floored at
        0.0), inconclusive leaves it unchanged. Additional evidence goes to
        ``evidence`` when confirmed and ``counter_evidence`` when rejected.

        Raises:
            HypothesisNotFoundError: Unknown id.

        """
        self._ensure_open()
        hypothesis = next((h for h in self._session.hypotheses if h.id == hypothesis_id), None)
        if hypothesis is None:
            raise HypothesisNotFoundError(hypothesis_id)

        result = HypothesisResult(result)
        evidence = list(additional_evidence or ())
        hypothesis.tested = True
        hypothesis.result = result
        if result == HypothesisResult.CONFIRMED:
            hypothesis.confidence = min(hypothesis.confidence + CONFIRMED_BOOST, 1.0)
            hypothesis.evidence.extend(evidence)
        elif result == HypothesisResult.REJECTED:
            hypothesis.confidence = max(hypothesis.confidence - REJECTED_PENALTY, 0.0)
            hypothesis.counter_evidence.extend(evidence)
        return hypothesis

    def add_conclusion(
        self,
        statement: str,
        supporting_thoughts: Iterable[int],
        reasoning: str,
        confidence: float = DEFAULT_THOUGHT_CONFIDENCE,
        alternatives: Iterable[str] | None = None,
    ) -> Conclusion:
        self._ensure_open()
        conclusion = Conclusion(
            statement=statement,
            supporting_thoughts=list(dict.fromkeys(supporting_thoughts)),
            confidence=clamp(confidence),
            reasoning=reasoning,
            alternatives=list(alternatives) if alternatives is not None else None,
        )
        self._session.conclusions.append(conclusion)
        return conclusion

    def finalize(self) -> ReasoningSession:
        """Stamp end time and duration, then return a read-only snapshot.

        Calling it again returns a fresh snapshot of the same final state.
        """
        metadata = self._session.metadata
        if not self._finalized:
            metadata.end_time = self._clock()
            metadata.total_duration = (metadata.end_time - metadata.start_time).total_seconds()
            self._finalized = True
            logger.info(
                f"Session {self._session.id} finalized: {self.thought_count} thoughts, "
                f"{metadata.revisions_count} revisions, {metadata.branches_count} branches, "
                f"{metadata.hypotheses_count} hypotheses in {metadata.total_duration:.2f}s"
            )
        return copy.deepcopy(self._session)


def create_session(
    problem: str,
    thinking_style: ThinkingStyle = ThinkingStyle.ANALYTICAL,
    context: ThinkingContext | None = None,
    options: ProcessingOptions | None = None,
    *,
    clock: Callable[[], datetime] | None = None,
) -> ThoughtManager:
    """Create a session and return the manager that owns it."""
    return ThoughtManager(problem, thinking_style, context, options, clock=clock)
