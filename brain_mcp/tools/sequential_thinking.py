"""Caller-driven sequential thinking.

The lighter variant of the brain tools: the caller writes every thought and
the server only records it, validates revisions and branches, and tracks
progress. Sessions live in a ``SessionRegistry`` across tool calls; the
host sweeps expired ones on its own schedule.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any

from loguru import logger

from brain_mcp.tools.reasoning_types import ProcessingOptions, Thought
from brain_mcp.tools.thought_manager import DEFAULT_THOUGHT_CONFIDENCE, ThoughtManager
from brain_mcp.utils.session import SessionRegistry


@dataclass(frozen=True, slots=True)
class SequentialStep:
    """Outcome of recording one caller thought."""

    session_id: str
    problem: str
    thought: Thought
    thought_number: int
    total_thoughts: int
    next_thought_needed: bool
    session_thought_count: int
    final_answer: str | None = None

    @property
    def progress_percent(self) -> int:
        return round(self.thought_number / max(self.total_thoughts, 1) * 100)

    @property
    def recorded_percent(self) -> int:
        return round(self.session_thought_count / max(self.total_thoughts, 1) * 100)

    @property
    def is_complete(self) -> bool:
        return not self.next_thought_needed

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_id": self.session_id,
            "current_thought": {
                "thought_number": self.thought_number,
                "sequence": self.thought.sequence,
                "thought": self.thought.content,
                "confidence": round(self.thought.confidence, 3),
                "is_revision": self.thought.is_revision,
                "revises_thought": self.thought.revises_sequence,
                "branch_id": self.thought.branch_id,
                "branch_from_thought": self.thought.branch_from_sequence,
                "next_thought_needed": self.next_thought_needed,
            },
            "progress": {
                "thought_number": self.thought_number,
                "total_thoughts": self.total_thoughts,
                "progress_percent": self.progress_percent,
                "recorded_thoughts": self.session_thought_count,
                "recorded_percent": self.recorded_percent,
            },
            "session": {
                "problem": self.problem,
                "total_thoughts": self.session_thought_count,
                "is_complete": self.is_complete,
                "final_answer": self.final_answer,
            },
        }


def summarize_session(manager: ThoughtManager) -> str:
    """Closing answer built from the recorded thoughts."""
    thoughts = manager.thoughts
    if not thoughts:
        return "No thoughts generated."
    revisions = manager.session.metadata.revisions_count
    return (
        f"Based on {len(thoughts)} thoughts ({revisions} revisions), "
        f"with average confidence of {manager.average_confidence() * 100:.0f}%:\n\n"
        f"{thoughts[-1].content}\n\n"
        "This conclusion represents the culmination of a systematic thinking process."
    )


class SequentialThinkingManager:
    """Records caller-supplied thoughts into registry-held sessions.

    Example:
        manager = SequentialThinkingManager()
        step = manager.add_thought(
            thought="List the failure modes first.",
            next_thought_needed=True,
            thought_number=1,
            total_thoughts=4,
            problem="Why do the nightly builds time out?",
        )
        manager.add_thought(..., session_id=step.session_id)

    """

    def __init__(
        self,
        registry: SessionRegistry[ThoughtManager] | None = None,
        *,
        max_thoughts_per_session: int = 1000,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._clock = clock or datetime.now
        self._registry = registry or SessionRegistry("thinking", clock=self._clock)
        self._max_thoughts = max_thoughts_per_session

    @property
    def registry(self) -> SessionRegistry[ThoughtManager]:
        return self._registry

    def active_sessions(self) -> int:
        return self._registry.count()

    def start(self, problem: str) -> str:
        """Open a session for ``problem`` and return its id."""
        session_id, _ = self._registry.create(
            lambda sid, _now: ThoughtManager(
                problem,
                options=ProcessingOptions(allow_revision=True, enable_branching=True),
                session_id=sid,
                clock=self._clock,
            )
        )
        logger.info(f"Started thinking session {session_id}")
        return session_id

    def get(self, session_id: str) -> ThoughtManager:
        return self._registry.get(session_id)

    def add_thought(
        self,
        *,
        thought: str,
        next_thought_needed: bool,
        thought_number: int,
        total_thoughts: int,
        session_id: str | None = None,
        problem: str | None = None,
        is_revision: bool = False,
        revises_thought: int | None = None,
        branch_id: str | None = None,
        branch_from_thought: int | None = None,
        confidence: float = DEFAULT_THOUGHT_CONFIDENCE,
    ) -> SequentialStep:
        """Record one thought, opening a session when only ``problem`` is given.

        A branch id seen for the first time creates the branch, anchored at
        ``branch_from_thought``; later thoughts on it may omit the anchor.
        A rejected thought leaves the session unchanged. When ``next_thought_needed`` is false the
        session is closed with a summary conclusion and finalized.

        Raises:
            ValueError: Neither session id nor problem given, or the session
                reached its thought limit.
            SessionNotFoundError: Unknown or expired session id.
            ThinkingError: Invalid revision or branch target, or the session
                was already finalized.

        """
        if not session_id:
            if not problem:
                raise ValueError("Either session_id or problem is required")
            session_id = self.start(problem)

        with self._registry.session(session_id) as manager:
            if manager.thought_count >= self._max_thoughts:
                raise ValueError(
                    f"Session {session_id} reached the limit of {self._max_thoughts} thoughts"
                )
            if branch_id is not None and branch_from_thought is None:
                existing = manager.get_branch(branch_id)
                if existing is not None:
                    branch_from_thought = existing.from_sequence

            recorded = manager.add_thought(
                thought,
                confidence,
                is_revision=is_revision,
                revises_sequence=revises_thought if is_revision else None,
                branch_id=branch_id,
                branch_from_sequence=branch_from_thought,
                tags=("sequential",),
                create_missing_branch=True,
            )
            manager.set_thoughts_estimate(total_thoughts)

            final_answer = None
            if not next_thought_needed:
                final_answer = summarize_session(manager)
                thoughts = manager.thoughts
                manager.add_conclusion(
                    final_answer,
                    [t.sequence for t in thoughts],
                    reasoning="Caller marked the final thought",
                    confidence=manager.average_confidence(),
                )
                manager.finalize()

            return SequentialStep(
                session_id=session_id,
                problem=manager.problem,
                thought=recorded,
                thought_number=thought_number,
                total_thoughts=total_thoughts,
                next_thought_needed=next_thought_needed,
                session_thought_count=manager.thought_count,
                final_answer=final_answer,
            )

    def sweep_expired(self, max_age: timedelta, now: datetime | None = None) -> list[str]:
        """Drop sessions older than ``max_age``."""
        removed = self._registry.sweep_expired(now or self._clock(), max_age)
        if removed:
            logger.info(f"Swept {len(removed)} expired thinking sessions")
        return removed
