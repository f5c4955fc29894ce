"""Thread-safe session registry with an injected clock.

Holds sessions that outlive a single tool call (the sequential thinking
tool). Expiry is explicit: the host calls ``sweep_expired`` on its own
schedule, the registry never starts timers of its own.
"""

from __future__ import annotations

import random
import string
import threading
from collections.abc import Callable, Generator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Generic, TypeVar

from brain_mcp.utils.errors import SessionNotFoundError

T = TypeVar("T")

Clock = Callable[[], datetime]


@dataclass
class _Entry(Generic[T]):
    state: T
    created_at: datetime


def generate_session_id(prefix: str, now: datetime) -> str:
    """Build an id of the form ``<prefix>_<epoch ms>_<7 random chars>``."""
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=7))  # nosec B311
    return f"{prefix}_{int(now.timestamp() * 1000)}_{suffix}"


class SessionRegistry(Generic[T]):
    """Thread-safe store of sessions keyed by id.

    Provides:
    - Thread-safe session storage with RLock
    - ``get()`` lookup raising SessionNotFoundError
    - ``@contextmanager`` helper for atomic session operations
    - ``sweep_expired()`` driven by the caller's clock

    Usage:
        registry: SessionRegistry[ThoughtManager] = SessionRegistry("thinking")
        session_id, manager = registry.create(lambda sid, now: build(sid))
        with registry.session(session_id) as manager:
            manager.add_thought("...")
    """

    def __init__(self, prefix: str = "session", clock: Clock | None = None) -> None:
        """Initialize an empty registry.

        Args:
            prefix: Prefix for generated session ids.
            clock: Time source, ``datetime.now`` when omitted.

        """
        self._prefix = prefix
        self._clock = clock or datetime.now
        self._sessions: dict[str, _Entry[T]] = {}
        self._lock = threading.RLock()

    def now(self) -> datetime:
        """Current time according to the injected clock."""
        return self._clock()

    def create(self, factory: Callable[[str, datetime], T]) -> tuple[str, T]:
        """Create and register a new session.

        Args:
            factory: Called with the new session id and creation time,
                returns the session state.

        Returns:
            Tuple of (session_id, state).

        """
        now = self._clock()
        with self._lock:
            session_id = generate_session_id(self._prefix, now)
            while session_id in self._sessions:
                session_id = generate_session_id(self._prefix, now)
            state = factory(session_id, now)
            self._sessions[session_id] = _Entry(state=state, created_at=now)
        return session_id, state

    def get(self, session_id: str) -> T:
        """Get session state by id.

        Raises:
            SessionNotFoundError: If the session does not exist or was swept.

        """
        with self._lock:
            entry = self._sessions.get(session_id)
            if entry is None:
                raise SessionNotFoundError(session_id)
            return entry.state

    @contextmanager
    def session(self, session_id: str) -> Generator[T, None, None]:
        """Context manager for atomic session operations.

        Acquires lock, retrieves session, yields it, and releases lock
        even if an exception occurs.

        Raises:
            SessionNotFoundError: If session doesn't exist.

        """
        with self._lock:
            yield self.get(session_id)

    def exists(self, session_id: str) -> bool:
        with self._lock:
            return session_id in self._sessions

    def remove(self, session_id: str) -> T | None:
        """Remove a session, returning its state or None if absent."""
        with self._lock:
            entry = self._sessions.pop(session_id, None)
            return entry.state if entry else None

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def sweep_expired(self, now: datetime, max_age: timedelta) -> list[str]:
        """Remove sessions created more than ``max_age`` before ``now``.

        Args:
            now: Reference time, normally the host's clock reading.
            max_age: Maximum session age measured from creation.

        Returns:
            List of removed session IDs.

        Example:
            removed = registry.sweep_expired(datetime.now(), timedelta(hours=1))

        """
        cutoff = now - max_age
        with self._lock:
            stale_ids = [sid for sid, entry in self._sessions.items() if entry.created_at < cutoff]
            for session_id in stale_ids:
                del self._sessions[session_id]
        return stale_ids
