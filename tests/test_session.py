"""Unit tests for SessionRegistry."""

from __future__ import annotations

import re
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta

import pytest

from brain_mcp.utils.errors import SessionNotFoundError
from brain_mcp.utils.session import SessionRegistry, generate_session_id
from tests.conftest import FakeClock


@dataclass
class MockState:
    """Mock state object for testing."""

    session_id: str
    value: str = ""


def _factory(value: str = "") -> object:
    return lambda sid, _now: MockState(session_id=sid, value=value)


class TestGenerateSessionId:
    """Tests for session id generation."""

    def test_format(self) -> None:
        now = datetime(2024, 1, 1, 12, 0, 0)
        session_id = generate_session_id("thinking", now)
        millis = int(now.timestamp() * 1000)
        assert re.fullmatch(rf"thinking_{millis}_[a-z0-9]{{7}}", session_id)


class TestSessionRegistryBasics:
    """Tests for basic registry operations."""

    def test_init_empty(self) -> None:
        assert SessionRegistry().count() == 0

    def test_create_registers(self) -> None:
        registry: SessionRegistry[MockState] = SessionRegistry("thinking")
        session_id, state = registry.create(_factory("hello"))

        assert session_id.startswith("thinking_")
        assert state.session_id == session_id
        assert registry.exists(session_id)
        assert registry.get(session_id).value == "hello"
        assert registry.count() == 1

    def test_factory_receives_clock_time(self, fake_clock: FakeClock) -> None:
        registry: SessionRegistry[datetime] = SessionRegistry(clock=fake_clock)
        _, created = registry.create(lambda _sid, now: now)
        assert created == datetime(2024, 1, 1, 12, 0, 0)

    def test_get_not_found(self) -> None:
        registry: SessionRegistry[MockState] = SessionRegistry()
        with pytest.raises(SessionNotFoundError) as exc_info:
            registry.get("nonexistent")
        assert exc_info.value.session_id == "nonexistent"

    def test_remove(self) -> None:
        registry: SessionRegistry[MockState] = SessionRegistry()
        session_id, state = registry.create(_factory())

        assert registry.remove(session_id) is state
        assert registry.remove(session_id) is None
        assert registry.count() == 0

    def test_session_context_manager(self) -> None:
        registry: SessionRegistry[MockState] = SessionRegistry()
        session_id, _ = registry.create(_factory())

        with registry.session(session_id) as state:
            state.value = "modified"

        assert registry.get(session_id).value == "modified"

    def test_session_context_manager_not_found(self) -> None:
        registry: SessionRegistry[MockState] = SessionRegistry()
        with pytest.raises(SessionNotFoundError):
            with registry.session("missing"):
                pass


class TestSweepExpired:
    """Tests for explicit expiry."""

    def test_removes_only_old_sessions(self, fake_clock: FakeClock) -> None:
        registry: SessionRegistry[MockState] = SessionRegistry(clock=fake_clock)
        old_id, _ = registry.create(_factory("old"))
        fake_clock.advance(minutes=45)
        new_id, _ = registry.create(_factory("new"))
        fake_clock.advance(minutes=30)

        removed = registry.sweep_expired(registry.now(), timedelta(hours=1))

        assert removed == [old_id]
        assert not registry.exists(old_id)
        assert registry.exists(new_id)

    def test_nothing_expired(self, fake_clock: FakeClock) -> None:
        registry: SessionRegistry[MockState] = SessionRegistry(clock=fake_clock)
        registry.create(_factory())
        assert registry.sweep_expired(fake_clock(), timedelta(minutes=1)) == []


class TestThreadSafety:
    """Tests for concurrent access."""

    def test_concurrent_creates(self) -> None:
        registry: SessionRegistry[MockState] = SessionRegistry()
        ids: list[str] = []
        lock = threading.Lock()

        def worker() -> None:
            for _ in range(50):
                session_id, _ = registry.create(_factory())
                with lock:
                    ids.append(session_id)

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(ids)) == 200
        assert registry.count() == 200
