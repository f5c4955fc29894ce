"""Retry and timeout decorators for generator calls."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from functools import wraps
from typing import ParamSpec, TypeVar, cast

from loguru import logger
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from brain_mcp.utils.errors import GenerationError

P = ParamSpec("P")
T = TypeVar("T")


def _log_retry(retry_state: RetryCallState) -> None:
    """Log a failed attempt before tenacity sleeps."""
    name = getattr(retry_state.fn, "__name__", "call")
    outcome = retry_state.outcome
    error = outcome.exception() if outcome is not None else None
    logger.warning(f"Retry attempt {retry_state.attempt_number} for {name}: {error}")


def retry_with_backoff(
    max_attempts: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    retry_on: tuple[type[Exception], ...] | None = None,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Retry a sync or async callable with exponential backoff.

    tenacity detects coroutine functions itself, so one code path covers
    both. Each failed attempt is logged before the sleep, and the last
    exception is re-raised unchanged once attempts run out.

    Args:
        max_attempts: Total attempts including the first call.
        base_delay: First wait in seconds, doubled per attempt.
        max_delay: Upper bound on a single wait in seconds.
        retry_on: Exception types worth retrying, every ``Exception`` when None.

    """
    retry_exceptions = retry_on or (Exception,)

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        wrapped = retry(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=base_delay, min=base_delay, max=max_delay),
            retry=retry_if_exception_type(retry_exceptions),
            before_sleep=_log_retry,
            reraise=True,
        )(func)
        return cast(Callable[P, T], wrapped)

    return decorator


def with_timeout(timeout_seconds: float) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Bound an async callable in time.

    A call that overruns is cancelled and reported as ``GenerationError``
    so the control loop treats it like any other failed generation step.

    Raises:
        TypeError: Applied to a sync function.

    """

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        if not inspect.iscoroutinefunction(func):
            raise TypeError("with_timeout can only be applied to async functions")

        @wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            try:
                result = await asyncio.wait_for(
                    func(*args, **kwargs),
                    timeout=timeout_seconds,
                )
            except asyncio.TimeoutError as e:
                name = getattr(func, "__name__", "call")
                raise GenerationError(f"{name} timed out after {timeout_seconds}s") from e
            return cast(T, result)

        return cast(Callable[P, T], wrapper)

    return decorator
