from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Coroutine, ParamSpec, TypeVar, cast

from tenacity import (
    RetryCallState,
    after_log,
    before_sleep_log,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from .exceptions import TransientError

P = ParamSpec("P")
T = TypeVar("T")


class wait_retry_after(wait_base):
    """Wait the ``retry_after`` carried by the failure, else fall back.

    Rate-limited responses tell the caller how long to back off; anything
    else uses ``fallback``. The hinted wait is clamped to ``[0, max_wait]``.
    """

    def __init__(self, fallback: wait_base, max_wait: float) -> None:
        self.fallback = fallback
        self.max_wait = max_wait

    def __call__(self, retry_state: RetryCallState) -> float:
        outcome = retry_state.outcome
        exc = outcome.exception() if outcome is not None else None
        retry_after = getattr(exc, "retry_after", None)
        if isinstance(retry_after, (int, float)) and not isinstance(retry_after, bool):
            return max(0.0, min(float(retry_after), self.max_wait))
        return self.fallback(retry_state)


def retry_transient(
    max_attempts: int = 3,
    base_wait: float = 0.5,
    max_wait: float = 10.0,
) -> Callable[[Callable[P, Coroutine[Any, Any, T]]], Callable[P, Coroutine[Any, Any, T]]]:
    """
    Decorator for retrying transient errors with exponential backoff.

    A ``retry_after`` attribute on the raised error (seconds, as sent with a
    429) replaces the backoff for that attempt.

    Args:
        max_attempts: Maximum number of attempts, including the first call.
        base_wait: Base wait time in seconds before exponential backoff.
        max_wait: Maximum wait time in seconds between retries.

    Returns:
        A decorator that wraps async functions with retry logic.

    Raises:
        The last TransientError once all attempts are exhausted.
    """
    logger = logging.getLogger(__name__)

    def decorator(
        func: Callable[P, Coroutine[Any, Any, T]],
    ) -> Callable[P, Coroutine[Any, Any, T]]:
        @wraps(func)
        @retry(
            stop=stop_after_attempt(max(1, max_attempts)),
            wait=wait_retry_after(
                wait_exponential(multiplier=base_wait, max=max_wait, exp_base=2),
                max_wait,
            ),
            retry=retry_if_exception_type(TransientError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            after=after_log(logger, logging.INFO),
            reraise=True,
        )
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            return cast(T, await func(*args, **kwargs))

        return wrapper

    return decorator


__all__ = ["retry_transient", "wait_retry_after"]
