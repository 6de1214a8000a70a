from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any, TypeVar

from tenacity import AsyncRetrying, RetryCallState, stop_after_attempt, wait_exponential

logger = logging.getLogger(__name__)

T = TypeVar("T")

RATE_LIMIT_MARKERS = ("rate limit", "quota", "429")


def is_rate_limit_error(error: BaseException) -> bool:
    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff: ``retries`` extra attempts after the first."""

    retries: int
    initial_delay: float
    max_delay: float
    factor: float = 2.0
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, compare=False)

    @property
    def max_attempts(self) -> int:
        return self.retries + 1


DESCRIBE_RETRY = RetryPolicy(retries=3, initial_delay=2.0, max_delay=15.0)
GENERATE_RETRY = RetryPolicy(retries=5, initial_delay=3.0, max_delay=30.0)


def _log_failed_attempt(label: str, policy: RetryPolicy) -> Callable[[RetryCallState], None]:
    def _before_sleep(state: RetryCallState) -> None:
        error = state.outcome.exception() if state.outcome else None
        kind = "rate-limit" if error is not None and is_rate_limit_error(error) else "terminal"
        logger.warning(
            "%s attempt %d failed (%s: %s). %d retries left.",
            label,
            state.attempt_number,
            kind,
            error,
            policy.max_attempts - state.attempt_number,
        )

    return _before_sleep


async def with_retry(operation: Callable[[], Awaitable[T]], policy: RetryPolicy, label: str = "call") -> T:
    """Run ``operation`` under ``policy`` and re-raise the last error when the budget runs out.

    Rate-limit and terminal errors are classified for the log line only; both
    go through the same attempt budget.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_exponential(multiplier=policy.initial_delay, max=policy.max_delay, exp_base=policy.factor),
        before_sleep=_log_failed_attempt(label, policy),
        sleep=policy.sleep,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await operation()
    raise AssertionError("unreachable")  # pragma: no cover
