"""
Bounded confirmation polling.

The cadence is a value object so callers (and tests) can swap the sleep
coroutine or shrink the budget without touching the loop itself.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_fixed

from core.logging_config import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class PollingPolicy:
    max_attempts: int = 5
    interval: float = 5.0
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.interval < 0:
            raise ValueError("interval must be >= 0")


DEFAULT_POLLING_POLICY = PollingPolicy()


@dataclass
class PollResult:
    done: bool
    attempts: int
    last: Optional[object]


async def poll_until(
    probe: Callable[[], Awaitable[T]],
    is_done: Callable[[T], bool],
    policy: PollingPolicy = DEFAULT_POLLING_POLICY,
) -> PollResult:
    """Call `probe` until `is_done(result)` or the attempt budget runs out.

    `policy.interval` is waited between consecutive probes. Exceptions raised
    by `probe` are not retried and propagate to the caller.
    """

    def _log_wait(state: RetryCallState) -> None:
        logger.info("poll_attempt_pending", attempt=state.attempt_number, next_in=policy.interval)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=wait_fixed(policy.interval),
        retry=retry_if_result(lambda result: not is_done(result)),
        sleep=policy.sleep,
        before_sleep=_log_wait,
        retry_error_callback=lambda state: state.outcome.result(),
    )
    attempts = 0
    last: Optional[T] = None
    async for attempt in retrying:
        with attempt:
            attempts = attempt.retry_state.attempt_number
            last = await probe()
        if not attempt.retry_state.outcome.failed:
            attempt.retry_state.set_result(last)
    return PollResult(done=last is not None and is_done(last), attempts=attempts, last=last)
