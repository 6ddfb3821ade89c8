"""Bounded exponential-backoff retry for outbound HTTP calls.

Only throttling (HTTP 429 or an explicit UpstreamThrottled) and
network-level failures are retried. Any other response is handed back
to the caller on the first attempt.
"""

import asyncio
import functools
import logging
import random
from dataclasses import dataclass
from typing import Awaitable, Callable, FrozenSet, Optional

import httpx

from gasreport.errors import UpstreamError, UpstreamThrottled

logger = logging.getLogger(__name__)

RequestFn = Callable[[], Awaitable[httpx.Response]]
SleepFn = Callable[[float], Awaitable[None]]

NETWORK_ERRORS = (httpx.TransportError, asyncio.TimeoutError)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    base_delay: float = 1.0
    max_jitter: float = 0.5
    retriable_statuses: FrozenSet[int] = frozenset({429})
    # Hard cap on a single attempt, on top of the HTTP client's own timeout
    attempt_timeout: Optional[float] = None

    def delay_for(self, attempt: int, jitter: float = 0.0) -> float:
        """Wait before the attempt after `attempt` (0-based)."""
        return self.base_delay * (2 ** attempt) + jitter


async def call_with_retry(
    request: RequestFn,
    policy: Optional[RetryPolicy] = None,
    sleep: SleepFn = asyncio.sleep,
    jitter: Optional[Callable[[], float]] = None,
) -> httpx.Response:
    """Execute `request`, retrying on throttling and network errors.

    Returns the first non-throttled response, whatever its status.
    Raises UpstreamError when throttling outlasts the attempt budget and
    re-raises the last network error when those outlast it.
    """
    policy = policy or RetryPolicy()
    if jitter is None:
        jitter = lambda: random.uniform(0, policy.max_jitter)  # noqa: E731
    attempts = max(1, policy.max_attempts)

    for attempt in range(attempts):
        last_attempt = attempt == attempts - 1
        try:
            if policy.attempt_timeout:
                response = await asyncio.wait_for(request(), policy.attempt_timeout)
            else:
                response = await request()
        except UpstreamThrottled as e:
            if last_attempt:
                raise UpstreamError(
                    f"External service throttled after {attempts} attempts: {e.message}",
                    upstream_status=429,
                ) from e
            reason = "throttled"
        except NETWORK_ERRORS as e:
            if last_attempt:
                logger.error(f"Outbound call failed after {attempts} attempts: {e!r}")
                raise
            reason = type(e).__name__
        else:
            if response.status_code not in policy.retriable_statuses:
                return response
            if last_attempt:
                raise UpstreamError(
                    f"External service throttled after {attempts} attempts "
                    f"(HTTP {response.status_code})",
                    upstream_status=response.status_code,
                )
            reason = f"HTTP {response.status_code}"

        delay = policy.delay_for(attempt, jitter())
        logger.warning(
            f"Outbound call {reason}; retrying in {delay:.2f}s "
            f"(attempt {attempt + 1}/{attempts})"
        )
        await sleep(delay)

    # Unreachable: the final attempt always returns or raises
    raise UpstreamError("Retry loop exited without a result")


def with_retry(policy: Optional[RetryPolicy] = None, sleep: SleepFn = asyncio.sleep):
    """Decorator form of call_with_retry for zero-argument-bound request coroutines."""

    def decorator(fn: Callable[..., Awaitable[httpx.Response]]):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs) -> httpx.Response:
            return await call_with_retry(
                lambda: fn(*args, **kwargs), policy=policy, sleep=sleep
            )

        return wrapper

    return decorator
