"""
RetryScheduler - bounded exponential backoff for remote calls.

Only CONNECTIVITY failures are retried. DOMAIN and AUTHORIZATION failures
propagate on first occurrence.
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger

from cemetery.services.classifier import FailureKind, classify_failure
from cemetery.settings import global_settings

T = TypeVar("T")

RetryNotice = Callable[[int, int, float, Exception], None]


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff configuration; delays are in milliseconds."""

    max_attempts: int = 3
    base_delay_ms: float = 1000
    max_delay_ms: float = 10000

    @classmethod
    def from_settings(cls) -> "RetryPolicy":
        return cls(
            max_attempts=global_settings.retry_max_attempts,
            base_delay_ms=global_settings.retry_base_delay_ms,
            max_delay_ms=global_settings.retry_max_delay_ms,
        )


def backoff_delay_ms(attempt: int, policy: RetryPolicy) -> float:
    """Delay after the failed attempt ``attempt`` (0-based)."""
    return min(policy.base_delay_ms * 2**attempt, policy.max_delay_ms)


class RetryScheduler:
    """
    Wraps a remote call and retries transient failures.

    Usage:
        scheduler = RetryScheduler(on_retry=show_transient_notice)
        layout = await scheduler.execute(service.get_cemetery_layout)
    """

    def __init__(
        self,
        policy: RetryPolicy | None = None,
        on_retry: RetryNotice | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.policy = policy or RetryPolicy.from_settings()
        self.on_retry = on_retry
        self._sleep = sleep

    async def execute(
        self,
        operation: Callable[[], Awaitable[T]],
        max_attempts: int | None = None,
    ) -> T:
        """
        Run ``operation`` until it succeeds or the failure is final.

        Args:
            operation: Zero-argument coroutine factory, invoked once per attempt
            max_attempts: Override the policy's attempt bound

        Raises:
            The last failure, unchanged.
        """
        attempts = max(1, max_attempts or self.policy.max_attempts)

        attempt = 0
        while True:
            try:
                return await operation()
            except Exception as e:
                kind = classify_failure(e)
                if kind is not FailureKind.CONNECTIVITY:
                    logger.debug(f"Not retrying {kind.value} failure: {e}")
                    raise

                if attempt >= attempts - 1:
                    logger.error(f"Remote call failed after {attempts} attempts: {e}")
                    raise

                delay = backoff_delay_ms(attempt, self.policy)
                logger.warning(
                    f"Connectivity failure (attempt {attempt + 1}/{attempts}), "
                    f"retrying in {delay:.0f}ms: {e}"
                )
                if self.on_retry:
                    self.on_retry(attempt + 1, attempts, delay, e)
                await self._sleep(delay / 1000)
                attempt += 1
