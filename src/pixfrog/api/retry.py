"""
Bounded retry/backoff around unreliable Gemini calls.

Quota errors wait out a fixed cooldown, 503s wait a short delay, and
everything else fails fast. Attempts are strictly sequential and the
operation is re-run as-is.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from ..config import GENERATION_RETRIES, QUOTA_COOLDOWN_SECONDS, UNAVAILABLE_DELAY_SECONDS
from ..logging_utils import log_debug, log_retry, log_warning
from .exceptions import is_quota_error, is_unavailable_error

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class RetryDecision:
    """Outcome of classifying one failure."""

    retry: bool
    delay: float = 0.0
    reason: str = ""


FAIL_FAST = RetryDecision(retry=False, reason="not retryable")


class RetryPolicy:
    """
    Retry an async operation under a fixed budget.

    Args:
        retries: Number of retries allowed after the first attempt.
        quota_cooldown: Seconds to wait after a quota/429 failure.
        unavailable_delay: Seconds to wait after a 503.
        sleep: Awaitable sleep, injectable for tests. Defaults to asyncio.sleep.
    """

    def __init__(
        self,
        retries: int = GENERATION_RETRIES,
        quota_cooldown: float = QUOTA_COOLDOWN_SECONDS,
        unavailable_delay: float = UNAVAILABLE_DELAY_SECONDS,
        sleep: Optional[SleepFunc] = None,
    ):
        if retries < 0:
            raise ValueError("retries must be >= 0")
        self.retries = retries
        self.quota_cooldown = quota_cooldown
        self.unavailable_delay = unavailable_delay
        self._sleep = sleep or asyncio.sleep

    def with_retries(self, retries: int) -> "RetryPolicy":
        """Copy of this policy with a different budget, sharing timings and sleep."""
        return RetryPolicy(
            retries=retries,
            quota_cooldown=self.quota_cooldown,
            unavailable_delay=self.unavailable_delay,
            sleep=self._sleep,
        )

    def classify(self, error: BaseException) -> RetryDecision:
        """Decide whether a failure is worth waiting out."""
        if is_quota_error(error):
            return RetryDecision(True, self.quota_cooldown, "quota exceeded")
        if is_unavailable_error(error):
            return RetryDecision(True, self.unavailable_delay, "service unavailable")
        return FAIL_FAST

    async def run(self, operation: Callable[[], Awaitable[T]], context: str = "operation") -> T:
        """
        Await `operation()` until it succeeds, fails fast, or the budget runs out.

        The last error is re-raised unchanged.
        """
        remaining = self.retries
        attempt = 0
        while True:
            attempt += 1
            try:
                return await operation()
            except Exception as error:
                decision = self.classify(error)
                if not decision.retry:
                    log_debug(f"{context}: attempt {attempt} failed, not retrying ({error})")
                    raise
                if remaining <= 0:
                    log_warning(f"{context}: {decision.reason}, retry budget exhausted after {attempt} attempt(s)")
                    raise
                remaining -= 1
                log_retry(context, decision.reason, decision.delay, remaining)
                await self._sleep(decision.delay)
