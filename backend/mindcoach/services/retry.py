"""Bounded retry with attempt-indexed linear backoff.

`with_retry` never raises for a failed call: it returns a RetryOutcome that
carries either the value or the last error, so each caller applies its own
failure policy (degrade, fall back, or surface).
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar

from mindcoach.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    attempts: int = 3
    base_delay: float = 1.0
    sleep: Callable[[float], Awaitable[Any]] = field(default=asyncio.sleep, compare=False)

    def delay_after(self, attempt: int) -> float:
        """Wait before the next try, after `attempt` (1-based) failed."""
        return self.base_delay * attempt


def default_policy() -> RetryPolicy:
    return RetryPolicy(
        attempts=settings.RETRY_ATTEMPTS,
        base_delay=settings.RETRY_BASE_DELAY_SECONDS,
    )


@dataclass
class RetryOutcome(Generic[T]):
    value: Optional[T] = None
    error: Optional[BaseException] = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        """Return the value or re-raise the last error."""
        if self.error is not None:
            raise self.error
        return self.value


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    label: str = "provider call",
) -> RetryOutcome[T]:
    """Call `fn` up to `policy.attempts` times; first success wins."""
    last_error: Optional[Exception] = None
    for attempt in range(1, policy.attempts + 1):
        try:
            value = await fn()
            return RetryOutcome(value=value, attempts=attempt)
        except Exception as e:
            last_error = e
            remaining = policy.attempts - attempt
            logger.warning(f"{label} failed (attempt {attempt}/{policy.attempts}, retries left: {remaining}): {e}")
            if remaining > 0:
                await policy.sleep(policy.delay_after(attempt))

    return RetryOutcome(error=last_error, attempts=policy.attempts)
