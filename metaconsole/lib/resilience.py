"""Resilience utilities for metadata lookups.

Provides an opt-in retry helper for coroutines that call flaky metadata
sources (introspection queries against busy databases, rate-limited APIs).
The form engine never retries on its own; a provider opts in by wrapping
its calls.

Implementation: Uses tenacity library internally for battle-tested retry logic.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type, TypeVar

import tenacity
from tenacity.wait import wait_base

logger = logging.getLogger(__name__)

__all__ = ["RetryConfig", "retry_async"]

T = TypeVar("T")


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior."""

    max_attempts: int = 3
    backoff_seconds: float = 0.5
    exponential: bool = True
    jitter: bool = True
    retry_exceptions: Tuple[Type[BaseException], ...] = (Exception,)

    def wait_strategy(self) -> wait_base:
        """Build the tenacity wait strategy for this config."""
        strategy: wait_base
        if self.exponential:
            strategy = tenacity.wait_exponential(
                multiplier=self.backoff_seconds, min=self.backoff_seconds
            )
        else:
            strategy = tenacity.wait_fixed(self.backoff_seconds)

        if self.jitter and self.backoff_seconds > 0:
            # 0-50% of the base delay
            strategy = strategy + tenacity.wait_random(0, self.backoff_seconds * 0.5)
        return strategy


async def retry_async(
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    config: Optional[RetryConfig] = None,
    **kwargs: Any,
) -> T:
    """Await ``fn(*args, **kwargs)``, retrying per ``config``.

    The last exception is re-raised once attempts are exhausted.
    """
    config = config or RetryConfig()

    def before_sleep_handler(retry_state: tenacity.RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Attempt %d/%d of %s failed: %s. Retrying in %.1fs...",
            retry_state.attempt_number,
            config.max_attempts,
            getattr(fn, "__name__", "call"),
            exception,
            retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    retrying = tenacity.AsyncRetrying(
        stop=tenacity.stop_after_attempt(config.max_attempts),
        wait=config.wait_strategy(),
        retry=tenacity.retry_if_exception_type(config.retry_exceptions),
        before_sleep=before_sleep_handler,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await fn(*args, **kwargs)
    raise AssertionError("unreachable: tenacity reraises on exhaustion")
