"""
Retry Strategies

Exponential backoff for read-only external calls. On-chain writes are
never routed through here: resubmitting a signed transaction needs the
user's consent.
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, TypeVar

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]


@dataclass
class RetryConfig:
    """Configuration for retry behavior.

    ``max_retries`` counts retries after the first attempt, so an operation
    runs at most ``max_retries + 1`` times.
    """

    max_retries: int = 3
    initial_delay_seconds: float = 1.0
    backoff_factor: float = 2.0
    max_delay_seconds: float = 60.0
    jitter: bool = False
    jitter_factor: float = 0.1

    def get_delay(self, attempt: int) -> float:
        """Delay before retry number ``attempt`` (0-based)."""
        delay = min(
            self.initial_delay_seconds * (self.backoff_factor ** attempt),
            self.max_delay_seconds,
        )
        if self.jitter:
            jitter_range = delay * self.jitter_factor
            delay += random.uniform(-jitter_range, jitter_range)
        return max(delay, 0)


class ExponentialBackoffStrategy:
    """
    Retry an async operation with exponentially growing delays.

    Every exception is retried; the last one is re-raised once retries are
    exhausted. ``sleep`` is injectable so tests can observe the schedule
    without waiting.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Optional[SleepFn] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config or RetryConfig()
        self._sleep = sleep or asyncio.sleep
        self.logger = logger or logging.getLogger(__name__)

    async def execute(
        self,
        operation: Callable[..., Awaitable[T]],
        *args: Any,
        label: str = "operation",
        **kwargs: Any,
    ) -> T:
        attempts = self.config.max_retries + 1
        last_error: Optional[Exception] = None

        for attempt in range(attempts):
            try:
                return await operation(*args, **kwargs)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                last_error = e
                if attempt == attempts - 1:
                    break
                delay = self.config.get_delay(attempt)
                self.logger.warning(
                    f"{label} attempt {attempt + 1}/{attempts} failed: {e}. "
                    f"Retrying in {delay:.2f}s"
                )
                await self._sleep(delay)

        self.logger.error(f"{label} failed after {attempts} attempts: {last_error}")
        raise last_error or RuntimeError("All retry attempts exhausted")
