import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Generic, Optional, TypeVar

from .config import settings
from .core.recovery.strategies import ExponentialBackoffStrategy, RetryConfig, SleepFn

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class CacheEntry(Generic[T]):
    value: T
    fetched_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.fetched_at >= self.ttl


class RetryingTTLCache(Generic[T]):
    """
    In-memory TTL cache whose misses are fetched with exponential backoff.

    When every attempt of a refresh fails and an earlier value exists (even
    an expired one), that value is served instead of the error. Only a key
    that never loaded successfully propagates the fetch error.
    """

    def __init__(
        self,
        fetch_fn: Optional[Callable[[str], Awaitable[T]]] = None,
        *,
        ttl_seconds: Optional[float] = None,
        retries: Optional[int] = None,
        initial_delay_seconds: Optional[float] = None,
        backoff_factor: Optional[float] = None,
        sleep: Optional[SleepFn] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._fetch_fn = fetch_fn
        self.ttl_seconds = settings.tvl_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self.retry_config = RetryConfig(
            max_retries=settings.tvl_retry_attempts if retries is None else retries,
            initial_delay_seconds=(
                settings.tvl_retry_initial_delay_seconds if initial_delay_seconds is None else initial_delay_seconds
            ),
            backoff_factor=settings.tvl_backoff_factor if backoff_factor is None else backoff_factor,
        )
        self._sleep = sleep or asyncio.sleep
        self._clock = clock or time.monotonic
        self._entries: Dict[str, CacheEntry[T]] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    async def get(self, key: str) -> T:
        if self._fetch_fn is None:
            raise RuntimeError("RetryingTTLCache.get needs a fetch_fn; use get_with() instead")
        fetch_fn = self._fetch_fn
        return await self.get_with(key, lambda: fetch_fn(key))

    async def get_with(
        self,
        key: str,
        fetch: Callable[[], Awaitable[T]],
        *,
        ttl_seconds: Optional[float] = None,
        retry_config: Optional[RetryConfig] = None,
    ) -> T:
        entry = self._fresh(key)
        if entry is not None:
            return entry.value

        # One fetch per key; concurrent callers wait and reuse its result.
        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            entry = self._fresh(key)
            if entry is not None:
                return entry.value

            strategy = ExponentialBackoffStrategy(
                retry_config or self.retry_config, sleep=self._sleep, logger=logger
            )
            try:
                value = await strategy.execute(fetch, label=f"cache fetch {key}")
            except Exception as e:
                stale = self._entries.get(key)
                if stale is None:
                    raise
                logger.warning(
                    f"Serving stale value for {key} "
                    f"(fetched {self._clock() - stale.fetched_at:.0f}s ago): {e}"
                )
                return stale.value

            ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
            self._entries[key] = CacheEntry(value=value, fetched_at=self._clock(), ttl=ttl)
            return value

    def _fresh(self, key: str) -> Optional[CacheEntry[T]]:
        entry = self._entries.get(key)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry

    def peek(self, key: str) -> Optional[T]:
        """Cached value regardless of age, without fetching."""
        entry = self._entries.get(key)
        return entry.value if entry else None

    def invalidate(self, key: Optional[str] = None) -> None:
        if key is None:
            self._entries.clear()
            self._locks = {k: lock for k, lock in self._locks.items() if lock.locked()}
        else:
            self._entries.pop(key, None)
            lock = self._locks.get(key)
            if lock is not None and not lock.locked():
                del self._locks[key]

    @property
    def size(self) -> int:
        return len(self._entries)


# Global cache instance
default_cache: RetryingTTLCache[Any] = RetryingTTLCache()


async def with_retry_and_cache(
    key: str,
    ttl: float,
    retries: int,
    backoff_factor: float,
    fetch_fn: Callable[[], Awaitable[T]],
    *,
    initial_delay: float = 1.0,
    cache: Optional[RetryingTTLCache[Any]] = None,
) -> T:
    """Cache ``fetch_fn()`` under ``key`` for ``ttl`` seconds, retrying failed loads."""
    store = cache if cache is not None else default_cache
    return await store.get_with(
        key,
        fetch_fn,
        ttl_seconds=ttl,
        retry_config=RetryConfig(
            max_retries=retries,
            initial_delay_seconds=initial_delay,
            backoff_factor=backoff_factor,
        ),
    )
