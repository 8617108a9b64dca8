"""Rate limit backends.

Both backends implement a fixed window: each key gets ``requests`` units per
``window_seconds``, and the counter resets lazily on the first request after
the window has elapsed. Nothing sweeps expired keys in the request path.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Any, Callable, Optional

import redis
import redis.asyncio as aioredis

from lamikas.app.core.config import settings
from lamikas.app.core.logging import get_logger
from lamikas.app.middleware.rate_limit.models import RateLimitEntry, RateLimitResult

logger = get_logger(__name__)


class RateLimitBackend(ABC):
    """Abstract base class for rate limit backends."""

    def __init__(self, requests: int, window_seconds: int, retry_after: int):
        self.requests = requests
        self.window_seconds = window_seconds
        self.retry_after = retry_after

    @abstractmethod
    async def is_allowed(self, key: str) -> RateLimitResult:
        """Consume one unit for ``key`` if the window has one left.

        Args:
            key: Rate limit key (client IP or ``login_`` + IP)

        Returns:
            RateLimitResult with allowed status and metadata
        """

    @abstractmethod
    async def cleanup(self) -> None:
        """Clean up expired entries."""

    def _rejected(self, reset_time: int) -> RateLimitResult:
        return RateLimitResult(
            allowed=False,
            limit=self.requests,
            remaining=0,
            reset_time=reset_time,
            retry_after=self.retry_after,
        )


class InMemoryRateLimiter(RateLimitBackend):
    """In-process fixed window rate limiter.

    Suitable for single-instance deployments; counters are not shared between
    processes.

    Memory bound:
    - Uses OrderedDict for LRU behavior
    - Limits max entries to prevent unbounded growth from many client IPs
    - Evicting a key only forgets its window, which can grant that key a
      fresh quota early, never a larger one within a window
    """

    DEFAULT_MAX_ENTRIES = 10000

    def __init__(
        self,
        requests: int = 10,
        window_seconds: int = 1,
        retry_after: int = 60,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(requests, window_seconds, retry_after)
        self._max_entries = max_entries
        self._clock = clock
        self._storage: OrderedDict[str, RateLimitEntry] = OrderedDict()
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._storage)

    def _enforce_lru_limit(self) -> None:
        """Drop the least recently used 20% once the table is full."""
        if len(self._storage) >= self._max_entries:
            remove_count = max(1, int(self._max_entries * 0.2))
            for _ in range(min(remove_count, len(self._storage))):
                self._storage.popitem(last=False)

    async def is_allowed(self, key: str) -> RateLimitResult:
        async with self._lock:
            now = self._clock()

            entry = self._storage.get(key)
            if entry is None:
                self._enforce_lru_limit()
                entry = RateLimitEntry(requests=0, window_start=now)
                self._storage[key] = entry
            else:
                self._storage.move_to_end(key)
                if entry.expired(now, self.window_seconds):
                    entry.requests = 0
                    entry.window_start = now

            reset_time = int(entry.window_start + self.window_seconds)

            if entry.requests >= self.requests:
                return self._rejected(reset_time)

            entry.requests += 1
            return RateLimitResult(
                allowed=True,
                limit=self.requests,
                remaining=self.requests - entry.requests,
                reset_time=reset_time,
            )

    async def cleanup(self) -> None:
        async with self._lock:
            now = self._clock()
            expired = [
                key for key, entry in self._storage.items()
                if entry.expired(now, self.window_seconds)
            ]
            for key in expired:
                del self._storage[key]


class RedisRateLimiter(RateLimitBackend):
    """Redis-backed fixed window limiter shared across instances.

    Each window gets its own counter key (``<prefix>:<key>:<window index>``)
    incremented with INCR; the key expires shortly after its window ends.
    """

    def __init__(
        self,
        requests: int = 10,
        window_seconds: int = 1,
        retry_after: int = 60,
        redis_client: Optional[Any] = None,
        redis_url: Optional[str] = None,
        key_prefix: str = "ratelimit",
        clock: Callable[[], float] = time.time,
    ):
        super().__init__(requests, window_seconds, retry_after)
        self._redis_url = redis_url or settings.redis_url
        self._redis = redis_client
        self._key_prefix = key_prefix
        self._clock = clock

    async def _get_redis(self) -> Any:
        """Get or create Redis connection."""
        if self._redis is None:
            self._redis = aioredis.from_url(self._redis_url)
        return self._redis

    async def is_allowed(self, key: str) -> RateLimitResult:
        now = self._clock()
        window_index = int(now // self.window_seconds)
        window_start = window_index * self.window_seconds
        reset_time = int(window_start + self.window_seconds)
        redis_key = f"{self._key_prefix}:{key}:{window_index}"

        try:
            client = await self._get_redis()
            pipe = client.pipeline()
            pipe.incr(redis_key)
            pipe.expire(redis_key, self.window_seconds + 1)
            results = await pipe.execute()
        except redis.RedisError as e:
            logger.error(f"Redis rate limit check failed: {e}")
            return self._handle_redis_failure(reset_time)

        count = int(results[0])
        if count > self.requests:
            return self._rejected(reset_time)

        return RateLimitResult(
            allowed=True,
            limit=self.requests,
            remaining=self.requests - count,
            reset_time=reset_time,
        )

    def _handle_redis_failure(self, reset_time: int) -> RateLimitResult:
        """Apply the configured fail-open/fail-closed policy."""
        if settings.rate_limit_fail_closed:
            logger.warning("Rate limiting fail-closed triggered. Request denied.")
            return self._rejected(reset_time)

        logger.warning(
            "Rate limiting fail-open triggered. "
            "Request allowed without rate limit check."
        )
        return RateLimitResult(
            allowed=True,
            limit=self.requests,
            remaining=self.requests,
            reset_time=reset_time,
        )

    async def cleanup(self) -> None:
        """No-op for Redis (keys expire automatically)."""

    async def close(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
