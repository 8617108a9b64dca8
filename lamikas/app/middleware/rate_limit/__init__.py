"""Rate limiting for the account functions.

Two independent limiters gate the auth endpoint: a general one keyed by
client IP and a login one keyed by ``login_<ip>``. Both are plain service
objects owned by the application and injected where they are needed.
"""

from typing import Optional

from lamikas.app.core.config import settings
from lamikas.app.core.logging import get_logger

from lamikas.app.middleware.rate_limit.models import (
    RateLimitEntry,
    RateLimitResult,
)

from lamikas.app.middleware.rate_limit.backends import (
    InMemoryRateLimiter,
    RateLimitBackend,
    RedisRateLimiter,
)

logger = get_logger(__name__)

LOGIN_KEY_PREFIX = "login_"

__all__ = [
    # Models
    "RateLimitResult",
    "RateLimitEntry",
    # Backends
    "RateLimitBackend",
    "InMemoryRateLimiter",
    "RedisRateLimiter",
    # Main classes
    "RateLimiter",
    "create_general_limiter",
    "create_login_limiter",
    "login_key",
]


def login_key(client_ip: str) -> str:
    """Derive the login limiter key for a client IP."""
    return f"{LOGIN_KEY_PREFIX}{client_ip}"


class RateLimiter:
    """Fixed window rate limiter that selects the appropriate backend.

    Uses Redis when enabled in settings so counters are shared across
    instances, otherwise an in-process table.
    """

    def __init__(
        self,
        requests: int = 10,
        window_seconds: int = 1,
        retry_after: int = 60,
        use_redis: Optional[bool] = None,
        backend: Optional[RateLimitBackend] = None,
        name: str = "general",
    ):
        """Initialize rate limiter with appropriate backend.

        Args:
            requests: Units per key per window
            window_seconds: Fixed window length in seconds
            retry_after: Seconds advertised in Retry-After on rejection
            use_redis: Force Redis usage (None = auto-detect from settings)
            backend: Explicit backend, mainly for tests
            name: Label used in logs and Redis keys
        """
        self.name = name
        self.retry_after = retry_after

        if backend is not None:
            self._backend = backend
            return

        should_use_redis = use_redis if use_redis is not None else settings.redis_enabled
        if should_use_redis:
            self._backend = RedisRateLimiter(
                requests=requests,
                window_seconds=window_seconds,
                retry_after=retry_after,
                key_prefix=f"ratelimit:{name}",
            )
            logger.info(f"Using Redis backend for {name} rate limiter")
        else:
            self._backend = InMemoryRateLimiter(
                requests=requests,
                window_seconds=window_seconds,
                retry_after=retry_after,
                max_entries=settings.rate_limit_max_entries,
            )
            logger.debug(f"Using in-memory backend for {name} rate limiter")

    @property
    def backend(self) -> RateLimitBackend:
        return self._backend

    async def is_allowed(self, key: str) -> RateLimitResult:
        """Check and consume one unit for ``key``."""
        return await self._backend.is_allowed(key)

    async def try_consume(self, key: str) -> bool:
        """Consume one unit for ``key``; False once the window is exhausted."""
        result = await self._backend.is_allowed(key)
        return result.allowed

    async def cleanup(self) -> None:
        """Clean up expired entries."""
        await self._backend.cleanup()

    async def close(self) -> None:
        if isinstance(self._backend, RedisRateLimiter):
            await self._backend.close()


def create_general_limiter() -> RateLimiter:
    """Limiter applied to every non-preflight request, keyed by client IP."""
    return RateLimiter(
        requests=settings.rate_limit_requests,
        window_seconds=settings.rate_limit_window_seconds,
        retry_after=settings.rate_limit_retry_after,
        name="general",
    )


def create_login_limiter() -> RateLimiter:
    """Limiter applied to login attempts, keyed by ``login_<ip>``."""
    return RateLimiter(
        requests=settings.login_rate_limit_requests,
        window_seconds=settings.login_rate_limit_window_seconds,
        retry_after=settings.login_rate_limit_retry_after,
        name="login",
    )
