"""Rate limiting data models.

This module contains dataclasses for rate limit state and results.
"""

import time
from dataclasses import dataclass, field
from typing import Optional


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""
    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    retry_after: Optional[int] = None


@dataclass
class RateLimitEntry:
    """Fixed window state for one key."""
    requests: int = 0
    window_start: float = field(default_factory=time.time)

    def expired(self, now: float, window_seconds: float) -> bool:
        return now - self.window_start >= window_seconds
