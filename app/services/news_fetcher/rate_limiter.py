"""
Per-provider request spacing.

Each provider key keeps the time of its last request; a caller for the same
key waits until the minimum interval has passed. Keys never block each other.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Awaitable, Callable, Dict, Optional

from ...config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class RateLimiter:
    """Minimum-interval limiter keyed by provider name."""

    def __init__(
        self,
        min_interval_seconds: float = 1.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self._min_interval = min_interval_seconds
        self._clock = clock
        self._sleep = sleep
        self._last_request: Dict[str, float] = {}
        self._locks: Dict[str, asyncio.Lock] = {}

    @property
    def min_interval_seconds(self) -> float:
        return self._min_interval

    def _lock_for(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def enforce(self, key: str) -> None:
        """Suspend until the interval since the last call for ``key`` has elapsed."""
        # Same-key callers queue on the lock so each one sees the previous timestamp
        async with self._lock_for(key):
            last = self._last_request.get(key)
            if last is not None:
                wait = self._min_interval - (self._clock() - last)
                if wait > 0:
                    logger.debug(f"Rate limiting {key}: waiting {wait:.3f}s")
                    await self._sleep(wait)
            self._last_request[key] = self._clock()

    def last_request_at(self, key: str) -> Optional[float]:
        return self._last_request.get(key)

    def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._last_request.clear()
        else:
            self._last_request.pop(key, None)


# Singleton instance
_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter(config: Optional[Settings] = None) -> RateLimiter:
    """Get the process-wide limiter so request spacing carries across runs."""
    global _rate_limiter
    interval = (config or default_settings).min_request_interval_seconds
    if _rate_limiter is None or _rate_limiter.min_interval_seconds != interval:
        _rate_limiter = RateLimiter(interval)
    return _rate_limiter
