"""Per-source request budgets."""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass
class _Bucket:
    window_start: float
    consumed: int = 0


class RateLimiter:
    """
    Bucket of ``points`` requests refilled every ``duration`` seconds.

    The window opens on the first request and the bucket refills completely
    when it closes, matching how the public French APIs count quota.

    Usage:
        limiter = RateLimiter("ban", points=50, duration=1.0)
        await limiter.consume()
    """

    def __init__(
        self,
        name: str,
        points: int,
        duration: float = 1.0,
        max_wait: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if points < 1 or duration <= 0:
            raise ValueError("RateLimiter needs points >= 1 and duration > 0")
        self.name = name
        self.points = points
        self.duration = duration
        self.max_wait = max_wait
        self._clock = clock
        self._sleep = sleep
        self._buckets: dict[str, _Bucket] = {}

        # Observability
        self.throttled = 0
        self.long_waits = 0
        self.total_wait = 0.0

    def try_acquire(self, key: str = "default") -> float:
        """
        Take one point if available.

        Returns:
            0.0 when the point was taken, else seconds until the bucket refills
        """
        now = self._clock()
        bucket = self._buckets.get(key)
        if bucket is None or now - bucket.window_start >= self.duration:
            bucket = _Bucket(window_start=now)
            self._buckets[key] = bucket

        if bucket.consumed < self.points:
            bucket.consumed += 1
            return 0.0
        return bucket.window_start + self.duration - now

    async def consume(self, key: str = "default") -> None:
        """
        Wait until a request may be sent.

        Sleeps at most once. If the budget is still exhausted afterwards the
        request proceeds anyway: quota is best-effort, never fatal.
        """
        try:
            wait = self.try_acquire(key)
        except Exception as e:
            logger.error("Rate limiter %s failed, letting request through: %s", self.name, e)
            return

        if wait <= 0:
            return

        self.throttled += 1
        self.total_wait += wait
        if wait > self.max_wait:
            self.long_waits += 1
            logger.warning("Rate limit %s: waiting %.1fs (above %.1fs)", self.name, wait, self.max_wait)
        else:
            logger.debug("Rate limit %s: waiting %.2fs", self.name, wait)

        await self._sleep(wait)

        if self.try_acquire(key) > 0:
            logger.debug("Rate limit %s still exhausted after wait, proceeding", self.name)

    def stats(self) -> dict:
        return {
            "points": self.points,
            "duration": self.duration,
            "throttled": self.throttled,
            "long_waits": self.long_waits,
            "total_wait": round(self.total_wait, 3),
        }


class RateLimiterRegistry:
    """One limiter per source, shared by every search in the process."""

    def __init__(self, max_wait: float = 5.0):
        self.max_wait = max_wait
        self._limiters: dict[str, RateLimiter] = {}

    def get(self, name: str, points: int = 10, duration: float = 1.0) -> RateLimiter:
        limiter = self._limiters.get(name)
        if limiter is None:
            limiter = RateLimiter(name, points, duration, max_wait=self.max_wait)
            self._limiters[name] = limiter
        return limiter

    def stats(self) -> dict:
        return {name: limiter.stats() for name, limiter in self._limiters.items()}
