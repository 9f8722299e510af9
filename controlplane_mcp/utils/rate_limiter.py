"""Token bucket rate limiter for outgoing control-plane calls.

Tokens are taken before the wrapped call runs and are never returned, even
when the call fails: a token records that an attempt was made. Callers that
find the bucket empty wait in submission order behind a single asyncio lock
and back off (exponential or linear) until a token frees up or the retry
budget runs out, in which case ``RateLimitExceeded`` is raised.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

from .config import env_choice, env_int

T = TypeVar("T")

RETRY_STRATEGIES = ("exponential", "linear")


class RateLimitExceeded(Exception):
    """Raised when a caller could not obtain a token within its retry budget"""


@dataclass(frozen=True)
class RateLimitConfig:
    requests_per_minute: int = 60
    burst_size: int = 10
    retry_strategy: str = "exponential"
    max_retries: int = 3
    initial_retry_delay: float = 1.0


@dataclass
class RateLimiterState:
    tokens: float
    capacity: int
    refill_rate_per_second: float
    queued_requests: int
    last_refill_time: float


class RateLimiter:
    """Token bucket with FIFO queueing of callers that have to wait

    Args:
        config: Bucket size, refill rate and backoff settings
        clock: Monotonic time source, replaceable in tests
        sleep: Coroutine used to wait between retries, replaceable in tests
    """

    def __init__(
        self,
        config: Optional[RateLimitConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.config = config or RateLimitConfig()
        self._clock = clock
        self._sleep = sleep
        self._refill_rate = self.config.requests_per_minute / 60.0
        self._tokens = float(self.config.burst_size)
        self._last_refill = self._clock()
        self._queued = 0
        self._waiters = asyncio.Lock()

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._last_refill)
        self._tokens = min(float(self.config.burst_size), self._tokens + elapsed * self._refill_rate)
        self._last_refill = now

    def _try_acquire(self) -> bool:
        self._refill()
        if self._tokens >= 1:
            self._tokens -= 1
            return True
        return False

    def retry_delay(self, attempt: int) -> float:
        if self.config.retry_strategy == "exponential":
            return self.config.initial_retry_delay * (2 ** attempt)
        return self.config.initial_retry_delay * (attempt + 1)

    async def _wait_for_token(self) -> None:
        # Holding the lock while backing off keeps waiters in arrival order.
        async with self._waiters:
            if self._try_acquire():
                return
            for attempt in range(self.config.max_retries):
                delay = self.retry_delay(attempt)
                logging.info(f"[RateLimiter] Bucket empty, retry {attempt + 1}/{self.config.max_retries} in {delay:.2f}s")
                await self._sleep(delay)
                if self._try_acquire():
                    return
            raise RateLimitExceeded(
                f"Rate limit exceeded: max retries ({self.config.max_retries}) reached. "
                f"Current rate: {self.config.requests_per_minute} requests/minute"
            )

    async def acquire(self) -> None:
        """Take one token, waiting behind earlier callers when the bucket is empty"""
        self._queued += 1
        try:
            # Fast path only when nobody is already queued, so FIFO order holds.
            if self._queued > 1 or not self._try_acquire():
                await self._wait_for_token()
        finally:
            self._queued -= 1

    async def execute(self, fn: Callable[[], Awaitable[T]]) -> T:
        """Run ``fn`` once a token has been taken

        Raises:
            RateLimitExceeded: If no token became available within the retry budget
        """
        await self.acquire()
        return await fn()

    def can_accept(self) -> bool:
        self._refill()
        return self._tokens >= 1

    def get_state(self) -> RateLimiterState:
        self._refill()
        return RateLimiterState(
            tokens=self._tokens,
            capacity=self.config.burst_size,
            refill_rate_per_second=self._refill_rate,
            queued_requests=self._queued,
            last_refill_time=self._last_refill,
        )

    def get_config(self) -> RateLimitConfig:
        return self.config

    @property
    def queued_requests(self) -> int:
        return self._queued

    def reset(self) -> None:
        """Refill the bucket; callers already waiting stay queued"""
        self._tokens = float(self.config.burst_size)
        self._last_refill = self._clock()


def create_rate_limiter_from_env() -> RateLimiter:
    """Build a limiter from CONTROLPLANE_RATE_LIMIT_* variables, defaults on bad input"""
    defaults = RateLimitConfig()
    config = RateLimitConfig(
        requests_per_minute=env_int("RATE_LIMIT_RPM", defaults.requests_per_minute),
        burst_size=env_int("RATE_LIMIT_BURST", defaults.burst_size),
        retry_strategy=env_choice("RATE_LIMIT_STRATEGY", defaults.retry_strategy, RETRY_STRATEGIES),
        max_retries=env_int("RATE_LIMIT_MAX_RETRIES", defaults.max_retries, minimum=0),
        initial_retry_delay=defaults.initial_retry_delay,
    )
    logging.info(
        f"[RateLimiter] {config.requests_per_minute} rpm, burst {config.burst_size}, "
        f"{config.retry_strategy} backoff, {config.max_retries} retries"
    )
    return RateLimiter(config)


__all__ = [
    "RateLimitExceeded",
    "RateLimitConfig",
    "RateLimiterState",
    "RateLimiter",
    "create_rate_limiter_from_env",
]
