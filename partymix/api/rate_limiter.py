"""
Rate Limiter

Token-bucket rate limiting shared by the upstream streaming-service clients.
"""

import asyncio
import time
from typing import Any, Dict, Optional

import structlog

logger = structlog.get_logger(__name__)


class RateLimiter:
    """
    Token bucket limiter for per-second request budgets.

    Bursts up to ``burst_size`` requests are allowed, after which callers
    wait until the bucket refills.
    """

    def __init__(
        self,
        calls_per_second: float,
        burst_size: Optional[int] = None,
        service_name: str = "api"
    ):
        if calls_per_second <= 0:
            raise ValueError("calls_per_second must be positive")

        self.calls_per_second = calls_per_second
        self.burst_size = burst_size or max(int(calls_per_second * 2), 1)
        self.service_name = service_name

        self.tokens = float(self.burst_size)
        self.last_refill = time.monotonic()
        self.total_requests = 0
        self.lock = asyncio.Lock()

        self.logger = logger.bind(service=f"RateLimiter-{service_name}")

    @classmethod
    def for_spotify(cls, calls_per_second: float = 5.0) -> "RateLimiter":
        return cls(calls_per_second=calls_per_second, service_name="Spotify")

    @classmethod
    def for_apple_music(cls, calls_per_second: float = 5.0) -> "RateLimiter":
        return cls(calls_per_second=calls_per_second, service_name="AppleMusic")

    @classmethod
    def for_lastfm(cls, calls_per_second: float = 3.0) -> "RateLimiter":
        return cls(calls_per_second=calls_per_second, service_name="LastFM")

    def _refill(self) -> None:
        now = time.monotonic()
        elapsed = now - self.last_refill
        self.tokens = min(
            float(self.burst_size),
            self.tokens + elapsed * self.calls_per_second
        )
        self.last_refill = now

    async def wait_if_needed(self) -> None:
        """Wait until a request token is available, then consume it."""
        async with self.lock:
            self._refill()
            if self.tokens < 1:
                wait_time = (1 - self.tokens) / self.calls_per_second
                self.logger.debug("Rate limit reached, waiting", wait_time=wait_time)
                await asyncio.sleep(wait_time)
                self._refill()
            self.tokens -= 1
            self.total_requests += 1

    def get_current_usage(self) -> Dict[str, Any]:
        return {
            "service": self.service_name,
            "calls_per_second": self.calls_per_second,
            "available_tokens": round(self.tokens, 2),
            "total_requests": self.total_requests,
        }

    def reset(self) -> None:
        self.tokens = float(self.burst_size)
        self.last_refill = time.monotonic()
        self.total_requests = 0
