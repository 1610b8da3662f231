"""
Centralized Rate Limiter for External API Calls.

Hey future me - this is the SHARED rate limiter for the token-bucket catalogs
(Spotify, iTunes, YouTube). MusicBrainz keeps its own strict 1 req/sec lock inside the
client because it allows no bursts at all.

ALGORITHM: Token Bucket
- Bucket holds max_tokens
- Tokens refill at refill_rate per second
- Every request consumes one token
- Empty bucket: wait until a token is available

ADAPTIVE BACKOFF on 429:
- Retry-After header wins if present
- Otherwise 1s, 2s, 4s, ... (exponential)
- Success resets the backoff

USAGE:
    limiter = RateLimiter(config=RateLimiterConfig(max_tokens=10, refill_rate=5.0))

    async with limiter:
        response = await client.get(url)

    # On 429:
    await limiter.handle_rate_limit_response(retry_after)
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class RateLimiterConfig:
    """Configuration for rate limiter.

    Hey future me - max_backoff_seconds must be HIGH enough! Spotify can send a
    Retry-After of several minutes. Capping it low means we ignore the header and get
    429 again immediately.
    """

    max_tokens: int = 10  # Bucket size
    refill_rate: float = 2.0  # Tokens per second
    max_backoff_seconds: float = 600.0
    initial_backoff_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass
class RateLimiter:
    """Token Bucket Rate Limiter with adaptive backoff.

    Use it as an async context manager for automatic token handling.

    Attributes:
        config: Rate limiter configuration
        name: Label used in log messages
    """

    config: RateLimiterConfig = field(default_factory=RateLimiterConfig)
    name: str = "default"

    _tokens: float = field(default=0.0, init=False)
    _last_refill: float = field(default_factory=time.monotonic, init=False)
    _current_backoff: float = field(default=0.0, init=False)
    _lock: asyncio.Lock = field(default_factory=asyncio.Lock, init=False)

    def __post_init__(self) -> None:
        """Start with a full bucket."""
        self._tokens = float(self.config.max_tokens)
        self._current_backoff = self.config.initial_backoff_seconds

    @classmethod
    def per_second(
        cls, name: str, requests_per_second: float, burst: int | None = None
    ) -> "RateLimiter":
        """Create a limiter allowing `requests_per_second` sustained with a small burst.

        Args:
            name: Label for logs ("spotify", "itunes", ...)
            requests_per_second: Sustained rate
            burst: Bucket size (defaults to the rounded rate, at least 1)
        """
        size = burst if burst is not None else max(1, int(requests_per_second))
        return cls(
            config=RateLimiterConfig(max_tokens=size, refill_rate=requests_per_second),
            name=name,
        )

    def _refill_tokens(self) -> None:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(
            float(self.config.max_tokens), self._tokens + elapsed * self.config.refill_rate
        )
        self._last_refill = now

    async def acquire(self) -> None:
        """Acquire one token, waiting if necessary."""
        async with self._lock:
            self._refill_tokens()

            while self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self.config.refill_rate
                logger.debug(
                    f"RateLimiter[{self.name}]: No tokens available, waiting {wait_time:.2f}s"
                )

                # Release lock while waiting
                self._lock.release()
                try:
                    await asyncio.sleep(wait_time)
                finally:
                    await self._lock.acquire()

                self._refill_tokens()

            self._tokens -= 1.0

    async def handle_rate_limit_response(self, retry_after: float | None = None) -> float:
        """Handle a 429 response with adaptive backoff.

        Args:
            retry_after: Retry-After header value in seconds, if the API sent one

        Returns:
            The wait time actually used
        """
        async with self._lock:
            wait_time = float(retry_after) if retry_after is not None else self._current_backoff
            wait_time = min(wait_time, self.config.max_backoff_seconds)

            logger.warning(
                f"RateLimiter[{self.name}]: 429 Rate Limited! Waiting {wait_time:.1f}s "
                f"before retry (backoff level: {self._current_backoff:.1f}s)"
            )

            self._current_backoff = min(
                self._current_backoff * self.config.backoff_multiplier,
                self.config.max_backoff_seconds,
            )
            # Force the next acquire to wait for a refill
            self._tokens = 0.0

        await asyncio.sleep(wait_time)
        return wait_time

    def reset_backoff(self) -> None:
        """Reset backoff after a successful request."""
        self._current_backoff = self.config.initial_backoff_seconds

    async def __aenter__(self) -> "RateLimiter":
        await self.acquire()
        return self

    async def __aexit__(
        self, exc_type: type | None, exc_val: Exception | None, exc_tb: object
    ) -> None:
        if exc_type is None:
            self.reset_backoff()

    @property
    def available_tokens(self) -> float:
        """Current available tokens (for debugging and tests)."""
        self._refill_tokens()
        return self._tokens


# Module-level rate limiters, one per (service, rate), shared by every client instance.
# Keyed by rate so a client built from different settings never inherits an old limit.
_limiters: dict[tuple[str, float, int | None], RateLimiter] = {}


def _shared_limiter(name: str, requests_per_second: float, burst: int | None = None) -> RateLimiter:
    key = (name, requests_per_second, burst)
    limiter = _limiters.get(key)
    if limiter is None:
        limiter = RateLimiter.per_second(name, requests_per_second, burst=burst)
        _limiters[key] = limiter
    return limiter


def get_spotify_limiter(requests_per_second: float = 10.0) -> RateLimiter:
    """Get the shared Spotify rate limiter for this rate."""
    return _shared_limiter("spotify", requests_per_second)


def get_itunes_limiter() -> RateLimiter:
    """Get the shared iTunes rate limiter.

    Hey future me - iTunes documents ~20 calls/minute but tolerates short bursts;
    a bucket of 10 lets one preview chunk go out at once.
    """
    return _shared_limiter("itunes", 5.0, burst=10)


def get_youtube_limiter(requests_per_second: float = 5.0) -> RateLimiter:
    """Get the shared YouTube rate limiter for this rate."""
    return _shared_limiter("youtube", requests_per_second)


__all__ = [
    "RateLimiter",
    "RateLimiterConfig",
    "get_spotify_limiter",
    "get_itunes_limiter",
    "get_youtube_limiter",
]
