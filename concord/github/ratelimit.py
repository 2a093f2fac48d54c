"""Process-wide throttling for outbound GitHub calls.

The limiter prevents concord from tripping GitHub's limits in the first
place; it never retries. Every Gateway call awaits :meth:`RateLimiter.acquire`
before touching the network, and a single shared instance gates all calls in
a process.

Configuration is read from environment variables:

- ``CONCORD_RATE_LIMIT_PER_SECOND``: token refill rate (default ``10``)
- ``CONCORD_RATE_LIMIT_BURST``: bucket capacity (default ``10``)
"""

from __future__ import annotations

import asyncio
import dataclasses as dc
import os
import time
import typing as typ

if typ.TYPE_CHECKING:
    import collections.abc as cabc

_DEFAULT_RATE_PER_SECOND = 10.0
_DEFAULT_BURST = 10


@dc.dataclass(frozen=True, slots=True)
class RateLimitConfig:
    """Token bucket settings for the shared limiter."""

    rate_per_second: float = _DEFAULT_RATE_PER_SECOND
    burst: int = _DEFAULT_BURST

    @classmethod
    def from_env(cls) -> RateLimitConfig:
        """Create configuration from ``CONCORD_RATE_LIMIT_*`` variables.

        Raises
        ------
        ValueError
            If either variable is not a positive number.

        """
        rate = _parse_positive(
            "CONCORD_RATE_LIMIT_PER_SECOND", _DEFAULT_RATE_PER_SECOND, float
        )
        burst = _parse_positive("CONCORD_RATE_LIMIT_BURST", _DEFAULT_BURST, int)
        return cls(rate_per_second=rate, burst=burst)


def _parse_positive[N: (int, float)](
    env_var: str, default: N, kind: cabc.Callable[[str], N]
) -> N:
    raw = os.environ.get(env_var, "")
    if not raw.strip():
        return default
    try:
        value = kind(raw)
    except ValueError as exc:
        msg = f"{env_var} must be a number, got: {raw!r}"
        raise ValueError(msg) from exc
    if value <= 0:
        msg = f"{env_var} must be positive, got: {value}"
        raise ValueError(msg)
    return value


class RateLimiter:
    """Asyncio token bucket.

    Tokens refill continuously at ``rate_per_second`` up to ``burst``.
    :meth:`acquire` takes one token, sleeping until one is available. Waiters
    are served in arrival order.
    """

    def __init__(
        self,
        rate_per_second: float,
        burst: int = 1,
        *,
        clock: cabc.Callable[[], float] = time.monotonic,
        sleep: cabc.Callable[[float], cabc.Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialise a full bucket."""
        if rate_per_second <= 0:
            msg = f"rate_per_second must be positive, got: {rate_per_second}"
            raise ValueError(msg)
        if burst < 1:
            msg = f"burst must be at least 1, got: {burst}"
            raise ValueError(msg)
        self._rate = rate_per_second
        self._burst = burst
        self._clock = clock
        self._sleep = sleep
        self._tokens = float(burst)
        self._updated = clock()
        self._lock = asyncio.Lock()

    @classmethod
    def from_config(cls, config: RateLimitConfig) -> RateLimiter:
        """Build a limiter from :class:`RateLimitConfig`."""
        return cls(config.rate_per_second, config.burst)

    @property
    def available(self) -> float:
        """Return the tokens currently available, after refilling."""
        self._refill()
        return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated)
        self._tokens = min(float(self._burst), self._tokens + elapsed * self._rate)
        self._updated = now

    async def acquire(self) -> None:
        """Take one token, waiting until the bucket can supply it."""
        async with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1:
                    self._tokens -= 1
                    return
                await self._sleep((1 - self._tokens) / self._rate)


_shared: RateLimiter | None = None


def shared_limiter() -> RateLimiter:
    """Return the process-wide limiter, creating it on first use."""
    global _shared  # noqa: PLW0603 - one limiter per process
    if _shared is None:
        _shared = RateLimiter.from_config(RateLimitConfig.from_env())
    return _shared


def reset_shared_limiter() -> None:
    """Drop the process-wide limiter so the next call rebuilds it."""
    global _shared  # noqa: PLW0603 - one limiter per process
    _shared = None


__all__ = [
    "RateLimitConfig",
    "RateLimiter",
    "reset_shared_limiter",
    "shared_limiter",
]
