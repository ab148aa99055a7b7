"""Fixed-window rate limiter over an injectable counter store."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from typing import Literal, Protocol

import redis.asyncio as redis

from config.settings import Settings
from libs.common.exceptions import ConfigurationError
from libs.query_gateway.metrics import rate_limit_checks_total, rate_limit_store_errors_total

logger = logging.getLogger(__name__)

QUERY_RATE_LIMIT_PREFIX = "analytics:ratelimit:query"
LOGIN_RATE_LIMIT_PREFIX = "analytics:ratelimit:login"

FallbackMode = Literal["allow", "deny"]


class CounterStore(Protocol):
    """Counter operations the limiter needs; ``redis.asyncio.Redis`` satisfies it."""

    async def incr(self, name: str) -> int:
        """Increment the counter at ``name`` and return the new value."""
        ...

    async def expire(self, name: str, time: int) -> bool:
        """Set a time-to-live of ``time`` seconds on ``name``."""
        ...


class FixedWindowRateLimiter:
    """Allow at most ``max_requests`` per identifier per fixed window.

    Keys look like ``{prefix}:{identifier}:{window_index}`` where
    ``window_index = floor(now / window_seconds)``. The first hit in a window
    sets the key expiry. INCR and EXPIRE are separate calls, so a crash in
    between can leave a key without a TTL; the window index in the key still
    bounds its effect to one window.
    """

    def __init__(
        self,
        store: CounterStore,
        key_prefix: str,
        window_seconds: int,
        max_requests: int,
        clock: Callable[[], float] = time.time,
        fallback_mode: FallbackMode = "deny",
    ) -> None:
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        self.store = store
        self.key_prefix = key_prefix
        self.window_seconds = window_seconds
        self.max_requests = max_requests
        self.clock = clock
        self.fallback_mode = fallback_mode

    def _key(self, identifier: str) -> str:
        window = math.floor(self.clock() / self.window_seconds)
        return f"{self.key_prefix}:{identifier}:{window}"

    async def allow(self, identifier: str) -> bool:
        """Count one request for ``identifier`` and report whether it is within the limit."""
        key = self._key(identifier)
        try:
            count = int(await self.store.incr(key))
            if count == 1:
                await self.store.expire(key, self.window_seconds)
        except Exception as exc:
            rate_limit_store_errors_total.labels(prefix=self.key_prefix).inc()
            logger.warning(
                "rate_limit_fallback",
                extra={
                    "prefix": self.key_prefix,
                    "fallback_mode": self.fallback_mode,
                    "error_type": type(exc).__name__,
                },
            )
            allowed = self.fallback_mode == "allow"
        else:
            allowed = count <= self.max_requests

        rate_limit_checks_total.labels(
            prefix=self.key_prefix, result="allowed" if allowed else "blocked"
        ).inc()
        if not allowed:
            logger.info("rate_limit_blocked", extra={"prefix": self.key_prefix})
        return allowed


def build_redis_client(settings: Settings) -> redis.Redis:
    """Build the async Redis client used as the shared counter store.

    Raises:
        ConfigurationError: If REDIS_URL is empty
    """
    if not settings.redis_url:
        raise ConfigurationError("REDIS_URL not configured")
    return redis.Redis.from_url(settings.redis_url, decode_responses=True)  # type: ignore[no-any-return]


def create_query_rate_limiter(
    store: CounterStore,
    settings: Settings,
    clock: Callable[[], float] = time.time,
) -> FixedWindowRateLimiter:
    """Per-caller limiter for analytical queries (12 per minute by default)."""
    return FixedWindowRateLimiter(
        store,
        key_prefix=QUERY_RATE_LIMIT_PREFIX,
        window_seconds=settings.query_rate_limit_window_seconds,
        max_requests=settings.query_rate_limit_max,
        clock=clock,
        fallback_mode=settings.rate_limiter_fallback_mode,
    )


def create_login_rate_limiter(
    store: CounterStore,
    settings: Settings,
    clock: Callable[[], float] = time.time,
) -> FixedWindowRateLimiter:
    """Per-identity limiter for login attempts (8 per minute by default)."""
    return FixedWindowRateLimiter(
        store,
        key_prefix=LOGIN_RATE_LIMIT_PREFIX,
        window_seconds=settings.login_rate_limit_window_seconds,
        max_requests=settings.login_rate_limit_max,
        clock=clock,
        fallback_mode=settings.rate_limiter_fallback_mode,
    )


__all__ = [
    "CounterStore",
    "FixedWindowRateLimiter",
    "LOGIN_RATE_LIMIT_PREFIX",
    "QUERY_RATE_LIMIT_PREFIX",
    "build_redis_client",
    "create_login_rate_limiter",
    "create_query_rate_limiter",
]
