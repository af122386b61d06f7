"""Redis-backed fixed-window counter store.

Atomicity is delegated to Redis: a Lua script increments the counter, arms
the window TTL on the first hit, and reads the remaining TTL in one round
trip. The script is registered once per store and runs through EVALSHA.
Redis expires finished windows on its own.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Callable

import redis.asyncio as redis
from redis.exceptions import RedisError

from request_guard.adapters.counter_store.base import (
    AbstractCounterStore,
    CounterSnapshot,
    CounterStoreKind,
)
from request_guard.core.errors import CounterStoreError

if TYPE_CHECKING:
    from request_guard.core.policies import RateLimitPolicy

logger = logging.getLogger(__name__)

# KEYS[1] = counter key, ARGV[1] = window length in milliseconds
FIXED_WINDOW_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
end
local ttl = redis.call('PTTL', KEYS[1])
if ttl < 0 then
    redis.call('PEXPIRE', KEYS[1], ARGV[1])
    ttl = tonumber(ARGV[1])
end
return {count, ttl}
"""


class RedisCounterStore(AbstractCounterStore):
    """Counter store shared by every instance through Redis.

    Every call is bounded by ``timeout_seconds``. Timeouts and Redis errors
    surface as ``CounterStoreError`` so the rate limiter can fail open.
    """

    kind = CounterStoreKind.SHARED

    def __init__(
        self,
        client: "redis.Redis",
        *,
        key_prefix: str = "request_guard",
        timeout_seconds: float = 0.25,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self._client = client
        self._script = client.register_script(FIXED_WINDOW_SCRIPT)
        self._key_prefix = key_prefix
        self._timeout_seconds = timeout_seconds
        self._clock = clock

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        key_prefix: str = "request_guard",
        timeout_seconds: float = 0.25,
        clock: Callable[[], float] = time.time,
    ) -> "RedisCounterStore":
        """Build a store with its own connection pool.

        Args:
            url: Redis connection URL (redis:// or rediss://).
            key_prefix: Namespace for counter keys.
            timeout_seconds: Bound for each round trip.
            clock: Time source function returning UNIX time in seconds.

        Returns:
            RedisCounterStore owning the new client.
        """
        client = redis.from_url(
            url,
            socket_timeout=timeout_seconds,
            socket_connect_timeout=timeout_seconds,
        )
        return cls(
            client,
            key_prefix=key_prefix,
            timeout_seconds=timeout_seconds,
            clock=clock,
        )

    def _namespaced(self, key: str) -> str:
        return f"{self._key_prefix}:{key}" if self._key_prefix else key

    async def increment(self, key: str, policy: "RateLimitPolicy") -> CounterSnapshot:
        if not key:
            raise ValueError("key must be a non-empty string")

        window_ms = max(1, int(policy.window_seconds * 1000))
        try:
            result = await asyncio.wait_for(
                self._script(keys=[self._namespaced(key)], args=[str(window_ms)]),
                timeout=self._timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise CounterStoreError(
                code="counter_store_timeout",
                message="Shared counter store did not answer in time",
                details={"backend": self.kind.value},
            ) from exc
        except (RedisError, OSError) as exc:
            raise CounterStoreError(
                code="counter_store_unavailable",
                message=f"Shared counter store error: {type(exc).__name__}",
                details={"backend": self.kind.value},
            ) from exc

        try:
            count, ttl_ms = int(result[0]), int(result[1])
        except (TypeError, ValueError, IndexError) as exc:
            raise CounterStoreError(
                code="counter_store_bad_reply",
                message="Shared counter store returned an unexpected reply",
                details={"backend": self.kind.value},
            ) from exc

        return CounterSnapshot(count=count, reset_at=self._clock() + ttl_ms / 1000)

    async def ping(self) -> bool:
        try:
            return bool(
                await asyncio.wait_for(self._client.ping(), timeout=self._timeout_seconds)
            )
        except (asyncio.TimeoutError, RedisError, OSError) as exc:
            logger.warning(
                "counter_store.ping_failed",
                extra={"backend": self.kind.value, "error_type": type(exc).__name__},
            )
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
