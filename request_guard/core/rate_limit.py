"""Rate limiting policy engine.

Turns the raw window counts kept by a counter store into allow/deny
decisions for a named policy.

Rate limiting strategy:
- Fixed window per (policy, identifier), anchored at the window's first hit.
- A burst straddling a window boundary can admit up to twice the limit; the
  goal is coarse abuse deterrence, not exact quota accounting.
- Store failures fail open: availability of the shared store must never turn
  into a denial of service for the whole application.
"""

from __future__ import annotations

import hashlib
import logging
import math
import time
from dataclasses import dataclass
from typing import Callable

from request_guard.adapters.counter_store.base import AbstractCounterStore
from request_guard.core.errors import CounterStoreError
from request_guard.core.metrics import record_rate_limit_decision
from request_guard.core.policies import RateLimitPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitDecision:
    """Result of a rate limit check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Remaining requests in the current window (0 when blocked).
        reset_at: UNIX epoch seconds when the current window resets.
        retry_after_seconds: Suggested wait in whole seconds, only when blocked.
        fail_open: True when the store failed and the request was let through.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int | None = None
    fail_open: bool = False

    @property
    def reset_at_epoch(self) -> int:
        """Reset time rounded up to whole epoch seconds, for headers."""
        return int(math.ceil(self.reset_at))

    def headers(self) -> dict[str, str]:
        """Response metadata describing this decision."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(self.reset_at_epoch),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after_seconds or 1)
        return headers


def hash_identifier(identifier: str) -> str:
    """Hash an identifier for logging without exposing addresses or ids."""
    return hashlib.sha256(identifier.encode()).hexdigest()[:16]


class RateLimiter:
    """Policy engine on top of a counter store.

    The limiter is constructed once and shared by all requests; it holds no
    state of its own beyond the store.
    """

    def __init__(
        self,
        store: AbstractCounterStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._clock = clock

    @property
    def store(self) -> AbstractCounterStore:
        return self._store

    async def allow(self, identifier: str, policy: RateLimitPolicy) -> RateLimitDecision:
        """Consume one unit of ``identifier``'s budget under ``policy``.

        Args:
            identifier: Partition key such as ``ip:203.0.113.5``.
            policy: Quota to enforce.

        Returns:
            RateLimitDecision for this request.
        """
        key = f"{policy.name.value}:{identifier}"

        try:
            snapshot = await self._store.increment(key, policy)
        except CounterStoreError as exc:
            logger.warning(
                "rate_limit.store_unavailable",
                extra={
                    "policy": policy.name.value,
                    "key_hash": hash_identifier(identifier),
                    "backend": self._store.kind.value,
                    "error_code": exc.code,
                },
            )
            record_rate_limit_decision(policy.name.value, "fail_open")
            return RateLimitDecision(
                allowed=True,
                limit=policy.max_requests,
                remaining=policy.max_requests,
                reset_at=self._clock() + policy.window_seconds,
                fail_open=True,
            )

        remaining = max(0, policy.max_requests - snapshot.count)
        if snapshot.count <= policy.max_requests:
            record_rate_limit_decision(policy.name.value, "allowed")
            return RateLimitDecision(
                allowed=True,
                limit=policy.max_requests,
                remaining=remaining,
                reset_at=snapshot.reset_at,
            )

        retry_after = max(1, int(math.ceil(snapshot.reset_at - self._clock())))
        record_rate_limit_decision(policy.name.value, "rejected")
        return RateLimitDecision(
            allowed=False,
            limit=policy.max_requests,
            remaining=remaining,
            reset_at=snapshot.reset_at,
            retry_after_seconds=retry_after,
        )
