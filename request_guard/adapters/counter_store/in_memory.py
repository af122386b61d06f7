"""In-memory fixed-window counter store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: a single lock guards the whole map.
- Expired windows are overwritten on the next hit for the same key; keys that
  go idle are never swept and live until the process restarts.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from request_guard.adapters.counter_store.base import (
    AbstractCounterStore,
    CounterSnapshot,
    CounterStoreKind,
)

if TYPE_CHECKING:
    from request_guard.core.policies import RateLimitPolicy


@dataclass
class _WindowState:
    count: int
    reset_at: float


class InMemoryCounterStore(AbstractCounterStore):
    """Counter store keeping fixed windows in a process-local dict.

    A window starts at the first hit for a key and lasts ``window_seconds``.
    The store only counts; comparing the count with the policy limit is the
    rate limiter's job.
    """

    kind = CounterStoreKind.LOCAL

    def __init__(self, *, clock: Callable[[], float] = time.time) -> None:
        """Initialize the store.

        Args:
            clock: Time source function returning UNIX time in seconds.
        """
        self._clock = clock
        self._lock = threading.Lock()
        self._state_by_key: dict[str, _WindowState] = {}

    def hit(self, key: str, window_seconds: float) -> CounterSnapshot:
        """Synchronously record one hit for ``key``.

        Args:
            key: Partition key.
            window_seconds: Length of a fresh window.

        Returns:
            CounterSnapshot after the increment.

        Raises:
            ValueError: If key is empty or window_seconds is not positive.
        """
        if not key:
            raise ValueError("key must be a non-empty string")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be > 0")

        with self._lock:
            now = self._clock()
            state = self._state_by_key.get(key)
            if state is None or now >= state.reset_at:
                state = _WindowState(count=1, reset_at=now + window_seconds)
                self._state_by_key[key] = state
            else:
                state.count += 1
            return CounterSnapshot(count=state.count, reset_at=state.reset_at)

    async def increment(self, key: str, policy: "RateLimitPolicy") -> CounterSnapshot:
        return self.hit(key, policy.window_seconds)

    def size(self) -> int:
        """Number of keys currently tracked, expired windows included."""
        with self._lock:
            return len(self._state_by_key)
