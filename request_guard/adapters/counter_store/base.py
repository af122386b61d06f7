"""Counter store interfaces.

The rate limiter depends on this abstraction (not the concrete implementation)
so the storage backend can be swapped without touching the policy engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from request_guard.core.policies import RateLimitPolicy


class CounterStoreKind(str, Enum):
    """Available counter store backends."""

    LOCAL = "local"
    SHARED = "shared"


@dataclass(frozen=True)
class CounterSnapshot:
    """State of a window right after an increment.

    Attributes:
        count: Hits recorded in the current window, including this one.
        reset_at: UNIX epoch seconds when the current window ends.
    """

    count: int
    reset_at: float


class AbstractCounterStore(ABC):
    """Atomic increment-or-initialize over fixed windows."""

    kind: CounterStoreKind

    @abstractmethod
    async def increment(self, key: str, policy: "RateLimitPolicy") -> CounterSnapshot:
        """Record one hit for ``key`` in the policy's current window.

        Implementations must be atomic per key: concurrent callers never both
        observe the first hit of a window and no hit is lost.

        Args:
            key: Partition key (already namespaced by the caller).
            policy: Policy providing the window length.

        Returns:
            CounterSnapshot after the increment.

        Raises:
            CounterStoreError: If the backend cannot be reached.
        """
        raise NotImplementedError

    async def ping(self) -> bool:
        """Report whether the backend is reachable."""
        return True

    async def aclose(self) -> None:
        """Release backend resources."""
        return None
