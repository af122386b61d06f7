"""Counter store factory.

The backend is chosen exactly once, at startup, from configuration. A failing
shared store is never swapped for the local one at request time.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from request_guard.adapters.counter_store.base import AbstractCounterStore, CounterStoreKind
from request_guard.adapters.counter_store.in_memory import InMemoryCounterStore
from request_guard.adapters.counter_store.redis_store import RedisCounterStore
from request_guard.core.config import StoreSettings

logger = logging.getLogger(__name__)


def select_store_kind(store_settings: StoreSettings) -> CounterStoreKind:
    """Pick the backend from configuration.

    Args:
        store_settings: Store configuration.

    Returns:
        SHARED when a Redis URL is configured, LOCAL otherwise.
    """
    if store_settings.redis_url and store_settings.redis_url.strip():
        return CounterStoreKind.SHARED
    return CounterStoreKind.LOCAL


def build_counter_store(
    store_settings: StoreSettings,
    *,
    clock: Callable[[], float] = time.time,
) -> AbstractCounterStore:
    """Create the configured counter store.

    Args:
        store_settings: Store configuration.
        clock: Time source shared with the rate limiter.

    Returns:
        AbstractCounterStore: Local or Redis-backed store.
    """
    kind = select_store_kind(store_settings)

    store: AbstractCounterStore
    if kind is CounterStoreKind.SHARED:
        store = RedisCounterStore.from_url(
            store_settings.redis_url.strip(),  # type: ignore[union-attr]
            key_prefix=store_settings.key_prefix,
            timeout_seconds=store_settings.timeout_seconds,
            clock=clock,
        )
    else:
        store = InMemoryCounterStore(clock=clock)

    logger.info(
        "counter_store.selected",
        extra={
            "backend": kind.value,
            "timeout_s": store_settings.timeout_seconds if kind is CounterStoreKind.SHARED else None,
        },
    )
    return store
