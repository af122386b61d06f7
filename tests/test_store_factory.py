"""Tests for startup-time counter store selection."""

from unittest.mock import Mock, patch

import pytest

from request_guard.adapters.counter_store.base import CounterStoreKind
from request_guard.adapters.counter_store.factory import build_counter_store, select_store_kind
from request_guard.adapters.counter_store.in_memory import InMemoryCounterStore
from request_guard.core.config import StoreSettings


@pytest.mark.parametrize("url", [None, "", "   "])
def test_local_store_without_redis_url(url: str | None) -> None:
    store_settings = StoreSettings(redis_url=url)

    assert select_store_kind(store_settings) is CounterStoreKind.LOCAL
    assert isinstance(build_counter_store(store_settings), InMemoryCounterStore)


def test_shared_store_with_redis_url() -> None:
    store_settings = StoreSettings(
        redis_url=" redis://cache:6379/0 ",
        key_prefix="rg",
        timeout_seconds=0.5,
    )
    clock = Mock(return_value=0.0)
    sentinel = Mock()

    with patch(
        "request_guard.adapters.counter_store.factory.RedisCounterStore.from_url",
        return_value=sentinel,
    ) as from_url:
        store = build_counter_store(store_settings, clock=clock)

    assert select_store_kind(store_settings) is CounterStoreKind.SHARED
    assert store is sentinel
    from_url.assert_called_once_with(
        "redis://cache:6379/0",
        key_prefix="rg",
        timeout_seconds=0.5,
        clock=clock,
    )
