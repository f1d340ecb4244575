"""Tests for window store backend selection."""

import pytest

from rolling_limiter.adapters.store.factory import create_window_store
from rolling_limiter.adapters.store.in_memory import InMemoryWindowStore
from rolling_limiter.adapters.store.redis_store import RedisWindowStore
from rolling_limiter.core.config import StoreSettings
from rolling_limiter.core.errors import InvalidConfigurationError


def test_memory_backend() -> None:
    store = create_window_store(StoreSettings(backend="memory"))

    assert isinstance(store, InMemoryWindowStore)


def test_redis_backend_is_case_insensitive() -> None:
    store = create_window_store(StoreSettings(backend="Redis", redis_url="redis://localhost:6379/0"))

    assert isinstance(store, RedisWindowStore)


def test_redis_backend_requires_url() -> None:
    with pytest.raises(InvalidConfigurationError) as exc_info:
        create_window_store(StoreSettings(backend="redis", redis_url=None))

    assert exc_info.value.code == "store_missing_redis_url"


def test_unknown_backend_rejected() -> None:
    with pytest.raises(InvalidConfigurationError) as exc_info:
        create_window_store(StoreSettings(backend="memcached"))

    assert exc_info.value.code == "store_unknown_backend"
