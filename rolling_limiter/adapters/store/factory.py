"""Factory for window store instances."""

from __future__ import annotations

from rolling_limiter.adapters.store.base import AbstractWindowStore
from rolling_limiter.adapters.store.in_memory import InMemoryWindowStore
from rolling_limiter.adapters.store.redis_store import RedisWindowStore
from rolling_limiter.core.config import StoreSettings, settings
from rolling_limiter.core.errors import InvalidConfigurationError


def create_window_store(store_settings: StoreSettings | None = None) -> AbstractWindowStore:
    """Instantiate the configured store backend.

    Args:
        store_settings: Store settings; defaults to the global settings.

    Returns:
        AbstractWindowStore: Ready-to-use store. Redis connections are opened
        lazily on first command.

    Raises:
        InvalidConfigurationError: If the backend is unknown or the redis
            backend has no URL.
    """
    cfg = store_settings or settings.store
    backend = cfg.backend.lower()

    if backend == "memory":
        return InMemoryWindowStore()

    if backend == "redis":
        if not cfg.redis_url:
            raise InvalidConfigurationError(
                code="store_missing_redis_url",
                message="Redis store backend requires STORE_REDIS_URL environment variable",
                details={"backend": backend, "fields": ["redis_url"]},
            )
        return RedisWindowStore.from_url(
            cfg.redis_url,
            socket_timeout=cfg.socket_timeout_seconds,
        )

    raise InvalidConfigurationError(
        code="store_unknown_backend",
        message=f"Unknown store backend: '{backend}'. Supported backends: memory, redis",
        details={"backend": backend, "fields": ["backend"]},
    )
