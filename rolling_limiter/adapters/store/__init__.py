"""Window store adapters.

The limiter talks to its shared state through ``AbstractWindowStore`` only,
so Redis and the in-memory store are interchangeable.
"""

from rolling_limiter.adapters.store.base import (
    AbstractWindowStore,
    Add,
    RangeAll,
    RemoveRangeByScore,
    SetExpiry,
    StoreOperation,
)
from rolling_limiter.adapters.store.in_memory import InMemoryWindowStore
from rolling_limiter.adapters.store.redis_store import RedisWindowStore

__all__ = [
    "AbstractWindowStore",
    "Add",
    "InMemoryWindowStore",
    "RangeAll",
    "RedisWindowStore",
    "RemoveRangeByScore",
    "SetExpiry",
    "StoreOperation",
]
