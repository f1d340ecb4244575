"""Distributed sliding-window rate limiter backed by a shared scored-set store."""

from rolling_limiter.adapters.store import InMemoryWindowStore, RedisWindowStore
from rolling_limiter.limiter import RateLimitDecision, RateLimiter, RateLimiterConfig

__all__ = [
    "InMemoryWindowStore",
    "RateLimitDecision",
    "RateLimiter",
    "RateLimiterConfig",
    "RedisWindowStore",
]
