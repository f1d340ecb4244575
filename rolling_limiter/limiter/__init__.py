"""Sliding-window limiter core: configuration and the check algorithm."""

from rolling_limiter.limiter.config import DEFAULT_NAMESPACE, RateLimiterConfig
from rolling_limiter.limiter.rate_limiter import RateLimitDecision, RateLimiter, hash_key

__all__ = [
    "DEFAULT_NAMESPACE",
    "RateLimitDecision",
    "RateLimiter",
    "RateLimiterConfig",
    "hash_key",
]
