"""Redis-backed window store.

Window records are Redis sorted sets. ``atomic_batch`` queues the operations
in a MULTI/EXEC pipeline, so the whole batch runs without another client's
commands interleaving on the same key. Connection pooling, reconnects and
command timeouts are left to the redis client.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from redis import Redis
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from rolling_limiter.adapters.store.base import (
    AbstractWindowStore,
    Add,
    RangeAll,
    RemoveRangeByScore,
    SetExpiry,
    StoreOperation,
)
from rolling_limiter.core.errors import StoreUnavailableError

logger = logging.getLogger(__name__)


@contextmanager
def _translate_redis_errors(command: str) -> Iterator[None]:
    """Re-raise redis client failures as StoreUnavailableError."""

    try:
        yield
    except (RedisConnectionError, RedisTimeoutError) as exc:
        logger.error(
            "store.unavailable",
            extra={"command": command, "error_type": type(exc).__name__},
        )
        raise StoreUnavailableError(
            code="store_unavailable",
            message="Rate limit store is unreachable",
            details={"backend": "redis", "hint": str(exc)},
        ) from exc
    except RedisError as exc:
        logger.error(
            "store.transaction_failed",
            extra={"command": command, "error_type": type(exc).__name__},
        )
        raise StoreUnavailableError(
            code="store_transaction_failed",
            message="Rate limit store rejected the transaction",
            details={"backend": "redis", "hint": str(exc)},
        ) from exc


class RedisWindowStore(AbstractWindowStore):
    """Sorted-set store on top of a ``redis.Redis`` client.

    The client must be created with ``decode_responses=True`` so members come
    back as ``str``.
    """

    def __init__(self, client: Redis) -> None:
        self._client = client

    @classmethod
    def from_url(cls, url: str, *, socket_timeout: float | None = None) -> "RedisWindowStore":
        """Build a store with its own connection pool.

        Args:
            url: Redis URL, e.g. ``redis://localhost:6379/0``.
            socket_timeout: Per-command timeout in seconds.
        """
        client = Redis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        return cls(client)

    def remove_range_by_score(self, key: str, min_score: int, max_score: int) -> int:
        with _translate_redis_errors("zremrangebyscore"):
            return int(self._client.zremrangebyscore(key, min_score, max_score))

    def range_all(self, key: str) -> list[str]:
        with _translate_redis_errors("zrange"):
            return list(self._client.zrange(key, 0, -1))

    def add(self, key: str, score: int, member: str) -> int:
        with _translate_redis_errors("zadd"):
            return int(self._client.zadd(key, {member: score}))

    def set_expiry(self, key: str, seconds: int) -> bool:
        with _translate_redis_errors("expire"):
            return bool(self._client.expire(key, seconds))

    def atomic_batch(self, operations: Sequence[StoreOperation]) -> list[Any]:
        with _translate_redis_errors("multi"):
            with self._client.pipeline(transaction=True) as pipe:
                for op in operations:
                    _queue(pipe, op)
                results = pipe.execute()
        return [_normalize(op, result) for op, result in zip(operations, results)]

    def ping(self) -> bool:
        try:
            return bool(self._client.ping())
        except RedisError as exc:
            logger.warning("store.ping_failed", extra={"error_type": type(exc).__name__})
            return False


def _queue(pipe: Any, op: StoreOperation) -> None:
    if isinstance(op, RemoveRangeByScore):
        pipe.zremrangebyscore(op.key, op.min_score, op.max_score)
    elif isinstance(op, RangeAll):
        pipe.zrange(op.key, 0, -1)
    elif isinstance(op, Add):
        pipe.zadd(op.key, {op.member: op.score})
    elif isinstance(op, SetExpiry):
        pipe.expire(op.key, op.seconds)
    else:
        raise TypeError(f"Unsupported store operation: {type(op).__name__}")


def _normalize(op: StoreOperation, result: Any) -> Any:
    if isinstance(op, RangeAll):
        return list(result)
    if isinstance(op, SetExpiry):
        return bool(result)
    return int(result)
