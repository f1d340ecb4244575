"""In-memory scored-set store.

Notes:
- Per-process only: separate processes each see their own windows, so the
  limit is only shared between threads of one process.
- Thread-safe: a single lock serializes every command and batch, which makes
  ``atomic_batch`` trivially indivisible.
- Mirrors the Redis semantics the limiter relies on (empty sets vanish,
  expiry only applies to existing keys, expired keys are invisible).
- Expired keys are dropped lazily on access and by a periodic sweep run from
  inside batches, so identities that stop calling do not stay resident.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

from rolling_limiter.adapters.store.base import (
    AbstractWindowStore,
    Add,
    RangeAll,
    RemoveRangeByScore,
    SetExpiry,
    StoreOperation,
)

logger = logging.getLogger(__name__)


@dataclass
class _ScoredSet:
    members: dict[str, int] = field(default_factory=dict)
    expires_at: float | None = None


class InMemoryWindowStore(AbstractWindowStore):
    """Dictionary-backed store with Redis-like sorted-set behaviour."""

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.time,
        sweep_interval_seconds: float = 30.0,
    ) -> None:
        """Initialize an empty store.

        Args:
            clock: Time source returning UNIX time in seconds, used for expiry.
            sweep_interval_seconds: Minimum clock time between two full scans
                for expired keys.
        """
        self._clock = clock
        self._sweep_interval = sweep_interval_seconds
        self._last_sweep = clock()
        self._lock = threading.RLock()
        self._sets: dict[str, _ScoredSet] = {}

    def __len__(self) -> int:
        """Number of keys currently held, including expired ones not yet swept."""

        with self._lock:
            return len(self._sets)

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return f"InMemoryWindowStore(keys={len(self._sets)})"

    def remove_range_by_score(self, key: str, min_score: int, max_score: int) -> int:
        return self.atomic_batch([RemoveRangeByScore(key, min_score, max_score)])[0]

    def range_all(self, key: str) -> list[str]:
        return self.atomic_batch([RangeAll(key)])[0]

    def add(self, key: str, score: int, member: str) -> int:
        return self.atomic_batch([Add(key, score, member)])[0]

    def set_expiry(self, key: str, seconds: int) -> bool:
        return self.atomic_batch([SetExpiry(key, seconds)])[0]

    def atomic_batch(self, operations: Sequence[StoreOperation]) -> list[Any]:
        with self._lock:
            self._sweep_expired_locked()
            return [self._apply_locked(op) for op in operations]

    def clear(self) -> None:
        """Drop every key."""

        with self._lock:
            self._sets.clear()

    def keys(self) -> list[str]:
        """Return the live (non-expired) keys."""

        with self._lock:
            return [key for key in list(self._sets) if self._get_locked(key) is not None]

    def _sweep_expired_locked(self) -> None:
        now = self._clock()
        if now - self._last_sweep < self._sweep_interval:
            return
        self._last_sweep = now

        expired = [
            key
            for key, scored in self._sets.items()
            if scored.expires_at is not None and scored.expires_at <= now
        ]
        for key in expired:
            del self._sets[key]
        if expired:
            logger.debug(
                "store.sweep",
                extra={"expired": len(expired), "size": len(self._sets)},
            )

    def _get_locked(self, key: str) -> _ScoredSet | None:
        scored = self._sets.get(key)
        if scored is None:
            return None
        if scored.expires_at is not None and scored.expires_at <= self._clock():
            del self._sets[key]
            logger.debug("store.key_expired", extra={"key_len": len(key)})
            return None
        return scored

    def _apply_locked(self, op: StoreOperation) -> Any:
        if isinstance(op, RemoveRangeByScore):
            scored = self._get_locked(op.key)
            if scored is None:
                return 0
            doomed = [m for m, s in scored.members.items() if op.min_score <= s <= op.max_score]
            for member in doomed:
                del scored.members[member]
            if not scored.members:
                del self._sets[op.key]
            return len(doomed)

        if isinstance(op, RangeAll):
            scored = self._get_locked(op.key)
            if scored is None:
                return []
            # Ties broken lexicographically, as Redis does
            return [m for m, _ in sorted(scored.members.items(), key=lambda kv: (kv[1], kv[0]))]

        if isinstance(op, Add):
            scored = self._get_locked(op.key)
            if scored is None:
                scored = self._sets[op.key] = _ScoredSet()
            is_new = op.member not in scored.members
            scored.members[op.member] = op.score
            return int(is_new)

        if isinstance(op, SetExpiry):
            scored = self._get_locked(op.key)
            if scored is None:
                return False
            if op.seconds <= 0:
                del self._sets[op.key]
            else:
                scored.expires_at = self._clock() + op.seconds
            return True

        raise TypeError(f"Unsupported store operation: {type(op).__name__}")
