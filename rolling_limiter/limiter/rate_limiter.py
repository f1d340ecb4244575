"""Sliding-window rate limiter over a shared scored-set store.

Each identity owns one window record: a set of microsecond timestamps scored
by themselves. A check prunes entries older than the window, reads what is
left and (in store-blocked mode) appends the current timestamp, all in one
atomic batch. The decision is derived from the entries read, which never
include the timestamp written by the same batch.

Concurrency:
    There is no in-process locking. With ``store_blocked=True`` the read and
    the write share one transaction, so at most ``max_in_interval`` calls are
    admitted per window no matter how many processes race. With
    ``store_blocked=False`` an admitted call records its timestamp in a second
    transaction; calls racing between the two can all be admitted, so the
    bound becomes ``max_in_interval`` plus the number of racing admits.

Clock:
    Timestamps come from the local wall clock. Every process sharing a store
    is assumed to have a roughly synchronized, non-decreasing clock; skew
    shifts window boundaries and is not compensated.
"""

from __future__ import annotations

import hashlib
import logging
import time
from dataclasses import dataclass
from typing import Callable, Sequence

from rolling_limiter.adapters.store.base import (
    AbstractWindowStore,
    Add,
    RangeAll,
    RemoveRangeByScore,
    SetExpiry,
    StoreOperation,
)
from rolling_limiter.core.errors import CorruptStateError, ValidationAppError
from rolling_limiter.limiter.config import RateLimiterConfig

logger = logging.getLogger(__name__)

MICROS_PER_SECOND = 1_000_000


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of a single check.

    Attributes:
        allowed: Whether the action may proceed now.
        wait_seconds: Seconds to wait before retrying; 0 when allowed.
        limit: Configured maximum actions per window.
        in_window: Timestamps found in the window before this call wrote.
        remaining: Admissions left in the window after this call.
        reset_after_micros: Time until the oldest entry leaves the window,
            or None when the window was empty.
    """

    allowed: bool
    wait_seconds: int
    limit: int
    in_window: int
    remaining: int
    reset_after_micros: int | None


def hash_key(key: str) -> str:
    """Hash a store key for logging without exposing the identity."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def _parse_timestamps(members: Sequence[str], key: str) -> list[int]:
    timestamps: list[int] = []
    for member in members:
        try:
            timestamps.append(int(member))
        except (TypeError, ValueError) as exc:
            raise CorruptStateError(
                code="corrupt_window_member",
                message="Window record holds a member that is not a timestamp",
                details={"key_hash": hash_key(key), "member": str(member)[:32]},
            ) from exc
    return timestamps


class RateLimiter:
    """Distributed sliding-window limiter.

    Example:
        >>> config = RateLimiterConfig.create(interval_millis=10_000, max_in_interval=2)
        >>> limiter = RateLimiter(config, InMemoryWindowStore())
        >>> limiter.check("user-42")
        0
    """

    def __init__(
        self,
        config: RateLimiterConfig,
        store: AbstractWindowStore,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the limiter.

        Args:
            config: Validated limiter configuration.
            store: Shared window store.
            clock: Time source returning UNIX time in seconds; read once per check.
        """
        self._config = config
        self._store = store
        self._clock = clock

    @property
    def config(self) -> RateLimiterConfig:
        return self._config

    @property
    def store(self) -> AbstractWindowStore:
        return self._store

    def check(self, identity: str) -> int:
        """Return seconds to wait before ``identity`` may act; 0 means admitted.

        Raises:
            ValidationAppError: If identity is empty.
            StoreUnavailableError: If the store cannot complete the transaction.
            CorruptStateError: If the window record holds a non-numeric member.
        """
        return self.evaluate(identity).wait_seconds

    def evaluate(self, identity: str) -> RateLimitDecision:
        """Run one check and return the full decision.

        See :meth:`check` for the errors raised.
        """
        if not identity:
            raise ValidationAppError(
                code="invalid_identity",
                message="identity must be a non-empty string",
            )

        cfg = self._config
        now = round(self._clock() * MICROS_PER_SECOND)
        key = cfg.key_for(identity)
        clear_before = now - cfg.interval_micros

        operations: list[StoreOperation] = [
            RemoveRangeByScore(key, 0, clear_before),
            RangeAll(key),
        ]
        if cfg.store_blocked:
            operations.extend(self._record_operations(key, now))

        results = self._store.atomic_batch(operations)
        user_set = _parse_timestamps(results[1], key)

        reset_after = user_set[0] + cfg.interval_micros - now if user_set else None
        wait_seconds = self._wait_seconds(user_set, now, reset_after)
        allowed = wait_seconds is None

        if allowed and not cfg.store_blocked:
            # Not atomic with the read above; concurrent callers may be admitted on the same snapshot.
            self._store.atomic_batch(self._record_operations(key, now))

        recorded = allowed or cfg.store_blocked
        decision = RateLimitDecision(
            allowed=allowed,
            wait_seconds=0 if wait_seconds is None else wait_seconds,
            limit=cfg.max_in_interval,
            in_window=len(user_set),
            remaining=max(0, cfg.max_in_interval - len(user_set) - int(recorded)),
            reset_after_micros=reset_after,
        )

        logger.debug(
            "rate_limit.check",
            extra={
                "key_hash": hash_key(key),
                "allowed": decision.allowed,
                "wait_s": decision.wait_seconds,
                "in_window": decision.in_window,
                "limit": decision.limit,
            },
        )
        return decision

    def _record_operations(self, key: str, now: int) -> list[StoreOperation]:
        return [
            Add(key, now, str(now)),
            SetExpiry(key, self._config.expiry_seconds),
        ]

    def _wait_seconds(
        self,
        user_set: list[int],
        now: int,
        until_interval_opportunity: int | None,
    ) -> int | None:
        """Derive the wait in whole seconds, or None when admitted.

        The interval cap binds first. Otherwise the minimum-spacing rule
        applies, capped by the interval figure when one exists. Both branches
        floor; a rejection is never reported as less than one second.
        """
        cfg = self._config

        if len(user_set) >= cfg.max_in_interval:
            # Non-empty here since max_in_interval >= 1
            wait = until_interval_opportunity // 1000 // 1000
            return max(wait, 1)

        if cfg.min_difference_millis is None or not user_set:
            return None

        since_last_request = now - user_set[-1]
        if since_last_request >= cfg.min_difference_micros:
            return None

        until_min_difference_millis = cfg.min_difference_millis - since_last_request // 1000
        wait_millis = min(until_interval_opportunity // 1000, until_min_difference_millis)
        return max(wait_millis // 1000, 1)
