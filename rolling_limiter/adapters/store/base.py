"""Window store interface.

The limiter depends only on this abstraction: a key-value store holding
scored sets that can run several commands as one indivisible unit. Redis is
the production backend; the in-memory store is the single-process backend and
the test double.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Sequence, Union


@dataclass(frozen=True)
class RemoveRangeByScore:
    """Remove members whose score lies in ``[min_score, max_score]``."""

    key: str
    min_score: int
    max_score: int


@dataclass(frozen=True)
class RangeAll:
    """Read every member of the set, ascending by score."""

    key: str


@dataclass(frozen=True)
class Add:
    """Insert ``member`` with ``score``, replacing the score of an existing member."""

    key: str
    score: int
    member: str


@dataclass(frozen=True)
class SetExpiry:
    """Set or refresh the key's time-to-live."""

    key: str
    seconds: int


StoreOperation = Union[RemoveRangeByScore, RangeAll, Add, SetExpiry]


class AbstractWindowStore(ABC):
    """Interface for scored-set stores backing the sliding window."""

    @abstractmethod
    def remove_range_by_score(self, key: str, min_score: int, max_score: int) -> int:
        """Remove members with score in the inclusive range.

        Returns:
            Number of members removed.
        """
        raise NotImplementedError

    @abstractmethod
    def range_all(self, key: str) -> list[str]:
        """Return all members ordered by ascending score (empty if missing)."""
        raise NotImplementedError

    @abstractmethod
    def add(self, key: str, score: int, member: str) -> int:
        """Insert or re-score a member.

        Returns:
            1 if the member is new, 0 if only its score changed.
        """
        raise NotImplementedError

    @abstractmethod
    def set_expiry(self, key: str, seconds: int) -> bool:
        """Set a time-to-live on the key.

        Returns:
            True if the key exists and the expiry was applied.
        """
        raise NotImplementedError

    @abstractmethod
    def atomic_batch(self, operations: Sequence[StoreOperation]) -> list[Any]:
        """Execute all operations as one indivisible unit.

        Each operation observes the effects of the ones queued before it, and
        no other client's commands interleave. Results come back in order.

        Raises:
            StoreUnavailableError: If the store is unreachable or the
                transaction fails.
        """
        raise NotImplementedError

    def ping(self) -> bool:
        """Return True when the store is reachable."""
        return True
