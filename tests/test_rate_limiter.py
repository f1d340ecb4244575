"""Unit tests for the sliding-window check algorithm."""

import threading
from unittest.mock import Mock

import pytest

from rolling_limiter.adapters.store.base import (
    AbstractWindowStore,
    Add,
    RangeAll,
    RemoveRangeByScore,
    SetExpiry,
)
from rolling_limiter.adapters.store.in_memory import InMemoryWindowStore
from rolling_limiter.core.errors import CorruptStateError, StoreUnavailableError, ValidationAppError
from rolling_limiter.limiter.config import RateLimiterConfig
from rolling_limiter.limiter.rate_limiter import RateLimiter

from tests.conftest import FakeClock


def _limiter(store, clock, **options) -> RateLimiter:
    options.setdefault("interval_millis", 10_000)
    options.setdefault("max_in_interval", 2)
    return RateLimiter(RateLimiterConfig.create(**options), store, clock=clock)


class TestIntervalCap:
    def test_third_call_in_window_is_rejected(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock)

        assert limiter.check("A") == 0
        clock.advance_ms(1)
        assert limiter.check("A") == 0
        clock.advance_ms(1)

        # Oldest entry leaves the window 9.998s from now
        assert limiter.check("A") == 9

    def test_first_n_calls_admitted_then_rejected(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock, max_in_interval=5)

        results = []
        for _ in range(6):
            results.append(limiter.check("user"))
            clock.advance_ms(100)

        assert results[:5] == [0, 0, 0, 0, 0]
        assert results[5] > 0

    def test_store_blocked_records_rejected_attempts(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock, store_blocked=True)

        for _ in range(3):
            limiter.check("A")
            clock.advance_ms(1)

        assert len(store.range_all("rate-limiter-A")) == 3

    def test_store_unblocked_only_records_admissions(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock, store_blocked=False)

        assert limiter.check("A") == 0
        clock.advance_ms(1)
        assert limiter.check("A") == 0
        clock.advance_ms(1)
        assert limiter.check("A") > 0

        assert len(store.range_all("rate-limiter-A")) == 2

        # Still only the two admitted timestamps near the end of the window
        clock.advance_ms(9_997)
        decision = limiter.evaluate("A")
        assert decision.allowed is False
        assert decision.in_window == 2
        # Less than a second remains but a rejection never reads as 0
        assert decision.wait_seconds == 1

    def test_window_slides_past_oldest_entry(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock, store_blocked=False)

        limiter.check("A")
        clock.advance_ms(1)
        limiter.check("A")

        # The first timestamp sits exactly on the prune boundary and is removed
        clock.advance_ms(9_999)
        assert limiter.check("A") == 0

    def test_identities_are_isolated(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock, max_in_interval=1)

        assert limiter.check("A") == 0
        assert limiter.check("A") > 0
        assert limiter.check("B") == 0

    def test_namespace_prefixes_store_key(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock, namespace="api:")

        limiter.check("42")

        assert store.keys() == ["api:42"]


class TestMinimumSpacing:
    def test_spacing_binds_before_interval_cap(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock, max_in_interval=100, min_difference_millis=2_000)

        assert limiter.check("A") == 0
        clock.advance_ms(500)

        assert limiter.check("A") == 1

    def test_spacing_wait_is_never_reported_as_zero(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock, max_in_interval=100, min_difference_millis=2_000)

        limiter.check("A")
        clock.advance_ms(1_800)

        decision = limiter.evaluate("A")
        assert decision.allowed is False
        assert decision.wait_seconds == 1

    def test_spacing_wait_capped_by_interval_opportunity(self, store, clock: FakeClock) -> None:
        limiter = _limiter(
            store, clock, interval_millis=3_000, max_in_interval=10, min_difference_millis=5_000
        )

        limiter.check("A")
        clock.advance_ms(100)

        # Spacing would need 4.9s, but the entry leaves the window in 2.9s
        assert limiter.check("A") == 2

    def test_call_after_spacing_elapsed_is_admitted(self, store, clock: FakeClock) -> None:
        limiter = _limiter(
            store, clock, max_in_interval=100, min_difference_millis=2_000, store_blocked=False
        )

        assert limiter.check("A") == 0
        clock.advance_ms(500)
        assert limiter.check("A") > 0
        clock.advance_ms(1_500)

        # Rejected attempt was not recorded, so spacing counts from the first call
        assert limiter.check("A") == 0

    def test_store_blocked_rejection_resets_spacing(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock, max_in_interval=100, min_difference_millis=2_000)

        limiter.check("A")
        clock.advance_ms(500)
        limiter.check("A")
        clock.advance_ms(1_500)

        assert limiter.check("A") > 0


class TestDecision:
    def test_decision_fields_on_admission(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock, max_in_interval=3)

        first = limiter.evaluate("A")
        clock.advance_ms(10)
        second = limiter.evaluate("A")

        assert first.allowed is True
        assert first.wait_seconds == 0
        assert first.in_window == 0
        assert first.remaining == 2
        assert first.reset_after_micros is None

        assert second.in_window == 1
        assert second.remaining == 1
        assert second.reset_after_micros == 9_990_000

    def test_check_never_negative(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock, max_in_interval=3, min_difference_millis=700)

        for step in range(60):
            assert limiter.check("A") >= 0
            clock.advance_ms(137 * (step % 5))

    def test_idle_identity_behaves_like_new(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock, max_in_interval=1)

        limiter.check("A")
        assert limiter.check("A") > 0

        clock.advance_ms(10_001)
        decision = limiter.evaluate("A")

        assert decision.allowed is True
        assert decision.in_window == 0


class TestStoreInteraction:
    def test_store_blocked_issues_single_batch(self, clock: FakeClock) -> None:
        store = Mock(spec=AbstractWindowStore)
        store.atomic_batch.return_value = [0, [], 1, True]
        limiter = _limiter(store, clock, store_blocked=True)

        assert limiter.check("A") == 0

        now = round(clock() * 1_000_000)
        store.atomic_batch.assert_called_once_with(
            [
                RemoveRangeByScore("rate-limiter-A", 0, now - 10_000_000),
                RangeAll("rate-limiter-A"),
                Add("rate-limiter-A", now, str(now)),
                SetExpiry("rate-limiter-A", 10),
            ]
        )

    def test_unblocked_admission_writes_in_second_batch(self, clock: FakeClock) -> None:
        store = Mock(spec=AbstractWindowStore)
        store.atomic_batch.side_effect = [[0, []], [1, True]]
        limiter = _limiter(store, clock, store_blocked=False)

        assert limiter.check("A") == 0

        now = round(clock() * 1_000_000)
        first, second = store.atomic_batch.call_args_list
        assert first.args[0] == [
            RemoveRangeByScore("rate-limiter-A", 0, now - 10_000_000),
            RangeAll("rate-limiter-A"),
        ]
        assert second.args[0] == [
            Add("rate-limiter-A", now, str(now)),
            SetExpiry("rate-limiter-A", 10),
        ]

    def test_unblocked_rejection_writes_nothing(self, clock: FakeClock) -> None:
        now = round(clock() * 1_000_000)
        store = Mock(spec=AbstractWindowStore)
        store.atomic_batch.return_value = [0, [str(now - 2_000), str(now - 1_000)]]
        limiter = _limiter(store, clock, store_blocked=False)

        assert limiter.check("A") > 0
        store.atomic_batch.assert_called_once()

    def test_corrupt_member_raises(self, store, clock: FakeClock) -> None:
        store.add("rate-limiter-A", round(clock() * 1_000_000), "not-a-timestamp")
        limiter = _limiter(store, clock)

        with pytest.raises(CorruptStateError) as exc_info:
            limiter.check("A")

        assert exc_info.value.code == "corrupt_window_member"

    def test_store_failure_propagates(self, clock: FakeClock) -> None:
        store = Mock(spec=AbstractWindowStore)
        store.atomic_batch.side_effect = StoreUnavailableError(
            code="store_unavailable", message="down"
        )
        limiter = _limiter(store, clock)

        with pytest.raises(StoreUnavailableError):
            limiter.check("A")

    def test_empty_identity_rejected(self, store, clock: FakeClock) -> None:
        limiter = _limiter(store, clock)

        with pytest.raises(ValidationAppError):
            limiter.check("")


class _ReadBarrierStore(InMemoryWindowStore):
    """Holds every read-only batch until all racing callers have read."""

    def __init__(self, parties: int) -> None:
        super().__init__()
        self._barrier = threading.Barrier(parties, timeout=5)

    def atomic_batch(self, operations):
        results = super().atomic_batch(operations)
        if not any(isinstance(op, Add) for op in operations):
            self._barrier.wait()
        return results


class TestConcurrency:
    @staticmethod
    def _race(limiter: RateLimiter, callers: int) -> list[int]:
        results: list[int] = []
        lock = threading.Lock()

        def _call() -> None:
            wait = limiter.check("shared")
            with lock:
                results.append(wait)

        threads = [threading.Thread(target=_call) for _ in range(callers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def test_store_blocked_admits_at_most_one(self) -> None:
        config = RateLimiterConfig.create(interval_millis=60_000, max_in_interval=1)
        limiter = RateLimiter(config, InMemoryWindowStore())

        results = self._race(limiter, callers=16)

        assert len(results) == 16
        assert results.count(0) == 1

    def test_store_unblocked_race_can_admit_every_caller(self) -> None:
        callers = 4
        config = RateLimiterConfig.create(
            interval_millis=60_000, max_in_interval=1, store_blocked=False
        )
        limiter = RateLimiter(config, _ReadBarrierStore(parties=callers))

        results = self._race(limiter, callers=callers)

        # All callers read the empty window before anyone recorded
        assert results == [0] * callers


def test_idle_identities_do_not_stay_resident(store, clock: FakeClock) -> None:
    limiter = _limiter(store, clock, interval_millis=1_000, max_in_interval=5)
    for idx in range(1_000):
        limiter.check(f"user-{idx}")
    assert len(store) == 1_000

    clock.advance_ms(3_600_000)
    limiter.check("newcomer")

    assert len(store) <= 1
