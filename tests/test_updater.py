"""Tests for the rating updater under concurrency."""

import asyncio
import time
from contextlib import contextmanager

import pytest

from harbour_battles.core.config import RankingConfig
from harbour_battles.core.errors import (
    ConcurrencyExhausted,
    SameProject,
    StoreTimeout,
    UnknownProject,
)
from harbour_battles.models import Project
from harbour_battles.ranking import update_elo
from harbour_battles.services.rating import ProjectLocks, RatingUpdater
from harbour_battles.services.storage import AsyncStore, MemoryRatingStore


class _RacingStore(MemoryRatingStore):
    """Store where another writer moves the rating before the first ``misses`` CAS calls."""

    def __init__(self, misses: int) -> None:
        super().__init__()
        self.misses = misses
        self.cas_calls = 0

    @contextmanager
    def transaction(self, deadline=None):
        with super().transaction(deadline) as txn:
            real_cas = txn.compare_and_set

            def _cas(project_id, expected, new):
                self.cas_calls += 1
                if self.misses > 0:
                    self.misses -= 1
                    return False
                return real_cas(project_id, expected, new)

            txn.compare_and_set = _cas
            yield txn


def _seed(store, ratings):
    for pid, rating in ratings.items():
        store.add_project(Project(id=pid, title=pid.upper(), rating=rating))
    return store


class TestRatingUpdater:
    """Tests for single updates."""

    async def test_apply_result(self):
        """A single result moves both ratings by the Elo delta."""
        store = _seed(MemoryRatingStore(), {"a": 1500.0, "b": 1500.0})
        updater = RatingUpdater(AsyncStore(store))

        winner, loser = await updater.apply_result("a", "b")

        assert winner == pytest.approx(1516.0)
        assert loser == pytest.approx(1484.0)
        assert store.get("a").rating == pytest.approx(1516.0)
        assert store.get("b").rating == pytest.approx(1484.0)

    async def test_uses_ranking_config(self):
        """K-factor comes from the ranking config."""
        store = _seed(MemoryRatingStore(), {"a": 1500.0, "b": 1500.0})
        updater = RatingUpdater(AsyncStore(store), RankingConfig(k_factor=10))

        winner, _ = await updater.apply_result("a", "b")

        assert winner == pytest.approx(1505.0)

    async def test_same_project(self):
        """A project cannot beat itself."""
        store = _seed(MemoryRatingStore(), {"a": 1500.0})
        with pytest.raises(SameProject):
            await RatingUpdater(AsyncStore(store)).apply_result("a", "a")

    async def test_unknown_project(self):
        """Unknown IDs are reported without touching the store."""
        store = _seed(MemoryRatingStore(), {"a": 1500.0})
        with pytest.raises(UnknownProject, match="ghost"):
            await RatingUpdater(AsyncStore(store)).apply_result("a", "ghost")
        assert store.get("a").rating == 1500.0

    async def test_record_runs_in_same_transaction(self):
        """A failing record callback rolls the rating change back."""
        store = _seed(MemoryRatingStore(), {"a": 1500.0, "b": 1500.0})
        updater = RatingUpdater(AsyncStore(store))

        def _record(txn, change):
            raise RuntimeError("disk full")

        with pytest.raises(RuntimeError, match="disk full"):
            await updater.apply("a", "b", record=_record)

        assert store.get("a").rating == 1500.0
        assert store.get("b").rating == 1500.0


class TestCompareAndSetRetries:
    """Tests for retry behaviour when compare-and-set misses."""

    async def test_retries_then_succeeds(self):
        """A lost race is retried and the delta recomputed."""
        store = _seed(_RacingStore(misses=2), {"a": 1500.0, "b": 1500.0})
        updater = RatingUpdater(AsyncStore(store), max_attempts=5)

        winner, loser = await updater.apply_result("a", "b")

        assert winner == pytest.approx(1516.0)
        assert loser == pytest.approx(1484.0)
        # Two misses plus winner and loser writes on the successful attempt.
        assert store.cas_calls == 4

    async def test_exhaustion(self):
        """Every attempt missing raises ConcurrencyExhausted and changes nothing."""
        store = _seed(_RacingStore(misses=1_000), {"a": 1500.0, "b": 1500.0})
        updater = RatingUpdater(AsyncStore(store), max_attempts=3)

        with pytest.raises(ConcurrencyExhausted) as exc_info:
            await updater.apply_result("a", "b")

        assert exc_info.value.attempts == 3
        assert exc_info.value.retryable is True
        assert store.cas_calls == 3
        assert store.get("a").rating == 1500.0
        assert store.get("b").rating == 1500.0


class TestConcurrentUpdates:
    """Tests for concurrent updates."""

    async def test_concurrent_results_equal_sequential(self):
        """N concurrent wins give the same ratings as N sequential ones."""
        store = _seed(MemoryRatingStore(), {"a": 1500.0, "b": 1500.0})
        updater = RatingUpdater(AsyncStore(store))
        n = 25

        await asyncio.gather(*(updater.apply_result("a", "b") for _ in range(n)))

        expected_a, expected_b = 1500.0, 1500.0
        for _ in range(n):
            expected_a, expected_b = update_elo(expected_a, expected_b)
        assert store.get("a").rating == pytest.approx(expected_a)
        assert store.get("b").rating == pytest.approx(expected_b)

    async def test_concurrent_mixed_results_conserve_points(self):
        """Interleaved results on overlapping pairs keep the total fixed."""
        ratings = {"a": 1500.0, "b": 1550.0, "c": 1450.0}
        store = _seed(MemoryRatingStore(), ratings)
        updater = RatingUpdater(AsyncStore(store))
        results = [("a", "b"), ("b", "c"), ("c", "a"), ("b", "a"), ("a", "c")] * 6

        await asyncio.gather(*(updater.apply_result(w, l) for w, l in results))

        total = sum(p.rating for p in store.list_projects())
        assert total == pytest.approx(sum(ratings.values()))

    async def test_disjoint_pairs_do_not_wait(self):
        """An update on c/d proceeds while a/b are locked."""
        store = _seed(
            MemoryRatingStore(), {"a": 1500.0, "b": 1500.0, "c": 1500.0, "d": 1500.0}
        )
        locks = ProjectLocks()
        updater = RatingUpdater(AsyncStore(store, timeout=1.0), locks=locks)

        async with locks.hold("a", "b"):
            winner, _ = await asyncio.wait_for(updater.apply_result("c", "d"), timeout=1.0)

        assert winner == pytest.approx(1516.0)

    async def test_lock_wait_times_out(self):
        """Waiting too long for a held project raises StoreTimeout."""
        store = _seed(MemoryRatingStore(), {"a": 1500.0, "b": 1500.0})
        locks = ProjectLocks()
        updater = RatingUpdater(AsyncStore(store, timeout=0.05), locks=locks)

        async with locks.hold("a"):
            with pytest.raises(StoreTimeout) as exc_info:
                await updater.apply_result("b", "a")

        assert exc_info.value.operation == "lock"
        assert store.get("a").rating == 1500.0
        assert not locks.locked("b")


class TestProjectLocks:
    """Tests for ProjectLocks."""

    async def test_hold_and_release(self):
        """Locks are held inside the block and released after."""
        locks = ProjectLocks()
        async with locks.hold("b", "a"):
            assert locks.locked("a")
            assert locks.locked("b")
        assert not locks.locked("a")
        assert not locks.locked("b")

    async def test_duplicate_ids(self):
        """Passing the same ID twice does not deadlock."""
        locks = ProjectLocks()
        async with locks.hold("a", "a", timeout=0.5):
            assert locks.locked("a")

    async def test_opposite_orders_do_not_deadlock(self):
        """Holders taking the same pair in opposite order both finish."""
        locks = ProjectLocks()
        order = []

        async def _worker(name, first, second):
            async with locks.hold(first, second, timeout=1.0):
                order.append(name)
                await asyncio.sleep(0.01)

        await asyncio.gather(_worker("x", "a", "b"), _worker("y", "b", "a"))

        assert sorted(order) == ["x", "y"]


class TestCommitDeadline:
    """Tests for AsyncStore.commit deadlines."""

    async def test_expired_deadline_rolls_back(self):
        """A commit past its deadline raises StoreTimeout without applying."""
        store = _seed(MemoryRatingStore(), {"a": 1500.0})
        async_store = AsyncStore(store)

        with pytest.raises(StoreTimeout):
            await async_store.commit(
                lambda txn: txn.compare_and_set("a", 1500.0, 1600.0),
                deadline=time.monotonic() - 1,
            )

        assert store.get("a").rating == 1500.0
