"""Elo rating updates with compare-and-set and bounded retries."""

from __future__ import annotations

from collections.abc import Callable

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from harbour_battles.core.config import RankingConfig
from harbour_battles.core.errors import ConcurrencyExhausted, SameProject, UnknownProject
from harbour_battles.ranking import RatingChange, compute_change
from harbour_battles.services.storage import AsyncStore, StoreConflict, StoreTransaction

from .locks import ProjectLocks

logger = structlog.get_logger()

RecordFn = Callable[[StoreTransaction, RatingChange], None]


class RatingMoved(Exception):
    """A compare-and-set missed because another writer got there first."""


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        "rating_update_retry",
        attempt=retry_state.attempt_number,
        reason=str(exc),
    )


class RatingUpdater:
    """Apply a pairwise result to both projects' ratings.

    Each attempt reads both ratings, computes the Elo delta and writes both
    through compare-and-set inside one store transaction. A miss means the
    ratings moved underneath us, so the attempt rolls back and the delta is
    recomputed from the now-current values. Per-project locks serialize
    updates on the same projects within this process; compare-and-set covers
    writers outside it.
    """

    def __init__(
        self,
        store: AsyncStore,
        ranking: RankingConfig | None = None,
        max_attempts: int = 5,
        locks: ProjectLocks | None = None,
    ) -> None:
        """Initialize rating updater.

        Args:
            store: Async store wrapper (its timeout bounds lock waits too).
            ranking: Elo constants. Defaults to K=32 on a 400-point scale.
            max_attempts: Compare-and-set attempts before ConcurrencyExhausted.
            locks: Shared lock registry. A private one is created if omitted.
        """
        self.store = store
        self.ranking = ranking or RankingConfig()
        self.max_attempts = max_attempts
        self.locks = locks or ProjectLocks()

    async def apply_result(self, winner_id: str, loser_id: str) -> tuple[float, float]:
        """Apply a win for ``winner_id`` over ``loser_id``.

        Returns:
            Tuple of (winner_new_rating, loser_new_rating).
        """
        change = await self.apply(winner_id, loser_id)
        return change.new_ratings

    async def apply(
        self,
        winner_id: str,
        loser_id: str,
        record: RecordFn | None = None,
    ) -> RatingChange:
        """Apply a result and optionally record more writes atomically with it.

        Args:
            winner_id: ID of the winning project.
            loser_id: ID of the losing project.
            record: Called with the open transaction and the computed change
                after both compare-and-sets succeed. Anything it writes
                commits together with the ratings; raising rolls all back.

        Returns:
            The committed RatingChange.

        Raises:
            SameProject: If both IDs are equal.
            UnknownProject: If either project does not exist.
            ConcurrencyExhausted: If every attempt lost a race.
            StoreTimeout: If a lock wait or the commit exceeds the timeout.
        """
        if winner_id == loser_id:
            raise SameProject(winner_id)

        def _attempt(txn: StoreTransaction) -> RatingChange:
            return self._apply_once(txn, winner_id, loser_id, record)

        async with self.locks.hold(winner_id, loser_id, timeout=self.store.timeout):
            try:
                async for attempt in AsyncRetrying(
                    stop=stop_after_attempt(self.max_attempts),
                    wait=wait_exponential(multiplier=0.005, max=0.2) + wait_random(0, 0.005),
                    retry=retry_if_exception_type((RatingMoved, StoreConflict)),
                    before_sleep=_log_retry,
                    reraise=True,
                ):
                    with attempt:
                        change = await self.store.commit(_attempt)
            except (RatingMoved, StoreConflict) as e:
                logger.error(
                    "rating_update_exhausted",
                    winner=winner_id,
                    loser=loser_id,
                    attempts=self.max_attempts,
                )
                raise ConcurrencyExhausted(winner_id, loser_id, self.max_attempts) from e

        logger.info(
            "rating_updated",
            winner=winner_id,
            loser=loser_id,
            expected_win=round(change.expected_win, 4),
            delta=round(change.delta, 2),
        )
        return change

    def _apply_once(
        self,
        txn: StoreTransaction,
        winner_id: str,
        loser_id: str,
        record: RecordFn | None,
    ) -> RatingChange:
        """One read-compute-write attempt inside an open transaction."""
        winner = txn.get(winner_id)
        if winner is None:
            raise UnknownProject(winner_id)
        loser = txn.get(loser_id)
        if loser is None:
            raise UnknownProject(loser_id)

        change = compute_change(
            winner_id,
            loser_id,
            winner.rating,
            loser.rating,
            k_factor=self.ranking.k_factor,
            scale=self.ranking.scale,
        )
        if not txn.compare_and_set(winner_id, change.winner_before, change.winner_after):
            raise RatingMoved(f"rating of '{winner_id}' changed during update")
        if not txn.compare_and_set(loser_id, change.loser_before, change.loser_after):
            raise RatingMoved(f"rating of '{loser_id}' changed during update")

        if record is not None:
            record(txn, change)
        return change
