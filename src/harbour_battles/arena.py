"""Wiring of store, selector, updater and vote service."""

from __future__ import annotations

import structlog

from harbour_battles.core.config import BattleConfig, ProjectSeed
from harbour_battles.models import Project
from harbour_battles.services.match import Matchup, MatchupSelector
from harbour_battles.services.rating import ProjectLocks, RatingUpdater
from harbour_battles.services.storage import (
    AsyncStore,
    AuditLog,
    DBRatingStore,
    RatingStore,
)
from harbour_battles.services.voting import VoteReceipt, VoteService

logger = structlog.get_logger()


class BattleArena:
    """The ranking engine behind the two client operations.

    Holds one instance of each component, sharing a single store and lock
    registry, so every request handler in the process goes through the same
    serialization.
    """

    def __init__(self, config: BattleConfig, store: RatingStore | None = None) -> None:
        """Initialize arena.

        Args:
            config: Engine configuration.
            store: Rating store. Defaults to a DBRatingStore on
                ``config.database_url``.
        """
        self.config = config
        self.rating_store = store or DBRatingStore(config.database_url)
        self.store = AsyncStore(self.rating_store, timeout=config.voting.store_timeout_seconds)
        self.locks = ProjectLocks()
        self.selector = MatchupSelector(self.store, config.matchup, seed=config.seed)
        self.updater = RatingUpdater(
            self.store,
            config.ranking,
            max_attempts=config.voting.max_update_attempts,
            locks=self.locks,
        )
        self.votes = VoteService(self.store, self.updater, config.voting)
        self.audit = AuditLog(self.store)

    async def seed_projects(self, seeds: list[ProjectSeed] | None = None) -> int:
        """Insert seed projects that are not in the store yet.

        Existing projects keep their rating and exposure.

        Returns:
            Number of projects added.
        """
        added = 0
        initial = self.config.ranking.initial_rating
        for seed in seeds if seeds is not None else self.config.projects:
            project = Project(
                **seed.model_dump(exclude={"rating"}),
                rating=seed.rating if seed.rating is not None else initial,
            )
            if await self.store.add_project(project):
                added += 1
        logger.info("projects_seeded", added=added)
        return added

    async def select_matchup(self, voter_id: str | None = None) -> Matchup:
        return await self.selector.select_matchup(voter_id)

    async def submit_vote(
        self,
        voter_id: str,
        winner_id: str,
        loser_id: str,
        explanation: str,
        winner_rating_before: float,
        loser_rating_before: float,
    ) -> VoteReceipt:
        return await self.votes.submit(
            voter_id,
            winner_id,
            loser_id,
            explanation,
            winner_rating_before,
            loser_rating_before,
        )

    async def leaderboard(self) -> list[tuple[Project, int, int]]:
        """Projects by rating descending with (wins, losses)."""
        projects = await self.store.list_projects()
        tallies = await self.store.vote_tallies()
        rows = [(p, *tallies.get(p.id, (0, 0))) for p in projects]
        return sorted(rows, key=lambda row: (-row[0].rating, row[0].id))

    def close(self) -> None:
        self.rating_store.close()
