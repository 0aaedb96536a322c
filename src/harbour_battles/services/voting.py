"""Vote validation and recording."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from harbour_battles.core.config import VotingConfig
from harbour_battles.core.errors import (
    InvalidExplanation,
    InvalidInput,
    SameProject,
    StaleRating,
    UnknownProject,
)
from harbour_battles.models import AuditEntry, Project, Vote
from harbour_battles.ranking import RatingChange
from harbour_battles.services.rating import RatingUpdater
from harbour_battles.services.storage import AsyncStore, StoreTransaction

logger = structlog.get_logger()


def count_words(text: str) -> int:
    """Count whitespace-delimited words."""
    return len(text.split())


@dataclass(frozen=True)
class VoteReceipt:
    """What an accepted vote did."""

    vote_id: str
    change: RatingChange

    @property
    def winner_rating(self) -> float:
        return self.change.winner_after

    @property
    def loser_rating(self) -> float:
        return self.change.loser_after


class VoteService:
    """Validates votes and records them together with their rating update.

    This is the only entry point into rating mutation. A vote is either fully
    applied (both ratings moved, vote stored, audit entry appended) or not
    applied at all.
    """

    def __init__(
        self,
        store: AsyncStore,
        updater: RatingUpdater,
        config: VotingConfig | None = None,
    ) -> None:
        self.store = store
        self.updater = updater
        self.config = config or VotingConfig()

    async def submit_vote(
        self,
        voter_id: str,
        winner_id: str,
        loser_id: str,
        explanation: str,
        winner_rating_before: float,
        loser_rating_before: float,
    ) -> str:
        """Validate, apply and record a vote.

        Args:
            voter_id: Opaque voter identity from the session layer.
            winner_id: Project the voter picked.
            loser_id: The other project in the matchup.
            explanation: Free-text justification.
            winner_rating_before: Winner rating as shown in the matchup.
            loser_rating_before: Loser rating as shown in the matchup.

        Returns:
            The new vote ID.

        Raises:
            InvalidExplanation: If the explanation is too short.
            SameProject: If winner and loser are equal.
            UnknownProject: If either project does not exist.
            StaleRating: If a shown rating drifted past the tolerance.
            ConcurrencyExhausted: If the rating update kept losing races.
            StoreTimeout: If the store did not answer in time.
        """
        receipt = await self.submit(
            voter_id,
            winner_id,
            loser_id,
            explanation,
            winner_rating_before,
            loser_rating_before,
        )
        return receipt.vote_id

    async def submit(
        self,
        voter_id: str,
        winner_id: str,
        loser_id: str,
        explanation: str,
        winner_rating_before: float,
        loser_rating_before: float,
    ) -> VoteReceipt:
        """Like ``submit_vote`` but returns the full receipt."""
        word_count = self.validate(voter_id, winner_id, loser_id, explanation)
        winner = await self._require(winner_id)
        loser = await self._require(loser_id)
        self._check_fresh(winner, winner_rating_before)
        self._check_fresh(loser, loser_rating_before)

        vote_id = str(uuid.uuid4())

        def _record(txn: StoreTransaction, change: RatingChange) -> None:
            created_at = datetime.now(UTC)
            txn.add_vote(
                Vote(
                    id=vote_id,
                    voter_id=voter_id,
                    winner_id=winner_id,
                    loser_id=loser_id,
                    explanation=explanation,
                    winner_rating_before=change.winner_before,
                    loser_rating_before=change.loser_before,
                    winner_rating_after=change.winner_after,
                    loser_rating_after=change.loser_after,
                    created_at=created_at,
                )
            )
            txn.add_audit_entry(
                AuditEntry(
                    vote_id=vote_id,
                    voter_id=voter_id,
                    winner_id=winner_id,
                    loser_id=loser_id,
                    explanation=explanation,
                    word_count=word_count,
                    created_at=created_at,
                )
            )

        change = await self.updater.apply(winner_id, loser_id, record=_record)
        logger.info(
            "vote_recorded",
            vote_id=vote_id,
            winner=winner_id,
            loser=loser_id,
            delta=round(change.delta, 2),
        )
        return VoteReceipt(vote_id=vote_id, change=change)

    def validate(self, voter_id: str, winner_id: str, loser_id: str, explanation: str) -> int:
        """Structural checks that need no store access.

        Returns:
            Word count of the explanation.
        """
        if not voter_id or not voter_id.strip():
            raise InvalidInput("Missing voter identity")
        if not winner_id or not loser_id:
            raise InvalidInput("Both winner and loser are required")

        word_count = count_words(explanation or "")
        if word_count < self.config.min_explanation_words:
            raise InvalidExplanation(word_count, self.config.min_explanation_words)
        if winner_id == loser_id:
            raise SameProject(winner_id)
        return word_count

    async def _require(self, project_id: str) -> Project:
        project = await self.store.get(project_id)
        if project is None:
            raise UnknownProject(project_id)
        return project

    def _check_fresh(self, project: Project, submitted: float) -> None:
        tolerance = self.config.stale_rating_tolerance
        if tolerance is None:
            return
        if abs(project.rating - submitted) > tolerance:
            logger.info(
                "stale_rating",
                project=project.id,
                submitted=submitted,
                current=project.rating,
            )
            raise StaleRating(project.id, submitted, project.rating)
