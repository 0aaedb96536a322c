"""JSON-like request/response handlers for the presentation layer."""

from __future__ import annotations

from typing import Any

import structlog
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError

from harbour_battles.arena import BattleArena
from harbour_battles.core.errors import BattleError, InsufficientPool, InvalidInput

logger = structlog.get_logger()


class VoteRequest(BaseModel):
    """Body of ``POST vote``.

    Accepts the snake_case field names and the legacy client keys
    (``slackId``, ``winner``, ``loser``, ``winnerRating``, ``loserRating``).
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    voter_id: str = Field(min_length=1, validation_alias=AliasChoices("voter_id", "slackId"))
    winner_id: str = Field(min_length=1, validation_alias=AliasChoices("winner_id", "winner"))
    loser_id: str = Field(min_length=1, validation_alias=AliasChoices("loser_id", "loser"))
    explanation: str
    winner_rating: float = Field(
        allow_inf_nan=False, validation_alias=AliasChoices("winner_rating", "winnerRating")
    )
    loser_rating: float = Field(
        allow_inf_nan=False, validation_alias=AliasChoices("loser_rating", "loserRating")
    )


def _describe_validation_error(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        location = ".".join(str(p) for p in item["loc"]) or "body"
        parts.append(f"{location}: {item['msg']}")
    return "; ".join(parts)


class BattleAPI:
    """Request handlers for ``GET matchup`` and ``POST vote``.

    Handlers never raise for expected failures; they return
    ``{"error": ..., "kind": ..., "retryable": ...}`` so callers can tell
    whether to fix the request or retry it.
    """

    def __init__(self, arena: BattleArena) -> None:
        self.arena = arena

    async def get_matchup(self, voter_id: str | None = None) -> dict[str, Any]:
        """Return the next matchup, or ``{}`` when the pool is too small."""
        try:
            matchup = await self.arena.select_matchup(voter_id)
        except InsufficientPool:
            return {}
        except BattleError as e:
            return e.to_payload()
        return matchup.to_payload()

    async def post_vote(self, body: dict[str, Any]) -> dict[str, Any]:
        """Validate and apply a vote body."""
        try:
            request = VoteRequest.model_validate(body)
        except ValidationError as e:
            return InvalidInput(_describe_validation_error(e)).to_payload()

        try:
            receipt = await self.arena.submit_vote(
                request.voter_id,
                request.winner_id,
                request.loser_id,
                request.explanation,
                request.winner_rating,
                request.loser_rating,
            )
        except BattleError as e:
            logger.info("vote_rejected", kind=e.kind, reason=e.message)
            return e.to_payload()

        # Winner and loser both exist and differ, and projects are never removed.
        return {
            "vote_id": receipt.vote_id,
            "winner_rating": receipt.winner_rating,
            "loser_rating": receipt.loser_rating,
            "matchup_available": True,
        }

    async def leaderboard(self) -> list[dict[str, Any]] | dict[str, Any]:
        """Projects by rating with tallies, or an error payload."""
        try:
            rows = await self.arena.leaderboard()
        except BattleError as e:
            logger.warning("leaderboard_failed", kind=e.kind, reason=e.message)
            return e.to_payload()
        return [
            {**project.display_fields(), "wins": wins, "losses": losses}
            for project, wins, losses in rows
        ]
