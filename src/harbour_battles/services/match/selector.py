"""Exposure-balanced, rating-aware matchup selection."""

from __future__ import annotations

import random
from collections import OrderedDict
from dataclasses import dataclass
from datetime import UTC, datetime

import structlog

from harbour_battles.core.config import MatchupConfig
from harbour_battles.core.errors import InsufficientPool
from harbour_battles.models import Project
from harbour_battles.services.storage import AsyncStore, StoreConflict

logger = structlog.get_logger()

_NEVER_SHOWN = datetime.min


@dataclass(frozen=True)
class Matchup:
    """An unordered pair of project snapshots taken at selection time.

    The ratings carried here are what the voter saw. They are sent back with
    the vote so stale matchups can be detected.
    """

    project1: Project
    project2: Project

    @property
    def pair(self) -> frozenset[str]:
        return frozenset((self.project1.id, self.project2.id))

    def to_payload(self) -> dict:
        return {
            "project1": self.project1.display_fields(),
            "project2": self.project2.display_fields(),
        }


def _shown_key(project: Project) -> datetime:
    """Sortable last-shown time; never-shown projects sort first."""
    shown = project.last_shown_at
    if shown is None:
        return _NEVER_SHOWN
    if shown.tzinfo is not None:
        shown = shown.astimezone(UTC).replace(tzinfo=None)
    return shown


def sample_candidates(
    projects: list[Project], size: int, rng: random.Random
) -> list[Project]:
    """Draw up to ``size`` projects without replacement, favoring low exposure.

    Each project's weight is ``1 / (1 + exposure - min_exposure)``, so the
    least-shown projects are the most likely picks while every project keeps
    a nonzero chance.

    Args:
        projects: Pool to sample from.
        size: Maximum number of candidates.
        rng: Random source.

    Returns:
        Sampled candidates (the whole pool if it is no larger than ``size``).
    """
    if len(projects) <= size:
        return list(projects)

    floor = min(p.exposure_count for p in projects)
    remaining = list(projects)
    chosen: list[Project] = []
    while remaining and len(chosen) < size:
        weights = [1.0 / (1 + p.exposure_count - floor) for p in remaining]
        pick = rng.choices(range(len(remaining)), weights=weights, k=1)[0]
        chosen.append(remaining.pop(pick))
    return chosen


def rank_opponents(
    anchor: Project, candidates: list[Project], exposure_slack: int | None = None
) -> list[Project]:
    """Order opponents by closeness in rating to ``anchor``.

    Ties go to the project shown longest ago, then to lower exposure, then
    to ID for determinism.

    With ``exposure_slack`` set, opponents shown more than that many times
    above the anchor are dropped first. If that would drop every opponent,
    only the least-exposed ones are kept. When the candidates are the whole
    pool and the anchor is the least exposed of them, this keeps every
    exposure count within ``exposure_slack + 1`` of the minimum.
    """
    others = [p for p in candidates if p.id != anchor.id]
    if exposure_slack is not None and others:
        ceiling = max(
            anchor.exposure_count + exposure_slack,
            min(p.exposure_count for p in others),
        )
        others = [p for p in others if p.exposure_count <= ceiling]
    return sorted(
        others,
        key=lambda p: (abs(p.rating - anchor.rating), _shown_key(p), p.exposure_count, p.id),
    )


class MatchupSelector:
    """Chooses the next pair of projects to show a voter.

    1. Sample a candidate set weighted inversely by exposure.
    2. Anchor on the least-exposed candidate (oldest shown on ties).
    3. Pair it with the closest-rated candidate not shown far more often.
    4. Skip the voter's previous pair when another opponent exists.
    5. Bump both exposure counts. Abandoned matchups are never rolled back.
    """

    def __init__(
        self,
        store: AsyncStore,
        config: MatchupConfig | None = None,
        seed: int | None = None,
    ) -> None:
        self.store = store
        self.config = config or MatchupConfig()
        self._rng = random.Random(seed)  # noqa: S311
        self._last_pair: OrderedDict[str, frozenset[str]] = OrderedDict()

    async def select_matchup(self, voter_id: str | None = None) -> Matchup:
        """Select a matchup and record the exposure.

        Args:
            voter_id: Opaque voter identity, used only to avoid showing the
                same pair twice in a row.

        Returns:
            Matchup with both projects as they stood at selection time.

        Raises:
            InsufficientPool: If fewer than two projects exist.
        """
        projects = await self.store.list_projects()
        if len(projects) < 2:
            logger.warning("insufficient_pool", size=len(projects))
            raise InsufficientPool(len(projects))

        candidates = sample_candidates(projects, self.config.candidate_pool_size, self._rng)
        if len(candidates) < 2:
            candidates = projects
        anchor = min(candidates, key=lambda p: (p.exposure_count, _shown_key(p), p.id))
        opponents = rank_opponents(anchor, candidates, self.config.exposure_slack)
        opponent = self._pick_opponent(anchor, opponents, projects, voter_id)

        shown_at = datetime.now(UTC)
        for project in (anchor, opponent):
            await self._record_exposure(project.id, shown_at)

        matchup = Matchup(project1=anchor, project2=opponent)
        if voter_id is not None:
            self._remember(voter_id, matchup.pair)

        logger.debug(
            "matchup_selected",
            project1=anchor.id,
            project2=opponent.id,
            rating_gap=round(abs(anchor.rating - opponent.rating), 2),
        )
        return matchup

    def _pick_opponent(
        self,
        anchor: Project,
        opponents: list[Project],
        pool: list[Project],
        voter_id: str | None,
    ) -> Project:
        previous = self._last_pair.get(voter_id) if voter_id is not None else None
        if not self.config.avoid_repeat or previous is None:
            return opponents[0]

        for opponent in opponents:
            if frozenset((anchor.id, opponent.id)) != previous:
                return opponent

        # Every eligible opponent repeats; fall back to the least-shown other project.
        fallback = [
            p for p in pool if p.id != anchor.id and frozenset((anchor.id, p.id)) != previous
        ]
        if not fallback:
            return opponents[0]
        return min(
            fallback,
            key=lambda p: (
                p.exposure_count,
                abs(p.rating - anchor.rating),
                _shown_key(p),
                p.id,
            ),
        )

    async def _record_exposure(self, project_id: str, shown_at: datetime) -> None:
        try:
            await self.store.increment_exposure(project_id, shown_at)
        except StoreConflict as e:
            logger.warning("exposure_increment_lost", project=project_id, reason=str(e))

    def _remember(self, voter_id: str, pair: frozenset[str]) -> None:
        self._last_pair[voter_id] = pair
        self._last_pair.move_to_end(voter_id)
        while len(self._last_pair) > self.config.recent_voter_cap:
            self._last_pair.popitem(last=False)

    def last_pair(self, voter_id: str) -> frozenset[str] | None:
        return self._last_pair.get(voter_id)
