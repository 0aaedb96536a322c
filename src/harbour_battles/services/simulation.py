"""Simulated voters for exercising the engine end to end."""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass, field

import structlog

from harbour_battles.arena import BattleArena
from harbour_battles.core.errors import BattleError
from harbour_battles.ranking import calculate_expected_win_chance

logger = structlog.get_logger()

_REASON_WORDS = (
    "clearer",
    "polished",
    "ambitious",
    "working",
    "demo",
    "readme",
    "thoughtful",
    "design",
    "original",
    "useful",
    "documentation",
    "creative",
)


@dataclass
class SimulationResult:
    """Counts from a simulation run.

    Attributes:
        accepted: Votes recorded.
        rejected: Rejections keyed by error kind.
        rank_correlation: Spearman correlation between true strength and
            final rating (1.0 means the ranking was fully recovered).
    """

    accepted: int = 0
    rejected: dict[str, int] = field(default_factory=dict)
    rank_correlation: float = 0.0

    def reject(self, kind: str) -> None:
        self.rejected[kind] = self.rejected.get(kind, 0) + 1


def spearman(xs: list[float], ys: list[float]) -> float:
    """Spearman rank correlation (no tie correction)."""
    n = len(xs)
    if n < 2:
        return 0.0

    def ranks(values: list[float]) -> list[int]:
        order = sorted(range(n), key=lambda i: values[i])
        result = [0] * n
        for rank, i in enumerate(order):
            result[i] = rank
        return result

    rx, ry = ranks(xs), ranks(ys)
    d2 = sum((a - b) ** 2 for a, b in zip(rx, ry, strict=True))
    return 1.0 - (6 * d2) / (n * (n * n - 1))


class SimulatedVoter:
    """Votes using hidden true strengths on the Elo scale.

    The stronger project wins with the Elo expected probability of its true
    strength gap; ``noise`` blends that toward a coin flip.
    """

    def __init__(
        self,
        voter_id: str,
        strengths: dict[str, float],
        rng: random.Random,
        noise: float = 0.0,
    ) -> None:
        self.voter_id = voter_id
        self.strengths = strengths
        self.rng = rng
        self.noise = max(0.0, min(1.0, noise))

    def pick_winner(self, first_id: str, second_id: str) -> tuple[str, str]:
        p_first = calculate_expected_win_chance(
            self.strengths[first_id], self.strengths[second_id]
        )
        p_first = (1 - self.noise) * p_first + self.noise * 0.5
        if self.rng.random() < p_first:
            return first_id, second_id
        return second_id, first_id

    def explain(self, winner_id: str) -> str:
        words = self.rng.choices(_REASON_WORDS, k=8)
        return f"I picked {winner_id} because it felt " + " ".join(words)


async def run_simulation(
    arena: BattleArena,
    strengths: dict[str, float],
    voters: int = 4,
    rounds: int = 25,
    noise: float = 0.1,
    seed: int | None = None,
) -> SimulationResult:
    """Run concurrent simulated voters against the arena.

    Each voter repeatedly fetches a matchup and votes on it. Retryable
    rejections (stale ratings, lost races) are counted and the voter simply
    moves on to a fresh matchup, like a user refreshing the page.

    Args:
        arena: Engine to vote against. Projects must already be seeded.
        strengths: Hidden true strength per project ID.
        voters: Number of concurrent voters.
        rounds: Matchups each voter attempts.
        noise: Voter noise (0 = always follows true strength odds).
        seed: Random seed.

    Returns:
        SimulationResult with vote counts and rank correlation.
    """
    result = SimulationResult()
    rng = random.Random(seed)  # noqa: S311

    async def _vote_loop(voter: SimulatedVoter) -> None:
        for _ in range(rounds):
            try:
                matchup = await arena.select_matchup(voter.voter_id)
                winner_id, loser_id = voter.pick_winner(
                    matchup.project1.id, matchup.project2.id
                )
                shown = {
                    matchup.project1.id: matchup.project1.rating,
                    matchup.project2.id: matchup.project2.rating,
                }
                await arena.submit_vote(
                    voter.voter_id,
                    winner_id,
                    loser_id,
                    voter.explain(winner_id),
                    shown[winner_id],
                    shown[loser_id],
                )
                result.accepted += 1
            except BattleError as e:
                if not e.retryable:
                    raise
                result.reject(e.kind)

    crowd = [
        SimulatedVoter(
            f"sim-voter-{i}", strengths, random.Random(rng.random()), noise  # noqa: S311
        )
        for i in range(voters)
    ]
    await asyncio.gather(*(_vote_loop(v) for v in crowd))

    ratings = {p.id: p.rating for p in await arena.store.list_projects()}
    ids = [pid for pid in strengths if pid in ratings]
    result.rank_correlation = spearman(
        [strengths[pid] for pid in ids], [ratings[pid] for pid in ids]
    )
    logger.info(
        "simulation_complete",
        accepted=result.accepted,
        rejected=result.rejected,
        rank_correlation=round(result.rank_correlation, 3),
    )
    return result
