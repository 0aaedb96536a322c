"""Elo rating calculations for Harbour Battles."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_K_FACTOR = 32.0
DEFAULT_SCALE = 400.0


@dataclass(frozen=True)
class RatingChange:
    """Outcome of applying one vote to a pair of ratings.

    Attributes:
        winner_id: ID of the winning project.
        loser_id: ID of the losing project.
        winner_before: Winner rating the delta was computed from.
        loser_before: Loser rating the delta was computed from.
        winner_after: Winner rating after the update.
        loser_after: Loser rating after the update.
        expected_win: Winner's expected score before the vote.
    """

    winner_id: str
    loser_id: str
    winner_before: float
    loser_before: float
    winner_after: float
    loser_after: float
    expected_win: float

    @property
    def delta(self) -> float:
        """Points moved from loser to winner."""
        return self.winner_after - self.winner_before

    @property
    def new_ratings(self) -> tuple[float, float]:
        return self.winner_after, self.loser_after


def calculate_expected_win_chance(
    rating_a: float, rating_b: float, scale: float = DEFAULT_SCALE
) -> float:
    """Calculate expected win probability for player A against player B.

    Uses the standard Elo formula:
    E_A = 1 / (1 + 10^((R_B - R_A) / 400))

    Args:
        rating_a: Rating of player A.
        rating_b: Rating of player B.
        scale: Logistic scale in rating points.

    Returns:
        Probability that A wins (0.0 to 1.0).
    """
    return 1.0 / (1.0 + 10 ** ((rating_b - rating_a) / scale))


def update_elo(
    winner_rating: float,
    loser_rating: float,
    k_factor: float = DEFAULT_K_FACTOR,
    scale: float = DEFAULT_SCALE,
) -> tuple[float, float]:
    """Update Elo ratings after a vote.

    The winner gains ``K * (1 - E_w)`` and the loser gives up exactly the same
    amount, so every comparison is zero-sum.

    Args:
        winner_rating: Current rating of the winner.
        loser_rating: Current rating of the loser.
        k_factor: Sensitivity constant.
        scale: Logistic scale in rating points.

    Returns:
        Tuple of (new_winner_rating, new_loser_rating).
    """
    expected_win = calculate_expected_win_chance(winner_rating, loser_rating, scale)
    delta = k_factor * (1.0 - expected_win)
    return winner_rating + delta, loser_rating - delta


def compute_change(
    winner_id: str,
    loser_id: str,
    winner_rating: float,
    loser_rating: float,
    k_factor: float = DEFAULT_K_FACTOR,
    scale: float = DEFAULT_SCALE,
) -> RatingChange:
    """Build the RatingChange for a winner/loser pair at the given ratings."""
    expected_win = calculate_expected_win_chance(winner_rating, loser_rating, scale)
    new_winner, new_loser = update_elo(winner_rating, loser_rating, k_factor, scale)
    return RatingChange(
        winner_id=winner_id,
        loser_id=loser_id,
        winner_before=winner_rating,
        loser_before=loser_rating,
        winner_after=new_winner,
        loser_after=new_loser,
        expected_win=expected_win,
    )
