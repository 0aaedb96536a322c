"""Ranking math for Harbour Battles."""

from harbour_battles.ranking.elo import (
    DEFAULT_K_FACTOR,
    DEFAULT_SCALE,
    RatingChange,
    calculate_expected_win_chance,
    compute_change,
    update_elo,
)

__all__ = [
    "DEFAULT_K_FACTOR",
    "DEFAULT_SCALE",
    "RatingChange",
    "calculate_expected_win_chance",
    "compute_change",
    "update_elo",
]
