from .selector import Matchup, MatchupSelector, rank_opponents, sample_candidates

__all__ = [
    "Matchup",
    "MatchupSelector",
    "rank_opponents",
    "sample_candidates",
]
