"""Harbour Battles.

Rank submitted projects through pairwise head-to-head votes, with Elo
ratings updated under concurrent voters.
"""

from harbour_battles.arena import BattleArena

__version__ = "0.1.0"
__all__ = [
    "BattleArena",
    "__version__",
]
