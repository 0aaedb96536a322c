from .locks import ProjectLocks
from .updater import RatingMoved, RatingUpdater

__all__ = ["ProjectLocks", "RatingMoved", "RatingUpdater"]
