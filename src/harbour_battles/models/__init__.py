from .project import DEFAULT_RATING, Project
from .vote import AuditEntry, Vote

__all__ = ["DEFAULT_RATING", "AuditEntry", "Project", "Vote"]
