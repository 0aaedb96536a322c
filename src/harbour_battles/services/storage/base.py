"""Protocols shared by the rating store backends."""

from __future__ import annotations

import time
from contextlib import AbstractContextManager
from datetime import datetime
from typing import Protocol, runtime_checkable

from harbour_battles.core.errors import StoreTimeout
from harbour_battles.models import AuditEntry, Project, Vote


class StoreConflict(Exception):
    """Raised when the backend rejects a write because of a concurrent writer."""


@runtime_checkable
class StoreTransaction(Protocol):
    """Writes that commit together or not at all."""

    def get(self, project_id: str) -> Project | None: ...

    def compare_and_set(
        self, project_id: str, expected_rating: float, new_rating: float
    ) -> bool:
        """Set the rating only if it still equals ``expected_rating``."""
        ...

    def add_vote(self, vote: Vote) -> None: ...

    def add_audit_entry(self, entry: AuditEntry) -> None: ...


@runtime_checkable
class RatingStore(Protocol):
    """Durable mapping of project ID to rating and exposure statistics.

    Only the rating updater calls ``compare_and_set``. Every other component
    reads ratings or bumps exposure counters.
    """

    def add_project(self, project: Project) -> bool:
        """Insert a project. Returns False if the ID already exists."""
        ...

    def get(self, project_id: str) -> Project | None: ...

    def list_projects(self) -> list[Project]: ...

    def compare_and_set(
        self, project_id: str, expected_rating: float, new_rating: float
    ) -> bool: ...

    def increment_exposure(self, project_id: str, shown_at: datetime) -> None: ...

    def transaction(
        self, deadline: float | None = None
    ) -> AbstractContextManager[StoreTransaction]:
        """Open a transaction.

        Commits on clean exit and rolls back when the block raises. When
        ``deadline`` (a ``time.monotonic()`` value) has passed at commit time,
        raises StoreTimeout instead of committing.
        """
        ...

    def list_votes(self, voter_id: str | None = None) -> list[Vote]: ...

    def list_audit_entries(
        self,
        voter_id: str | None = None,
        project_id: str | None = None,
        limit: int | None = None,
    ) -> list[AuditEntry]: ...

    def vote_tallies(self) -> dict[str, tuple[int, int]]:
        """Map project ID to (wins, losses)."""
        ...

    def close(self) -> None: ...


def check_deadline(deadline: float | None, operation: str = "commit") -> None:
    """Raise StoreTimeout if ``deadline`` has passed."""
    if deadline is not None and time.monotonic() > deadline:
        raise StoreTimeout(operation)


def remaining(deadline: float | None) -> float:
    """Seconds left before ``deadline`` (-1 means wait forever)."""
    if deadline is None:
        return -1
    return max(0.0, deadline - time.monotonic())
