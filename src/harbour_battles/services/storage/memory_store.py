"""In-process rating store for tests and simulations."""

from __future__ import annotations

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import TypeVar

import structlog

from harbour_battles.core.errors import StoreTimeout
from harbour_battles.models import AuditEntry, Project, Vote

from .base import StoreTransaction, check_deadline, remaining

logger = structlog.get_logger()

T = TypeVar("T", Project, Vote, AuditEntry)


def _clone(record: T) -> T:
    """Detached copy of a table model."""
    return type(record).model_validate(record.model_dump())


class _MemoryTransaction:
    """Stages writes until the enclosing block exits cleanly."""

    def __init__(self, store: MemoryRatingStore) -> None:
        self._store = store
        self._ratings: dict[str, float] = {}
        self._votes: list[Vote] = []
        self._audit: list[AuditEntry] = []

    def get(self, project_id: str) -> Project | None:
        project = self._store._projects.get(project_id)
        if project is None:
            return None
        copy = _clone(project)
        if project_id in self._ratings:
            copy.rating = self._ratings[project_id]
        return copy

    def compare_and_set(
        self, project_id: str, expected_rating: float, new_rating: float
    ) -> bool:
        current = self.get(project_id)
        if current is None or current.rating != expected_rating:
            return False
        self._ratings[project_id] = new_rating
        return True

    def add_vote(self, vote: Vote) -> None:
        self._votes.append(_clone(vote))

    def add_audit_entry(self, entry: AuditEntry) -> None:
        self._audit.append(_clone(entry))

    def _apply(self) -> None:
        for project_id, rating in self._ratings.items():
            self._store._projects[project_id].rating = rating
        self._store._votes.extend(self._votes)
        self._store._audit.extend(self._audit)


class MemoryRatingStore:
    """Thread-safe dict-backed RatingStore.

    A single internal latch guards the maps, held for the length of a
    transaction. Reads return copies so callers never see later writes.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._projects: dict[str, Project] = {}
        self._votes: list[Vote] = []
        self._audit: list[AuditEntry] = []

    def add_project(self, project: Project) -> bool:
        with self._lock:
            if project.id in self._projects:
                return False
            self._projects[project.id] = _clone(project)
            return True

    def get(self, project_id: str) -> Project | None:
        with self._lock:
            project = self._projects.get(project_id)
            return _clone(project) if project else None

    def list_projects(self) -> list[Project]:
        with self._lock:
            return [_clone(p) for p in self._projects.values()]

    def compare_and_set(
        self, project_id: str, expected_rating: float, new_rating: float
    ) -> bool:
        with self.transaction() as txn:
            return txn.compare_and_set(project_id, expected_rating, new_rating)

    def increment_exposure(self, project_id: str, shown_at: datetime) -> None:
        with self._lock:
            project = self._projects.get(project_id)
            if project is None:
                return
            project.exposure_count += 1
            project.last_shown_at = shown_at

    @contextmanager
    def transaction(self, deadline: float | None = None) -> Iterator[StoreTransaction]:
        if not self._lock.acquire(timeout=remaining(deadline)):
            raise StoreTimeout("transaction")
        try:
            txn = _MemoryTransaction(self)
            yield txn
            check_deadline(deadline)
            txn._apply()
        finally:
            self._lock.release()

    def list_votes(self, voter_id: str | None = None) -> list[Vote]:
        with self._lock:
            votes = [v for v in self._votes if voter_id is None or v.voter_id == voter_id]
            return [_clone(v) for v in votes]

    def list_audit_entries(
        self,
        voter_id: str | None = None,
        project_id: str | None = None,
        limit: int | None = None,
    ) -> list[AuditEntry]:
        with self._lock:
            entries = [
                e
                for e in self._audit
                if (voter_id is None or e.voter_id == voter_id)
                and (project_id is None or project_id in (e.winner_id, e.loser_id))
            ]
        entries.sort(key=lambda e: e.created_at, reverse=True)
        if limit is not None:
            entries = entries[:limit]
        return [_clone(e) for e in entries]

    def vote_tallies(self) -> dict[str, tuple[int, int]]:
        with self._lock:
            wins: dict[str, int] = {}
            losses: dict[str, int] = {}
            for vote in self._votes:
                wins[vote.winner_id] = wins.get(vote.winner_id, 0) + 1
                losses[vote.loser_id] = losses.get(vote.loser_id, 0) + 1
        ids = set(wins) | set(losses)
        return {pid: (wins.get(pid, 0), losses.get(pid, 0)) for pid in ids}

    def close(self) -> None:
        logger.debug("memory_store_closed", projects=len(self._projects))
