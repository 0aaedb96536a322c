"""Async wrapper that runs sync store work on worker threads with timeouts."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from datetime import datetime
from typing import TypeVar

from harbour_battles.core.errors import StoreTimeout
from harbour_battles.models import AuditEntry, Project, Vote

from .base import RatingStore, StoreTransaction

T = TypeVar("T")


class AsyncStore:
    """Wrap a sync RatingStore for async callers.

    Reads and exposure bumps are abandoned after ``timeout`` seconds. Commits
    are awaited to completion instead: the deadline is checked inside the
    transaction right before it commits, so a timed-out commit rolls back
    rather than landing after the caller has been told it failed.
    """

    def __init__(self, store: RatingStore, timeout: float = 5.0) -> None:
        self.store = store
        self.timeout = timeout

    async def _run(self, operation: str, fn: Callable[[], T]) -> T:
        """Run a sync function on a worker thread under the store timeout."""
        try:
            return await asyncio.wait_for(asyncio.to_thread(fn), timeout=self.timeout)
        except TimeoutError as e:
            raise StoreTimeout(operation, self.timeout) from e

    async def get(self, project_id: str) -> Project | None:
        return await self._run("get", lambda: self.store.get(project_id))

    async def list_projects(self) -> list[Project]:
        return await self._run("list_projects", self.store.list_projects)

    async def add_project(self, project: Project) -> bool:
        return await self._run("add_project", lambda: self.store.add_project(project))

    async def increment_exposure(self, project_id: str, shown_at: datetime) -> None:
        await self._run(
            "increment_exposure",
            lambda: self.store.increment_exposure(project_id, shown_at),
        )

    async def list_votes(self, voter_id: str | None = None) -> list[Vote]:
        return await self._run("list_votes", lambda: self.store.list_votes(voter_id))

    async def list_audit_entries(
        self,
        voter_id: str | None = None,
        project_id: str | None = None,
        limit: int | None = None,
    ) -> list[AuditEntry]:
        return await self._run(
            "list_audit_entries",
            lambda: self.store.list_audit_entries(voter_id, project_id, limit),
        )

    async def vote_tallies(self) -> dict[str, tuple[int, int]]:
        return await self._run("vote_tallies", self.store.vote_tallies)

    async def commit(
        self,
        fn: Callable[[StoreTransaction], T],
        deadline: float | None = None,
    ) -> T:
        """Run ``fn`` inside one store transaction on a worker thread.

        Args:
            fn: Work to do with the open transaction. Raising rolls back.
            deadline: ``time.monotonic()`` value after which the transaction
                must not commit. Defaults to now plus the store timeout.

        Returns:
            Whatever ``fn`` returns, once the transaction has committed.
        """
        if deadline is None:
            deadline = time.monotonic() + self.timeout

        def _run() -> T:
            with self.store.transaction(deadline=deadline) as txn:
                return fn(txn)

        return await asyncio.to_thread(_run)
