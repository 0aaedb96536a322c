"""Per-project locks for serializing rating updates in-process."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from harbour_battles.core.errors import StoreTimeout


class ProjectLocks:
    """One asyncio.Lock per project ID, created on first use.

    ``hold`` takes the locks for every ID in sorted order so two updates
    touching overlapping pairs can never deadlock. Updates on disjoint pairs
    never wait on each other.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}

    def _lock_for(self, project_id: str) -> asyncio.Lock:
        lock = self._locks.get(project_id)
        if lock is None:
            lock = self._locks[project_id] = asyncio.Lock()
        return lock

    @asynccontextmanager
    async def hold(self, *project_ids: str, timeout: float | None = None) -> AsyncIterator[None]:
        """Hold the locks for ``project_ids`` for the duration of the block.

        Raises:
            StoreTimeout: If the locks are not all acquired within ``timeout``.
        """
        acquired: list[asyncio.Lock] = []
        try:
            for project_id in sorted(set(project_ids)):
                lock = self._lock_for(project_id)
                try:
                    await asyncio.wait_for(lock.acquire(), timeout=timeout)
                except TimeoutError as e:
                    raise StoreTimeout("lock", timeout) from e
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()

    def locked(self, project_id: str) -> bool:
        lock = self._locks.get(project_id)
        return lock is not None and lock.locked()
