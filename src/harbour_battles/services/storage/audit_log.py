"""Read side of the append-only vote audit log."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import structlog

from harbour_battles.models import AuditEntry

from .repository import AsyncStore

logger = structlog.get_logger()


class AuditLog:
    """Query and export audit entries for abuse review.

    Entries are written by the vote recorder in the same transaction as the
    vote itself; this class never writes to the store.
    """

    def __init__(self, store: AsyncStore) -> None:
        self._store = store

    async def recent(self, limit: int = 50) -> list[AuditEntry]:
        """Newest entries first."""
        return await self._store.list_audit_entries(limit=limit)

    async def for_voter(self, voter_id: str) -> list[AuditEntry]:
        return await self._store.list_audit_entries(voter_id=voter_id)

    async def for_project(self, project_id: str) -> list[AuditEntry]:
        return await self._store.list_audit_entries(project_id=project_id)

    async def export_jsonl(self, path: str | Path) -> int:
        """Write every entry, oldest first, as one JSON object per line.

        Returns:
            Number of entries written.
        """
        entries = await self._store.list_audit_entries()
        entries.reverse()
        export_path = Path(path)

        def _write() -> None:
            export_path.parent.mkdir(parents=True, exist_ok=True)
            with export_path.open("w", encoding="utf-8") as f:
                for entry in entries:
                    f.write(json.dumps(entry.model_dump(), default=str) + "\n")

        await asyncio.to_thread(_write)
        logger.info("audit_exported", path=str(export_path), count=len(entries))
        return len(entries)
