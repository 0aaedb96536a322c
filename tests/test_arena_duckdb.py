"""End-to-end tests against a DuckDB file."""

import asyncio
from pathlib import Path

import pytest
from conftest import REASON, make_config

from harbour_battles.arena import BattleArena
from harbour_battles.core.config import ProjectSeed
from harbour_battles.core.errors import InvalidExplanation


@pytest.fixture
async def db_arena(tmp_path: Path):
    """Create an arena on a fresh DuckDB file."""
    config = make_config(stale_rating_tolerance=None)
    config.database_url = f"duckdb:///{tmp_path / 'battles.duckdb'}"
    battle = BattleArena(config)
    await battle.seed_projects()
    yield battle
    battle.close()


class TestDuckDBArena:
    """Tests for the full flow on DuckDB."""

    async def test_seed_is_idempotent(self, db_arena):
        """Seeding twice adds nothing the second time."""
        assert await db_arena.seed_projects() == 0
        assert len(await db_arena.store.list_projects()) == 4

    async def test_seed_rating_override(self, db_arena):
        """A seed may carry its own starting rating."""
        added = await db_arena.seed_projects([ProjectSeed(id="e", title="E", rating=1650.0)])
        assert added == 1
        assert (await db_arena.store.get("e")).rating == 1650.0

    async def test_matchup_then_vote(self, db_arena):
        """A vote on a fetched matchup updates ratings, votes and audit."""
        matchup = await db_arena.select_matchup("u1")
        winner, loser = matchup.project1, matchup.project2

        receipt = await db_arena.submit_vote(
            "u1", winner.id, loser.id, REASON, winner.rating, loser.rating
        )

        assert (await db_arena.store.get(winner.id)).rating == pytest.approx(1516.0)
        assert (await db_arena.store.get(loser.id)).rating == pytest.approx(1484.0)
        assert (await db_arena.store.get(winner.id)).exposure_count == 1
        (vote,) = await db_arena.store.list_votes()
        assert vote.id == receipt.vote_id
        (entry,) = await db_arena.audit.recent()
        assert entry.vote_id == receipt.vote_id

    async def test_rejected_vote_writes_nothing(self, db_arena):
        """Validation failures leave the database untouched."""
        with pytest.raises(InvalidExplanation):
            await db_arena.submit_vote("u1", "a", "b", "meh", 1500.0, 1500.0)

        assert await db_arena.store.list_votes() == []
        assert await db_arena.store.list_audit_entries() == []

    async def test_concurrent_votes(self, db_arena):
        """Concurrent votes on one pair are each applied exactly once."""
        receipts = await asyncio.gather(
            *(db_arena.submit_vote(f"u{i}", "a", "b", REASON, 1500.0, 1500.0) for i in range(6))
        )

        assert len(await db_arena.store.list_votes()) == 6
        assert len(await db_arena.store.list_audit_entries()) == 6
        a = (await db_arena.store.get("a")).rating
        b = (await db_arena.store.get("b")).rating
        assert a + b == pytest.approx(3000.0)
        assert a == pytest.approx(max(r.winner_rating for r in receipts))

    async def test_leaderboard(self, db_arena):
        """Leaderboard tallies come from the votes table."""
        await db_arena.submit_vote("u1", "c", "d", REASON, 1500.0, 1500.0)

        rows = await db_arena.leaderboard()

        assert rows[0][0].id == "c"
        assert rows[0][1:] == (1, 0)
        assert rows[-1][0].id == "d"
        assert rows[-1][1:] == (0, 1)
