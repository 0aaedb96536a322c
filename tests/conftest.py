"""Shared fixtures for Harbour Battles tests."""

import pytest

from harbour_battles.arena import BattleArena
from harbour_battles.core.config import BattleConfig, ProjectSeed, VotingConfig
from harbour_battles.services.storage import MemoryRatingStore

REASON = "this project had a clear demo and a working readme"


def make_config(ids=("a", "b", "c", "d"), **voting) -> BattleConfig:
    return BattleConfig(
        seed=7,
        voting=VotingConfig(**voting),
        projects=[ProjectSeed(id=pid, title=f"Project {pid.upper()}") for pid in ids],
    )


@pytest.fixture
def memory_store():
    """Create an empty in-memory rating store."""
    return MemoryRatingStore()


@pytest.fixture
async def arena(memory_store):
    """Create an arena with four seeded projects on an in-memory store."""
    battle = BattleArena(make_config(), store=memory_store)
    await battle.seed_projects()
    yield battle
    battle.close()
