"""Tests for the request handlers."""

import pytest
from conftest import REASON

from harbour_battles.arena import BattleArena
from harbour_battles.core.config import BattleConfig, ProjectSeed
from harbour_battles.core.errors import StoreTimeout
from harbour_battles.services.api import BattleAPI, VoteRequest
from harbour_battles.services.storage import MemoryRatingStore


@pytest.fixture
def api(arena):
    """Create API handlers over the seeded arena."""
    return BattleAPI(arena)


def _body(**overrides):
    body = {
        "voter_id": "u1",
        "winner_id": "a",
        "loser_id": "b",
        "explanation": REASON,
        "winner_rating": 1500.0,
        "loser_rating": 1500.0,
    }
    body.update(overrides)
    return body


class TestVoteRequest:
    """Tests for request parsing."""

    def test_legacy_keys(self):
        """The camelCase client keys are accepted."""
        request = VoteRequest.model_validate(
            {
                "slackId": "U123",
                "winner": "a",
                "loser": "b",
                "explanation": REASON,
                "winnerRating": 1510.5,
                "loserRating": "1489.5",
            }
        )
        assert request.voter_id == "U123"
        assert request.winner_id == "a"
        assert request.loser_rating == 1489.5

    def test_strips_ids(self):
        """Whitespace around IDs is removed."""
        assert VoteRequest.model_validate(_body(winner_id=" a ")).winner_id == "a"


class TestGetMatchup:
    """Tests for GET matchup."""

    async def test_returns_two_cards(self, api):
        """A matchup payload carries two distinct project cards."""
        payload = await api.get_matchup("u1")

        assert payload["project1"]["id"] != payload["project2"]["id"]
        assert payload["project1"]["rating"] == 1500.0

    async def test_empty_pool(self):
        """An empty pool yields an empty object rather than an error."""
        arena = BattleArena(BattleConfig(), store=MemoryRatingStore())
        assert await BattleAPI(arena).get_matchup() == {}

    async def test_single_project(self):
        """One project is not enough for a matchup."""
        arena = BattleArena(
            BattleConfig(projects=[ProjectSeed(id="solo", title="Solo")]),
            store=MemoryRatingStore(),
        )
        await arena.seed_projects()
        assert await BattleAPI(arena).get_matchup() == {}


class TestPostVote:
    """Tests for POST vote."""

    async def test_accepted(self, api):
        """An accepted vote reports the new ratings."""
        result = await api.post_vote(_body())

        assert result["vote_id"]
        assert result["winner_rating"] == pytest.approx(1516.0)
        assert result["loser_rating"] == pytest.approx(1484.0)
        assert result["matchup_available"] is True

    @pytest.mark.parametrize(
        ("overrides", "kind"),
        [
            ({"explanation": "nope"}, "invalid_input"),
            ({"loser_id": "a"}, "invalid_input"),
            ({"winner_rating": "not-a-number"}, "invalid_input"),
            ({"winner_rating": float("nan")}, "invalid_input"),
            ({"voter_id": ""}, "invalid_input"),
            ({"loser_id": "ghost"}, "not_found"),
            ({"winner_rating": 1800.0}, "conflict"),
        ],
    )
    async def test_rejected(self, api, overrides, kind):
        """Each failure maps to its error kind."""
        result = await api.post_vote(_body(**overrides))

        assert result["kind"] == kind
        assert result["retryable"] is (kind == "conflict")
        assert result["error"]

    async def test_accepted_vote_survives_slow_store(self, api, arena):
        """A store timeout after the vote commits still reports success."""
        await api.post_vote(_body(voter_id="u0", winner_id="c", loser_id="d"))

        async def _timeout(*args, **kwargs):
            raise StoreTimeout("list_projects", 5.0)

        arena.store.list_projects = _timeout

        result = await api.post_vote(_body())

        assert result["vote_id"]
        assert result["matchup_available"] is True
        assert "kind" not in result
        assert len(arena.rating_store.list_votes()) == 2

    async def test_missing_field(self, api):
        """Missing fields are reported by name."""
        body = _body()
        del body["explanation"]

        result = await api.post_vote(body)

        assert result["kind"] == "invalid_input"
        assert "explanation" in result["error"]


class TestLeaderboard:
    """Tests for the leaderboard handler."""

    async def test_store_timeout_is_payload(self, api, arena):
        """Store failures come back as a transient error payload."""

        async def _timeout(*args, **kwargs):
            raise StoreTimeout("vote_tallies", 5.0)

        arena.store.vote_tallies = _timeout

        result = await api.leaderboard()

        assert result["kind"] == "transient"
        assert result["retryable"] is True

    async def test_rows(self, api):
        """Rows carry display fields plus tallies, best first."""
        await api.post_vote(_body())

        rows = await api.leaderboard()

        assert rows[0]["id"] == "a"
        assert rows[0]["wins"] == 1
        assert rows[-1]["id"] == "b"
        assert rows[-1]["losses"] == 1
        assert len(rows) == 4
