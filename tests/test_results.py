"""Tests for the database backed results queries."""

import asyncio

from app.cdvote import results
from app.cdvote.model.enums import ElectionStatusEnum, WinnerStatusEnum
from app.database import SessionLocal

from conftest import ballot
from test_voting import cast


def run(coroutine_function, *args, **kwargs):
    with SessionLocal() as session:
        return asyncio.run(coroutine_function(session, *args, **kwargs))


class TestElectionResults:
    """Tests for get_election_results."""

    def vote(self, election):
        cast("1001", election.id, ballot(election, election.alice, election.carol))
        cast("1002", election.id, ballot(election, election.alice, None))
        cast("1003", election.id, ballot(election, election.bob, election.carol))

    def test_results(self, students, open_election):
        self.vote(open_election)

        summary = run(results.get_election_results, open_election.id)

        assert summary["status"] == ElectionStatusEnum.open
        assert summary["turnout"] == {"total_eligible": 3, "total_voted": 3, "not_voted": 0, "percentage": 100}

        president, secretary = summary["positions"]
        assert president["result"]["position_id"] == open_election.president
        assert president["result"]["total_votes"] == 3
        assert [c["votes"] for c in president["result"]["candidates"]] == [2, 1]
        assert president["winner"]["status"] == WinnerStatusEnum.winner.value
        assert president["winner"]["candidate"]["candidate_name"] == "Alice"

        assert secretary["result"]["abstain_count"] == 1
        assert secretary["winner"]["candidate"]["candidate_name"] == "Carol"

    def test_idempotent(self, students, open_election):
        """Two reads without new votes give the same numbers."""
        self.vote(open_election)

        first = run(results.get_election_results, open_election.id)
        second = run(results.get_election_results, open_election.id)

        assert first == second

    def test_no_votes(self, students, open_election):
        summary = run(results.get_election_results, open_election.id)

        assert all(p["winner"]["status"] == "no_votes" for p in summary["positions"])
        assert summary["turnout"]["percentage"] == 0

    def test_missing_election(self):
        assert run(results.get_election_results, 404) is None

    def test_position_winner(self, students, open_election):
        cast("1001", open_election.id, ballot(open_election, open_election.alice, open_election.carol))
        cast("1002", open_election.id, ballot(open_election, open_election.bob, open_election.carol))

        winner = run(results.get_position_winner, open_election.id, open_election.president, "ประธาน")

        assert winner.status == WinnerStatusEnum.tie
        assert [c.candidate_name for c in winner.tied] == ["Alice", "Bob"]


class TestParticipation:
    """Tests for participation by class level and the voting log."""

    def test_participation_by_level(self, students, open_election):
        cast("1001", open_election.id, ballot(open_election, open_election.alice, open_election.carol))
        cast("1003", open_election.id, ballot(open_election, open_election.bob, open_election.carol))

        levels = run(results.get_participation_by_level, open_election.id)

        assert [level["level"] for level in levels] == [1, 2, 3, 4, 5, 6]
        assert levels[2] == {"level": 3, "total_students": 2, "voted": 1, "percentage": 50}
        assert levels[4] == {"level": 5, "total_students": 2, "voted": 1, "percentage": 50}
        assert levels[0] == {"level": 1, "total_students": 0, "voted": 0, "percentage": 0}

    def test_voting_log(self, students, open_election):
        """The log says when votes came in, never who cast them."""
        cast("1001", open_election.id, ballot(open_election, open_election.alice, open_election.carol))
        cast("1002", open_election.id, ballot(open_election, open_election.bob, open_election.carol))

        log = run(results.get_voting_log, open_election.id, limit=1)

        assert len(log) == 1
        assert set(log[0]) == {"id", "voted_at"}

    def test_total_votes(self, students, open_election):
        cast("1001", open_election.id, ballot(open_election, open_election.alice, open_election.carol))

        assert run(results.get_total_votes, open_election.id) == 1
