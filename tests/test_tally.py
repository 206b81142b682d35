"""Tests for results aggregation and winner determination."""

import datetime

from types import SimpleNamespace

import pytest

from app.cdvote import tally
from app.cdvote.model.enums import ElectionStatusEnum, WinnerStatusEnum
from app.cdvote.utils import calculate_status, percentage, round_half_up


def candidates(*names):
    return [SimpleNamespace(id=index, name=name, rank=index) for index, name in enumerate(names, start=1)]


def position_result(votes, abstain=0):
    names = ["Candidate %d" % (i + 1) for i in range(len(votes))]
    counts = {index: count for index, count in enumerate(votes, start=1)}
    return tally.build_position_result("1-president", "ประธาน", candidates(*names), counts, abstain)


# ---------------------------------------------------------------------------
# Percentages
# ---------------------------------------------------------------------------


class TestPercentage:
    """Tests for rounding."""

    @pytest.mark.parametrize("part, total, expected", [
        (1, 3, 33),
        (2, 3, 67),
        (1, 8, 13),
        (1, 200, 1),
        (0, 10, 0),
        (5, 0, 0),
    ])
    def test_percentage(self, part, total, expected):
        assert percentage(part, total) == expected

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(0.5) == 1
        assert round_half_up(2.4999) == 2


# ---------------------------------------------------------------------------
# build_position_result
# ---------------------------------------------------------------------------


class TestBuildPositionResult:
    """Tests for build_position_result."""

    def test_votes_are_conserved(self):
        """Candidate votes plus abstentions make up the total."""
        result = position_result([12, 7, 3], abstain=5)

        assert result.total_votes == 27
        assert sum(c.votes for c in result.candidates) + result.abstain_count == result.total_votes

    def test_sorted_by_votes(self):
        result = position_result([3, 12, 7])

        assert [c.votes for c in result.candidates] == [12, 7, 3]
        assert [c.candidate_name for c in result.candidates] == ["Candidate 2", "Candidate 3", "Candidate 1"]

    def test_ties_keep_rank_order(self):
        result = position_result([5, 9, 9])

        assert [c.rank for c in result.candidates] == [2, 3, 1]

    def test_missing_counts_are_zero(self):
        result = tally.build_position_result("p", "P", candidates("A", "B"), {1: 4}, 0)

        assert [c.votes for c in result.candidates] == [4, 0]
        assert result.candidates[1].percentage == 0

    def test_percentages(self):
        result = position_result([1, 1], abstain=1)

        assert [c.percentage for c in result.candidates] == [33, 33]
        assert result.abstain_percentage == 33

    def test_no_votes_percentages(self):
        result = position_result([0, 0])

        assert result.total_votes == 0
        assert all(c.percentage == 0 for c in result.candidates)
        assert result.abstain_percentage == 0

    def test_to_dict(self):
        data = position_result([2, 1]).to_dict()

        assert data["position_id"] == "1-president"
        assert data["candidates"][0]["votes"] == 2


# ---------------------------------------------------------------------------
# determine_winner
# ---------------------------------------------------------------------------


class TestDetermineWinner:
    """Tests for determine_winner."""

    def test_clear_winner(self):
        winner = tally.determine_winner(position_result([100, 99]))

        assert isinstance(winner, tally.Winner)
        assert winner.candidate.candidate_name == "Candidate 1"
        assert winner.candidate.votes == 100

    def test_tie(self):
        """Two candidates on top is a tie, whatever the third got."""
        winner = tally.determine_winner(position_result([100, 100, 50]))

        assert isinstance(winner, tally.Tie)
        assert [c.candidate_name for c in winner.tied] == ["Candidate 1", "Candidate 2"]

    def test_abstain_wins(self):
        winner = tally.determine_winner(position_result([100, 20], abstain=150))

        assert isinstance(winner, tally.AbstainWins)
        assert winner.abstain_count == 150

    def test_abstain_equal_to_top_does_not_win(self):
        winner = tally.determine_winner(position_result([100, 20], abstain=100))

        assert isinstance(winner, tally.Winner)
        assert winner.abstain_count == 100

    def test_only_abstentions(self):
        winner = tally.determine_winner(position_result([0, 0], abstain=3))

        assert isinstance(winner, tally.AbstainWins)

    def test_no_candidates(self):
        result = tally.build_position_result("p", "P", [], {}, 4)

        assert isinstance(tally.determine_winner(result), tally.NoCandidates)

    def test_no_votes(self):
        assert isinstance(tally.determine_winner(position_result([0, 0])), tally.NoVotes)

    def test_to_dict_carries_status(self):
        assert tally.determine_winner(position_result([3, 1])).to_dict()["status"] == WinnerStatusEnum.winner.value
        assert tally.determine_winner(position_result([0])).to_dict() == {"status": "no_votes"}
        tie = tally.determine_winner(position_result([2, 2])).to_dict()
        assert tie["status"] == "tie"
        assert len(tie["tied"]) == 2


# ---------------------------------------------------------------------------
# Turnout and status
# ---------------------------------------------------------------------------


class TestTurnout:
    """Tests for compute_turnout."""

    def test_turnout(self):
        turnout = tally.compute_turnout(200, 150)

        assert turnout.not_voted == 50
        assert turnout.percentage == 75

    def test_nobody_eligible(self):
        turnout = tally.compute_turnout(0, 0)

        assert turnout.percentage == 0
        assert turnout.not_voted == 0

    def test_more_voted_than_eligible(self):
        """not_voted is clamped, the percentage is reported as is."""
        turnout = tally.compute_turnout(10, 12)

        assert turnout.not_voted == 0
        assert turnout.percentage == 120


class TestCalculateStatus:
    """Tests for the election status derived from its window."""

    start = datetime.datetime(2025, 6, 1, 8, 0)
    end = datetime.datetime(2025, 6, 1, 16, 0)

    @pytest.mark.parametrize("now, expected", [
        (datetime.datetime(2025, 6, 1, 7, 59, 59), ElectionStatusEnum.pending),
        (datetime.datetime(2025, 6, 1, 8, 0), ElectionStatusEnum.open),
        (datetime.datetime(2025, 6, 1, 12, 0), ElectionStatusEnum.open),
        (datetime.datetime(2025, 6, 1, 16, 0), ElectionStatusEnum.open),
        (datetime.datetime(2025, 6, 1, 16, 0, 1), ElectionStatusEnum.closed),
    ])
    def test_window_is_inclusive(self, now, expected):
        assert calculate_status(self.start, self.end, now=now) == expected
