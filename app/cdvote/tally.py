"""
Results aggregation for CD Vote.

Pure functions over vote counts: nothing here touches the
database, so the same counts always give the same result.
"""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from typing import ClassVar, Iterable, Mapping

from app.cdvote.model.enums import WinnerStatusEnum
from app.cdvote.utils import percentage


@dataclass(frozen=True)
class CandidateTally:
    candidate_id: int
    candidate_name: str
    rank: int
    votes: int
    percentage: int


@dataclass(frozen=True)
class PositionResult:
    position_id: str
    position_title: str
    total_votes: int
    candidates: tuple[CandidateTally, ...]
    abstain_count: int
    abstain_percentage: int

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class Turnout:
    total_eligible: int
    total_voted: int
    not_voted: int
    percentage: int

    def to_dict(self):
        return asdict(self)


# -- Winner determination --


@dataclass(frozen=True)
class WinnerDetermination:
    status: ClassVar[WinnerStatusEnum]

    def to_dict(self):
        return {"status": self.status.value, **asdict(self)}


@dataclass(frozen=True)
class Winner(WinnerDetermination):
    status: ClassVar[WinnerStatusEnum] = WinnerStatusEnum.winner
    candidate: CandidateTally
    abstain_count: int = 0


@dataclass(frozen=True)
class AbstainWins(WinnerDetermination):
    status: ClassVar[WinnerStatusEnum] = WinnerStatusEnum.abstain_wins
    abstain_count: int


@dataclass(frozen=True)
class Tie(WinnerDetermination):
    status: ClassVar[WinnerStatusEnum] = WinnerStatusEnum.tie
    tied: tuple[CandidateTally, ...] = field(default_factory=tuple)
    abstain_count: int = 0


@dataclass(frozen=True)
class NoCandidates(WinnerDetermination):
    status: ClassVar[WinnerStatusEnum] = WinnerStatusEnum.no_candidates


@dataclass(frozen=True)
class NoVotes(WinnerDetermination):
    status: ClassVar[WinnerStatusEnum] = WinnerStatusEnum.no_votes


def build_position_result(
    position_id: str,
    position_title: str,
    candidates: Iterable,
    vote_counts: Mapping[int, int],
    abstain_count: int,
) -> PositionResult:
    """
    Builds the tally of a position.

    :param candidates: objects with ``id``, ``name`` and ``rank``,
        already in rank order; that order breaks ties in the output.
    :param vote_counts: votes per candidate id, missing ids count 0.
    :param abstain_count: explicit "no vote" ballots for the position.
    """
    counted = [(c, int(vote_counts.get(c.id, 0))) for c in candidates]
    total_votes = sum(votes for _, votes in counted) + abstain_count

    tallies = [
        CandidateTally(
            candidate_id=c.id,
            candidate_name=c.name,
            rank=c.rank,
            votes=votes,
            percentage=percentage(votes, total_votes),
        )
        for c, votes in counted
    ]
    # sorted() is stable: equal votes keep rank order
    tallies = sorted(tallies, key=lambda t: t.votes, reverse=True)

    return PositionResult(
        position_id=position_id,
        position_title=position_title,
        total_votes=total_votes,
        candidates=tuple(tallies),
        abstain_count=abstain_count,
        abstain_percentage=percentage(abstain_count, total_votes),
    )


def compute_turnout(total_eligible: int, total_voted: int) -> Turnout:
    """
    Turnout over the eligible population. ``not_voted`` never goes
    below zero but the percentage is reported as is, even above 100
    when more students voted than are currently approved.
    """
    return Turnout(
        total_eligible=total_eligible,
        total_voted=total_voted,
        not_voted=max(0, total_eligible - total_voted),
        percentage=percentage(total_voted, total_eligible),
    )


def determine_winner(result: PositionResult) -> WinnerDetermination:
    if not result.candidates:
        return NoCandidates()

    if result.total_votes == 0:
        return NoVotes()

    max_votes = max(c.votes for c in result.candidates)
    if result.abstain_count > max_votes:
        return AbstainWins(abstain_count=result.abstain_count)

    top = tuple(c for c in result.candidates if c.votes == max_votes)
    if len(top) > 1:
        return Tie(tied=top, abstain_count=result.abstain_count)

    return Winner(candidate=top[0], abstain_count=result.abstain_count)
