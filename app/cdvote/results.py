"""
Read-only results queries. Every call recomputes from the
ballot table; nothing is cached between calls.
"""

from collections import Counter

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.cdvote import tally
from app.cdvote.utils import class_level, percentage
from app.cdvote.model.cruds import crud, votes as votes_crud


CLASS_LEVELS = range(1, 7)


async def get_position_results(session: Session | AsyncSession, election_id: int, position_id: str, position_title: str) -> tally.PositionResult:
    candidates = await crud.get_candidates_by_position(session=session, election_id=election_id, position_id=position_id)
    vote_counts = await votes_crud.count_votes_by_candidate(session=session, election_id=election_id, position_id=position_id)
    abstain_count = await votes_crud.count_abstentions(session=session, election_id=election_id, position_id=position_id)
    return tally.build_position_result(position_id, position_title, candidates, vote_counts, abstain_count)


async def get_position_winner(session: Session | AsyncSession, election_id: int, position_id: str, position_title: str) -> tally.WinnerDetermination:
    result = await get_position_results(session, election_id, position_id, position_title)
    return tally.determine_winner(result)


async def get_total_votes(session: Session | AsyncSession, election_id: int) -> int:
    return await votes_crud.count_vote_history(session=session, election_id=election_id)


async def get_voter_turnout(session: Session | AsyncSession, election_id: int) -> tally.Turnout:
    total_eligible = await crud.count_eligible_students(session=session)
    total_voted = await get_total_votes(session, election_id)
    return tally.compute_turnout(total_eligible, total_voted)


async def get_election_results(session: Session | AsyncSession, election_id: int):
    """
    Turnout plus result and winner of every enabled position,
    in display order. None when the election doesn't exist.
    """
    election = await crud.get_election_by_id(session=session, election_id=election_id, simple=True)
    if election is None:
        return None

    positions = await crud.get_positions_by_election(session=session, election_id=election_id, only_enabled=True)
    summaries = []
    for position in positions:
        result = await get_position_results(session, election_id, position.id, position.title)
        summaries.append({
            "result": result.to_dict(),
            "winner": tally.determine_winner(result).to_dict(),
        })

    turnout = await get_voter_turnout(session, election_id)
    return {
        "election_id": election.id,
        "title": election.title,
        "status": election.current_status(),
        "turnout": turnout.to_dict(),
        "positions": summaries,
    }


async def get_participation_by_level(session: Session | AsyncSession, election_id: int) -> list[dict]:
    """
    Students and voters per class level 1 to 6; class rooms that
    don't start with a level are left out.
    """
    totals = Counter(class_level(c) for c in await crud.get_students_class_rooms(session=session))
    voted = Counter(class_level(c) for c in await votes_crud.get_voted_class_rooms(session=session, election_id=election_id))

    return [
        {
            "level": level,
            "total_students": totals[level],
            "voted": voted[level],
            "percentage": percentage(voted[level], totals[level]),
        }
        for level in CLASS_LEVELS
    ]


async def get_voting_log(session: Session | AsyncSession, election_id: int, limit: int = 10) -> list[dict]:
    rows = await votes_crud.get_voting_log(session=session, election_id=election_id, limit=limit)
    return [{"id": row.id, "voted_at": row.voted_at} for row in rows]
