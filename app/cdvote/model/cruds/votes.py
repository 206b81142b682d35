"""
CRUD utils for the voting tables: vote history,
anonymous ballots and vote tokens.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session
from sqlalchemy import select, update, func

from app.cdvote.model import models
from app.database import db_handler


# ----- Vote transaction steps -----


async def lock_student(session: Session | AsyncSession, student_id: str):
    """
    Row lock on the voter only; two different students never wait
    on each other.
    """
    query = select(models.Student).where(models.Student.id == student_id).with_for_update()
    result = await db_handler.execute(session, query)
    return result.scalars().first()


async def get_vote_history(session: Session | AsyncSession, student_id: str, election_id: int, for_update: bool = False):
    query = select(models.VoteHistory).where(
        models.VoteHistory.student_id == student_id,
        models.VoteHistory.election_id == election_id,
    )
    if for_update:
        query = query.with_for_update()
    result = await db_handler.execute(session, query)
    return result.scalars().first()


def add_vote_history(session: Session | AsyncSession, student_id: str, election_id: int, ip_address: str = None, user_agent: str = None):
    db_history = models.VoteHistory(
        student_id=student_id,
        election_id=election_id,
        ip_address=ip_address,
        user_agent=user_agent,
    )
    db_handler.add(session, db_history)
    return db_history


def add_ballots(session: Session | AsyncSession, election_id: int, choices: list):
    ballots = [
        models.Ballot(
            election_id=election_id,
            position_id=choice.position_id,
            candidate_id=choice.candidate_id,
            is_no_vote=choice.candidate_id is None,
        )
        for choice in choices
    ]
    db_handler.add_all(session, ballots)
    return ballots


async def increment_total_votes(session: Session | AsyncSession, election_id: int):
    query = update(models.Election).where(
        models.Election.id == election_id
    ).values(total_votes=models.Election.total_votes + 1).execution_options(synchronize_session=False)
    await db_handler.execute(session, query)


def add_vote_token(session: Session | AsyncSession, election_id: int, token_hash: str):
    db_token = models.VoteToken(election_id=election_id, token_hash=token_hash)
    db_handler.add(session, db_token)
    return db_token


async def get_vote_token(session: Session | AsyncSession, election_id: int, token_hash: str):
    query = select(models.VoteToken).where(
        models.VoteToken.election_id == election_id,
        models.VoteToken.token_hash == token_hash,
    )
    result = await db_handler.execute(session, query)
    return result.scalars().first()


# ----- Counting -----


async def count_votes_by_candidate(session: Session | AsyncSession, election_id: int, position_id: str) -> dict:
    query = select(models.Ballot.candidate_id, func.count(models.Ballot.id)).where(
        models.Ballot.election_id == election_id,
        models.Ballot.position_id == position_id,
        models.Ballot.is_no_vote.is_(False),
    ).group_by(models.Ballot.candidate_id)
    result = await db_handler.execute(session, query)
    return {candidate_id: count for candidate_id, count in result.all()}


async def count_abstentions(session: Session | AsyncSession, election_id: int, position_id: str) -> int:
    query = select(func.count(models.Ballot.id)).where(
        models.Ballot.election_id == election_id,
        models.Ballot.position_id == position_id,
        models.Ballot.is_no_vote.is_(True),
    )
    result = await db_handler.execute(session, query)
    return result.scalar() or 0


async def count_vote_history(session: Session | AsyncSession, election_id: int) -> int:
    query = select(func.count(models.VoteHistory.id)).where(models.VoteHistory.election_id == election_id)
    result = await db_handler.execute(session, query)
    return result.scalar() or 0


async def get_voting_log(session: Session | AsyncSession, election_id: int, limit: int = 10):
    query = select(models.VoteHistory.id, models.VoteHistory.voted_at).where(
        models.VoteHistory.election_id == election_id
    ).order_by(models.VoteHistory.voted_at.desc(), models.VoteHistory.id.desc()).limit(limit)
    result = await db_handler.execute(session, query)
    return result.all()


async def get_voted_class_rooms(session: Session | AsyncSession, election_id: int):
    query = select(models.Student.class_room).join(
        models.VoteHistory, models.VoteHistory.student_id == models.Student.id
    ).where(models.VoteHistory.election_id == election_id)
    result = await db_handler.execute(session, query)
    return [row[0] for row in result.all()]


async def get_student_vote_history(session: Session | AsyncSession, student_id: str):
    query = select(models.VoteHistory).where(
        models.VoteHistory.student_id == student_id
    ).order_by(models.VoteHistory.voted_at.desc())
    result = await db_handler.execute(session, query)
    return result.scalars().all()
