"""
CRUD utils for CD Vote
(Create - Read - Update - delete)
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import select, update, delete, func

from app.cdvote import utils
from app.cdvote.model import models
from app.cdvote.model.schemas import schemas
from app.database import db_handler


ELECTION_QUERY_OPTIONS = [
    selectinload(models.Election.positions).selectinload(models.Position.candidates),
]

DEFAULT_POSITIONS = [
    ("president", "ประธาน", "person"),
    ("vice-president", "รองประธาน", "supervisor_account"),
    ("male-president", "ประธานชาย", "man"),
    ("male-vice-president", "รองประธานชาย", "man_2"),
    ("female-president", "ประธานหญิง", "woman"),
    ("female-vice-president", "รองประธานหญิง", "woman_2"),
    ("secretary", "เลขานุการ", "edit_note"),
    ("vice-secretary", "รองเลขานุการ", "edit_document"),
    ("treasurer", "เหรัญญิก", "payments"),
    ("vice-treasurer", "รองเหรัญญิก", "account_balance_wallet"),
    ("public-relations", "ประชาสัมพันธ์", "campaign"),
    ("vice-public-relations", "รองประชาสัมพันธ์", "record_voice_over"),
    ("music-president", "ประธานดนตรี", "music_note"),
    ("vice-music-president", "รองประธานดนตรี", "library_music"),
    ("sports-president", "ประธานกีฬา", "sports_soccer"),
    ("vice-sports-president", "รองประธานกีฬา", "sports"),
    ("cheer-president", "ประธานเชียร์", "celebration"),
    ("vice-cheer-president", "รองประธานเชียร์", "sentiment_very_satisfied"),
    ("discipline-president", "ประธานระเบียบ", "gavel"),
    ("vice-discipline-president", "รองประธานระเบียบ", "verified_user"),
    ("male-discipline-president", "ประธานระเบียบชาย", "security"),
    ("female-discipline-president", "ประธานระเบียบหญิง", "shield_person"),
]


# ----- Student CRUD Utils -----


async def get_student_by_id(session: Session | AsyncSession, student_id: str):
    query = select(models.Student).where(models.Student.id == student_id)
    result = await db_handler.execute(session, query)
    return result.scalars().first()


async def get_student_by_national_id(session: Session | AsyncSession, national_id: str):
    query = select(models.Student).where(models.Student.national_id == national_id)
    result = await db_handler.execute(session, query)
    return result.scalars().first()


async def get_students(session: Session | AsyncSession, class_room: str = None, page=0, page_size=None):
    query = select(models.Student).order_by(models.Student.class_room, models.Student.student_no, models.Student.id)
    if class_room is not None:
        query = query.where(models.Student.class_room == class_room)
    query = query.offset(page).limit(page_size)
    result = await db_handler.execute(session, query)
    return result.scalars().all()


async def create_student(session: Session | AsyncSession, student: schemas.StudentIn):
    db_student = models.Student(**student.model_dump())
    db_handler.add(session, db_student)
    await db_handler.commit(session)
    await db_handler.refresh(session, db_student)
    return db_student


async def set_voting_approval(session: Session | AsyncSession, student_id: str, approved: bool, admin_id: int = None):
    fields = {
        "voting_approved": approved,
        "voting_approved_at": utils.local_now() if approved else None,
        "voting_approved_by": admin_id if approved else None,
    }
    query = update(models.Student).where(models.Student.id == student_id).values(fields)
    await db_handler.execute(session, query)
    await db_handler.commit(session)
    return await get_student_by_id(session=session, student_id=student_id)


async def touch_student(session: Session | AsyncSession, student_id: str):
    query = update(models.Student).where(models.Student.id == student_id).values(last_active=utils.local_now())
    await db_handler.execute(session, query)
    await db_handler.commit(session)


async def count_eligible_students(session: Session | AsyncSession):
    query = select(func.count(models.Student.id)).where(models.Student.voting_approved.is_(True))
    result = await db_handler.execute(session, query)
    return result.scalar() or 0


async def get_students_class_rooms(session: Session | AsyncSession):
    query = select(models.Student.class_room)
    result = await db_handler.execute(session, query)
    return [row[0] for row in result.all()]


# ----- Election CRUD Utils -----


async def get_election_by_id(session: Session | AsyncSession, election_id: int, simple: bool = False):
    query = select(models.Election).where(models.Election.id == election_id)
    if not simple:
        query = query.options(*ELECTION_QUERY_OPTIONS)
    result = await db_handler.execute(session, query)
    return result.scalars().first()


async def get_elections(session: Session | AsyncSession, include_archived: bool = False):
    query = select(models.Election).order_by(models.Election.start_date.desc())
    if not include_archived:
        query = query.where(models.Election.is_archived.is_(False))
    result = await db_handler.execute(session, query)
    return result.scalars().all()


async def create_election(session: Session | AsyncSession, election: schemas.ElectionIn):
    fields = election.model_dump(exclude={"with_default_positions"})
    db_election = models.Election(
        **fields,
        status=utils.calculate_status(election.start_date, election.end_date),
    )
    db_handler.add(session, db_election)
    await db_handler.flush(session)

    if election.with_default_positions:
        db_handler.add_all(session, [
            models.Position(
                id=f"{db_election.id}-{slug}",
                election_id=db_election.id,
                title=title,
                icon=icon,
                enabled=True,
                is_custom=False,
                sort_order=index,
            )
            for index, (slug, title, icon) in enumerate(DEFAULT_POSITIONS)
        ])

    await db_handler.commit(session)
    return await get_election_by_id(session=session, election_id=db_election.id)


async def update_election(session: Session | AsyncSession, election_id: int, fields: dict):
    query = update(models.Election).where(models.Election.id == election_id).values(fields)
    await db_handler.execute(session, query)
    await db_handler.commit(session)

    return await get_election_by_id(session=session, election_id=election_id, simple=True)


async def delete_election(session: Session | AsyncSession, election_id: int):
    query = delete(models.Election).where(models.Election.id == election_id)
    await db_handler.execute(session, query)
    await db_handler.commit(session)


# ----- Position CRUD Utils -----


async def get_position(session: Session | AsyncSession, election_id: int, position_id: str):
    query = select(models.Position).where(
        models.Position.election_id == election_id,
        models.Position.id == position_id,
    )
    result = await db_handler.execute(session, query)
    return result.scalars().first()


async def get_positions_by_election(session: Session | AsyncSession, election_id: int, only_enabled: bool = False):
    query = select(models.Position).where(
        models.Position.election_id == election_id
    ).order_by(models.Position.sort_order)
    if only_enabled:
        query = query.where(models.Position.enabled.is_(True))
    result = await db_handler.execute(session, query)
    return result.scalars().all()


async def toggle_position(session: Session | AsyncSession, election_id: int, position_id: str):
    query = update(models.Position).where(
        models.Position.election_id == election_id,
        models.Position.id == position_id,
    ).values(enabled=~models.Position.enabled)
    await db_handler.execute(session, query)
    await db_handler.commit(session)
    return await get_position(session=session, election_id=election_id, position_id=position_id)


async def add_custom_position(session: Session | AsyncSession, election_id: int, position: schemas.PositionIn):
    query = select(func.max(models.Position.sort_order)).where(models.Position.election_id == election_id)
    result = await db_handler.execute(session, query)
    max_order = result.scalar()

    db_position = models.Position(
        id=f"{election_id}-custom-{utils.random_suffix()}",
        election_id=election_id,
        title=utils.sanitize_input(position.title),
        icon=position.icon,
        enabled=True,
        is_custom=True,
        sort_order=(max_order if max_order is not None else -1) + 1,
    )
    db_handler.add(session, db_position)
    await db_handler.commit(session)
    await db_handler.refresh(session, db_position)
    return db_position


# ----- Candidate CRUD Utils -----


async def get_candidates_by_position(session: Session | AsyncSession, election_id: int, position_id: str):
    query = select(models.Candidate).where(
        models.Candidate.election_id == election_id,
        models.Candidate.position_id == position_id,
    ).order_by(models.Candidate.rank, models.Candidate.id)
    result = await db_handler.execute(session, query)
    return result.scalars().all()


async def get_candidates_by_election(session: Session | AsyncSession, election_id: int):
    query = select(models.Candidate).where(
        models.Candidate.election_id == election_id
    ).order_by(models.Candidate.position_id, models.Candidate.rank)
    result = await db_handler.execute(session, query)
    return result.scalars().all()


async def get_next_candidate_rank(session: Session | AsyncSession, election_id: int, position_id: str):
    query = select(func.max(models.Candidate.rank)).where(
        models.Candidate.election_id == election_id,
        models.Candidate.position_id == position_id,
    )
    result = await db_handler.execute(session, query)
    return (result.scalar() or 0) + 1


async def create_candidate(session: Session | AsyncSession, election_id: int, candidate: schemas.CandidateIn):
    fields = candidate.model_dump()
    if fields["rank"] is None:
        fields["rank"] = await get_next_candidate_rank(
            session=session, election_id=election_id, position_id=candidate.position_id
        )
    fields["name"] = utils.sanitize_input(fields["name"])
    db_candidate = models.Candidate(election_id=election_id, **fields)
    db_handler.add(session, db_candidate)
    await db_handler.commit(session)
    await db_handler.refresh(session, db_candidate)
    return db_candidate


async def delete_candidate(session: Session | AsyncSession, election_id: int, candidate_id: int):
    query = delete(models.Candidate).where(
        models.Candidate.election_id == election_id,
        models.Candidate.id == candidate_id,
    )
    await db_handler.execute(session, query)
    await db_handler.commit(session)


# ----- Activity CRUD Utils -----


async def log_to_db(session: Session | AsyncSession, type: str, log_level: str, title: str, description: str, event_params: str):
    db_log = models.Activity(
        type=type,
        log_level=log_level,
        title=title,
        description=description,
        event_params=event_params,
    )
    db_handler.add(session, db_log)
    await db_handler.commit(session)
    await db_handler.refresh(session, db_log)
    return db_log


async def get_recent_activities(session: Session | AsyncSession, limit: int = 20, type: str = None):
    query = select(models.Activity).order_by(models.Activity.created_at.desc(), models.Activity.id.desc())
    if type is not None:
        query = query.where(models.Activity.type == type)
    result = await db_handler.execute(session, query.limit(limit))
    return result.scalars().all()
