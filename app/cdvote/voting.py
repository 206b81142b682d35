"""
Vote casting for CD Vote.

A cast vote writes, in one transaction, a VoteHistory row (who
voted), one anonymous Ballot per position (what was chosen) and the
digest of a random receipt token. The unique (student, election) key
on VoteHistory is the last line of defence against double voting.
"""

import hashlib
import re
import secrets

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from app.cdvote.model.cruds import crud, votes as votes_crud
from app.cdvote.model.enums import ActivityTypeEnum, VoteErrorEnum
from app.cdvote.model.schemas import schemas
from app.database import db_handler
from app.logger import activity_logger, logger


TOKEN_PREFIX = "VOTE"
TOKEN_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
TOKEN_GROUPS = 7
TOKEN_GROUP_SIZE = 4
TOKEN_PATTERN = re.compile(
    r"^%s(-[%s]{%d}){%d}$" % (TOKEN_PREFIX, TOKEN_ALPHABET, TOKEN_GROUP_SIZE, TOKEN_GROUPS)
)

VOTE_MESSAGES = {
    VoteErrorEnum.not_authenticated: "Please log in before voting",
    VoteErrorEnum.election_not_found: "Election not found",
    VoteErrorEnum.election_not_open: "The election is not open for voting",
    VoteErrorEnum.not_eligible: "This account has not been approved to vote",
    VoteErrorEnum.invalid_choices: "Invalid vote choices",
    VoteErrorEnum.already_voted: "You have already voted in this election",
    VoteErrorEnum.storage_error: "The vote could not be recorded, please try again",
}


class VoteRejected(Exception):
    def __init__(self, error: VoteErrorEnum, message: str = None):
        self.error = error
        self.message = message or VOTE_MESSAGES[error]
        super().__init__(self.message)


class AlreadyVotedError(VoteRejected):
    def __init__(self):
        super().__init__(VoteErrorEnum.already_voted)


# -- Tokens --


def generate_vote_token() -> str:
    """
    Random receipt token, 140 bits from the OS CSPRNG. Nothing about
    the voter or the time goes into it.
    """
    groups = [
        "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(TOKEN_GROUP_SIZE))
        for _ in range(TOKEN_GROUPS)
    ]
    return "-".join([TOKEN_PREFIX, *groups])


def normalize_vote_token(token: str) -> str:
    return (token or "").strip().upper()


def hash_vote_token(token: str) -> str:
    return hashlib.sha256(normalize_vote_token(token).encode("utf-8")).hexdigest()


# -- Choices --


def validate_choices(choices: list, positions: list, candidates: list) -> list:
    """
    Checks the ballot against the enabled positions of the election:
    exactly one choice per position, and every candidate must run
    for the position it is chosen for. Raises VoteRejected.
    """
    enabled = {p.id: p for p in positions if p.enabled}
    candidate_position = {c.id: c.position_id for c in candidates}

    seen = set()
    for choice in choices:
        if choice.position_id in seen:
            raise VoteRejected(VoteErrorEnum.invalid_choices, "Duplicate choice for position %s" % choice.position_id)
        seen.add(choice.position_id)

        if choice.position_id not in enabled:
            raise VoteRejected(VoteErrorEnum.invalid_choices, "Unknown or disabled position %s" % choice.position_id)

        if choice.candidate_id is not None and candidate_position.get(choice.candidate_id) != choice.position_id:
            raise VoteRejected(
                VoteErrorEnum.invalid_choices,
                "Candidate %s does not run for position %s" % (choice.candidate_id, choice.position_id),
            )

    missing = [position_id for position_id in enabled if position_id not in seen]
    if missing:
        raise VoteRejected(VoteErrorEnum.invalid_choices, "Missing choice for positions: %s" % ", ".join(missing))

    return list(choices)


# -- Cast vote --


def check_election(election):
    if election is None or election.is_archived:
        raise VoteRejected(VoteErrorEnum.election_not_found)
    if not election.is_open():
        raise VoteRejected(VoteErrorEnum.election_not_open)
    return election


async def check_ballot(session: Session | AsyncSession, election_id: int, choices: list) -> list:
    """
    Read-only checks of the election and the ballot, run before the
    write lock is taken. Raises VoteRejected.
    """
    try:
        check_election(await crud.get_election_by_id(session=session, election_id=election_id, simple=True))
        positions = await crud.get_positions_by_election(session=session, election_id=election_id, only_enabled=True)
        candidates = await crud.get_candidates_by_election(session=session, election_id=election_id)
        return validate_choices(choices, positions, candidates)
    finally:
        # ends the read transaction, the vote transaction must begin on its own
        await db_handler.rollback(session)


async def cast_vote(
    session: Session | AsyncSession,
    student_id: str | None,
    election_id: int,
    choices: list,
    ip_address: str = None,
    user_agent: str = None,
) -> schemas.VoteResult:
    """
    Records the ballot of a student. Never raises for expected
    conditions: every failure comes back as a VoteResult with
    success False and the matching VoteErrorEnum.
    """
    if not student_id:
        return _rejected(VoteRejected(VoteErrorEnum.not_authenticated))

    try:
        choices = await check_ballot(session, election_id, choices)

        async with db_handler.transaction(session):
            # positions are frozen once the election opens, only the window can have moved
            election = check_election(
                await crud.get_election_by_id(session=session, election_id=election_id, simple=True)
            )

            student = await votes_crud.lock_student(session=session, student_id=student_id)
            if student is None:
                raise VoteRejected(VoteErrorEnum.not_authenticated)
            if not student.voting_approved:
                raise VoteRejected(VoteErrorEnum.not_eligible)

            history = await votes_crud.get_vote_history(
                session=session, student_id=student_id, election_id=election_id, for_update=True
            )
            if history is not None:
                raise AlreadyVotedError()

            votes_crud.add_vote_history(
                session=session,
                student_id=student_id,
                election_id=election_id,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            # surfaces a concurrent insert of the same history row before the ballots go in
            await db_handler.flush(session)

            votes_crud.add_ballots(session=session, election_id=election_id, choices=choices)
            await votes_crud.increment_total_votes(session=session, election_id=election_id)

            token = generate_vote_token()
            votes_crud.add_vote_token(session=session, election_id=election_id, token_hash=hash_vote_token(token))
            election_title = election.title

    except VoteRejected as e:
        return _rejected(e, student_id=student_id, election_id=election_id)

    except IntegrityError:
        return _rejected(AlreadyVotedError(), student_id=student_id, election_id=election_id)

    except SQLAlchemyError:
        logger.exception("Vote storage error: %s (election %s)" % (student_id, election_id))
        return _rejected(VoteRejected(VoteErrorEnum.storage_error))

    logger.log("CDVOTE", "%s - Valid Cast Vote: %s (election %s)" % (ip_address, student_id, election_id))
    try:
        await activity_logger.info(
            ActivityTypeEnum.vote_cast,
            title="Vote cast",
            description=election_title,
            election_id=election_id,
        )
    except SQLAlchemyError:
        # the vote is committed, the receipt must still reach the voter
        logger.exception("Could not log the cast vote (election %s)" % election_id)
    return schemas.VoteResult(success=True, message="Vote recorded", token=token)


def _rejected(rejection: VoteRejected, student_id: str = None, election_id: int = None) -> schemas.VoteResult:
    if rejection.error == VoteErrorEnum.already_voted:
        logger.warning("Duplicate Cast Vote rejected: %s (election %s)" % (student_id, election_id))
    return schemas.VoteResult(success=False, message=rejection.message, error=rejection.error)


async def has_voted(session: Session | AsyncSession, student_id: str, election_id: int) -> bool:
    history = await votes_crud.get_vote_history(session=session, student_id=student_id, election_id=election_id)
    return history is not None


async def verify_vote_token(session: Session | AsyncSession, election_id: int, token: str) -> bool:
    """
    True when the token is a receipt issued for this election.
    """
    if not TOKEN_PATTERN.match(normalize_vote_token(token)):
        return False
    db_token = await votes_crud.get_vote_token(
        session=session, election_id=election_id, token_hash=hash_vote_token(token)
    )
    return db_token is not None
