import base64
import datetime

import app.celery_worker.cdvote.tasks as tasks

from fastapi import Depends, HTTPException, APIRouter, UploadFile, Request, Response
from sqlalchemy.orm import Session
from sqlalchemy.ext.asyncio import AsyncSession

from app.cdvote import results, utils, voting
from app.cdvote.model import models
from app.cdvote.model.cruds import crud, votes as votes_crud
from app.cdvote.model.enums import ActivityTypeEnum, ElectionStatusEnum, VoteErrorEnum
from app.cdvote.model.schemas import schemas
from app.cdvote.ocr.parser import ParseResult, parse_ocr_text
from app.cdvote.ocr.validation import DatabaseStudentDirectory, validate_parsed_data
from app.cdvote_auth.auth_bearer import AuthAdmin
from app.cdvote_auth.auth_service_check import AuthStudent
from app.dependencies import get_session, get_request_origin, RequestOrigin
from app.logger import activity_logger, logger

api_router = APIRouter()


async def get_election_or_404(session: Session | AsyncSession, election_id: int, simple: bool = False):
    election = await crud.get_election_by_id(session=session, election_id=election_id, simple=simple)
    if not election:
        raise HTTPException(status_code=404, detail="Election not found")
    return election


def check_editable(election: models.Election):
    """
    Positions and candidates are frozen once voting has started.
    """
    if election.is_locked():
        raise HTTPException(status_code=400, detail="The election has started, positions and candidates are locked")


def election_out(election: models.Election, schema=schemas.ElectionOut):
    return schema.model_validate(election).model_copy(update={"status": election.current_status().value})


# ----- Election Admin Routes -----


@api_router.post("/elections", response_model=schemas.ElectionOut, status_code=201)
async def create_election(
    election_in: schemas.ElectionIn,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    """
    Admin's route for creating an election, with the default
    committee positions unless told otherwise
    """
    election = await crud.create_election(session=session, election=election_in)
    await activity_logger.info(
        ActivityTypeEnum.election_change,
        title="Election created",
        description=election.title,
        election_id=election.id,
        admin=current_user.username,
    )
    return election_out(election)


@api_router.get("/elections", response_model=list[schemas.SimpleElection], status_code=200)
async def get_elections(session: Session | AsyncSession = Depends(get_session)):
    elections = await crud.get_elections(session=session)
    return [election_out(election, schemas.SimpleElection) for election in elections]


@api_router.get("/elections/{election_id}", response_model=schemas.ElectionOut, status_code=200)
async def get_election(election_id: int, session: Session | AsyncSession = Depends(get_session)):
    election = await get_election_or_404(session=session, election_id=election_id)
    return election_out(election)


@api_router.post("/elections/{election_id}/status", response_model=schemas.SimpleElection, status_code=200)
async def set_election_status(
    election_id: int,
    status_in: schemas.ElectionStatusIn,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    """
    Opens or closes an election now by moving its voting window;
    the window stays the single source of the status.
    """
    election = await get_election_or_404(session=session, election_id=election_id, simple=True)
    now = utils.local_now()
    fields = {"status": status_in.status}

    if status_in.status == ElectionStatusEnum.open:
        if election.end_date < now:
            raise HTTPException(status_code=400, detail="The voting window has already ended")
        if election.start_date > now:
            fields["start_date"] = now
    else:
        end_date = now - datetime.timedelta(seconds=1)
        if election.end_date > end_date:
            fields["end_date"] = end_date
        if election.start_date >= end_date:
            fields["start_date"] = end_date - datetime.timedelta(seconds=1)

    election = await crud.update_election(session=session, election_id=election_id, fields=fields)
    await activity_logger.info(
        ActivityTypeEnum.election_change,
        title="Election %s" % ("opened" if status_in.status == ElectionStatusEnum.open else "closed"),
        description=election.title,
        election_id=election_id,
        admin=current_user.username,
    )
    return election_out(election, schemas.SimpleElection)


@api_router.post("/elections/{election_id}/archive", response_model=schemas.SimpleElection, status_code=200)
async def archive_election(
    election_id: int,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    election = await get_election_or_404(session=session, election_id=election_id, simple=True)
    if election.current_status() == ElectionStatusEnum.open:
        raise HTTPException(status_code=400, detail="Close the election before archiving it")

    election = await crud.update_election(session=session, election_id=election_id, fields={"is_archived": True})
    await activity_logger.info(
        ActivityTypeEnum.election_change,
        title="Election archived",
        description=election.title,
        election_id=election_id,
        admin=current_user.username,
    )
    return election_out(election, schemas.SimpleElection)


@api_router.post("/elections/{election_id}/delete", status_code=200)
async def delete_election(
    election_id: int,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    """
    Only an election nobody has voted in can be deleted
    """
    election = await get_election_or_404(session=session, election_id=election_id, simple=True)
    if await results.get_total_votes(session, election_id) > 0:
        raise HTTPException(status_code=400, detail="The election already has votes, archive it instead")

    await crud.delete_election(session=session, election_id=election_id)
    await activity_logger.info(
        ActivityTypeEnum.election_change,
        title="Election deleted",
        description=election.title,
        admin=current_user.username,
    )
    return {"message": "election deleted"}


# ----- Position & Candidate Admin Routes -----


@api_router.post("/elections/{election_id}/positions", response_model=schemas.PositionOut, status_code=201)
async def add_position(
    election_id: int,
    position_in: schemas.PositionIn,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    election = await get_election_or_404(session=session, election_id=election_id, simple=True)
    check_editable(election)
    return await crud.add_custom_position(session=session, election_id=election_id, position=position_in)


@api_router.post("/elections/{election_id}/positions/{position_id}/toggle", response_model=schemas.PositionOut, status_code=200)
async def toggle_position(
    election_id: int,
    position_id: str,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    election = await get_election_or_404(session=session, election_id=election_id, simple=True)
    check_editable(election)
    if not await crud.get_position(session=session, election_id=election_id, position_id=position_id):
        raise HTTPException(status_code=404, detail="Position not found")
    return await crud.toggle_position(session=session, election_id=election_id, position_id=position_id)


@api_router.get("/elections/{election_id}/candidates", response_model=list[schemas.CandidateOut], status_code=200)
async def get_candidates(election_id: int, session: Session | AsyncSession = Depends(get_session)):
    await get_election_or_404(session=session, election_id=election_id, simple=True)
    return await crud.get_candidates_by_election(session=session, election_id=election_id)


@api_router.post("/elections/{election_id}/candidates", response_model=schemas.CandidateOut, status_code=201)
async def create_candidate(
    election_id: int,
    candidate_in: schemas.CandidateIn,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    election = await get_election_or_404(session=session, election_id=election_id, simple=True)
    check_editable(election)
    if not await crud.get_position(session=session, election_id=election_id, position_id=candidate_in.position_id):
        raise HTTPException(status_code=404, detail="Position not found")
    return await crud.create_candidate(session=session, election_id=election_id, candidate=candidate_in)


@api_router.post("/elections/{election_id}/candidates/{candidate_id}/delete", status_code=200)
async def delete_candidate(
    election_id: int,
    candidate_id: int,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    election = await get_election_or_404(session=session, election_id=election_id, simple=True)
    check_editable(election)
    await crud.delete_candidate(session=session, election_id=election_id, candidate_id=candidate_id)
    return {"message": "candidate deleted"}


# ----- Student Admin Routes -----


@api_router.get("/students", response_model=list[schemas.StudentOut], status_code=200)
async def get_students(
    class_room: str = None,
    page: int = 0,
    page_size: int = None,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    offset = page_size * page if page_size else 0
    return await crud.get_students(session=session, class_room=class_room, page=offset, page_size=page_size)


@api_router.post("/students", response_model=schemas.StudentOut, status_code=201)
async def create_student(
    student_in: schemas.StudentIn,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    """
    Admin's route for registering a student, usually from a scanned card
    """
    if await crud.get_student_by_id(session=session, student_id=student_in.id):
        raise HTTPException(status_code=409, detail="The student id is already registered")
    if await crud.get_student_by_national_id(session=session, national_id=student_in.national_id):
        raise HTTPException(status_code=409, detail="The national id is already registered")

    student = await crud.create_student(session=session, student=student_in)
    await activity_logger.info(
        ActivityTypeEnum.admin_action,
        title="Student registered",
        description=student.full_name,
        student_id=student.id,
        admin=current_user.username,
    )
    logger.log("CDVOTE", "Student registered: %s" % student.id)
    return student


@api_router.post("/students/upload", response_model=schemas.UploadStudentsOut, status_code=200)
async def upload_students(
    file: UploadFile,
    overwrite: bool = False,
    current_user: models.User = Depends(AuthAdmin()),
):
    """
    Admin's route for importing the students file
    """
    try:
        student_file_content = file.file.read().decode("utf-8")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="The students file must be UTF-8 encoded")

    task = tasks.upload_students.delay(student_file_content=student_file_content, overwrite=overwrite)
    summary = task.get()

    if summary["imported"]:
        await activity_logger.info(
            ActivityTypeEnum.admin_action,
            title="Students imported",
            description="%d imported, %d skipped" % (summary["imported"], summary["skipped"]),
            admin=current_user.username,
        )
    return summary


@api_router.post("/students/{student_id}/approve", response_model=schemas.StudentOut, status_code=200)
async def approve_student(
    student_id: str,
    approval_in: schemas.StudentApprovalIn,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    if not await crud.get_student_by_id(session=session, student_id=student_id):
        raise HTTPException(status_code=404, detail="Student not found")

    student = await crud.set_voting_approval(
        session=session, student_id=student_id, approved=approval_in.approved, admin_id=current_user.get_id()
    )
    await activity_logger.info(
        ActivityTypeEnum.admin_action,
        title="Voting right %s" % ("approved" if approval_in.approved else "revoked"),
        description=student.full_name,
        student_id=student_id,
        admin=current_user.username,
    )
    return student


@api_router.get("/activities", response_model=list[schemas.ActivityOut], status_code=200)
async def get_activities(
    limit: int = 20,
    type: ActivityTypeEnum = None,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    return await crud.get_recent_activities(session=session, limit=min(limit, 100), type=type)


# ----- Card OCR Routes -----


@api_router.post("/ocr/scan", response_model=schemas.ScanOut, status_code=200)
async def scan_card(
    file: UploadFile,
    enable_crop: bool = True,
    enable_enhancement: bool = True,
    enable_ocr_preprocessing: bool = True,
    current_user: models.User = Depends(AuthAdmin()),
):
    """
    Reads a student card photo. A photo where no card is found is
    still read as a whole frame.
    """
    task_params = {
        "image_b64": base64.b64encode(file.file.read()).decode("ascii"),
        "enable_crop": enable_crop,
        "enable_enhancement": enable_enhancement,
        "enable_ocr_preprocessing": enable_ocr_preprocessing,
    }
    task = tasks.scan_card.delay(**task_params)
    ok, payload = task.get()
    if not ok:
        raise HTTPException(status_code=400, detail="Could not read the card image: %s" % payload)
    return payload


@api_router.post("/ocr/parse", response_model=schemas.ParseResultOut, status_code=200)
async def parse_text(text_in: schemas.OcrTextIn, current_user: models.User = Depends(AuthAdmin())):
    return parse_ocr_text(text_in.text).to_dict()


@api_router.post("/ocr/validate", response_model=schemas.ValidationOut, status_code=200)
async def validate_card(
    parsed_in: schemas.ParseResultOut,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    parsed = ParseResult(**parsed_in.model_dump())
    validation = await validate_parsed_data(parsed, DatabaseStudentDirectory(session))
    return {
        "is_valid": validation.is_valid,
        "match_type": validation.match_type,
        "matched_student": validation.matched_student,
    }


# ----- Voter Routes -----


@api_router.post("/elections/{election_id}/cast-vote", response_model=schemas.VoteResult, status_code=200)
async def cast_vote(
    election_id: int,
    cast_vote_in: schemas.CastVoteIn,
    response: Response,
    student_id: str | None = Depends(AuthStudent(auto_error=False)),
    origin: RequestOrigin = Depends(get_request_origin),
    session: Session | AsyncSession = Depends(get_session),
):
    """
    Route for casting a vote
    """
    result = await voting.cast_vote(
        session=session,
        student_id=student_id,
        election_id=election_id,
        choices=cast_vote_in.choices,
        ip_address=origin.ip_address,
        user_agent=origin.user_agent,
    )
    if result.error == VoteErrorEnum.already_voted:
        response.status_code = 409
    elif result.error == VoteErrorEnum.not_authenticated:
        response.status_code = 401
    return result


@api_router.get("/elections/{election_id}/has-voted", status_code=200)
async def has_voted(
    election_id: int,
    student_id: str = Depends(AuthStudent()),
    session: Session | AsyncSession = Depends(get_session),
):
    return {"has_voted": await voting.has_voted(session=session, student_id=student_id, election_id=election_id)}


@api_router.post("/elections/{election_id}/verify-token", status_code=200)
async def verify_token(
    election_id: int,
    token_in: schemas.VerifyTokenIn,
    session: Session | AsyncSession = Depends(get_session),
):
    """
    Anyone holding a receipt can check it was issued for this election
    """
    await get_election_or_404(session=session, election_id=election_id, simple=True)
    return {"valid": await voting.verify_vote_token(session=session, election_id=election_id, token=token_in.token)}


@api_router.get("/student/votes", response_model=list[schemas.StudentVoteOut], status_code=200)
async def get_my_votes(
    student_id: str = Depends(AuthStudent()),
    session: Session | AsyncSession = Depends(get_session),
):
    return await votes_crud.get_student_vote_history(session=session, student_id=student_id)


# ----- Results Routes -----


@api_router.get("/elections/{election_id}/results", response_model=schemas.ElectionResultsOut, status_code=200)
async def get_results(
    election_id: int,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    election_results = await results.get_election_results(session=session, election_id=election_id)
    if election_results is None:
        raise HTTPException(status_code=404, detail="Election not found")
    return election_results


@api_router.get("/public/elections/{election_id}/results", response_model=schemas.ElectionResultsOut, status_code=200)
async def get_public_results(request: Request, election_id: int, session: Session | AsyncSession = Depends(get_session)):
    """
    Results are published once the election is closed
    """
    election = await get_election_or_404(session=session, election_id=election_id, simple=True)
    if election.current_status() != ElectionStatusEnum.closed:
        raise HTTPException(status_code=403, detail="Results are published when the election closes")

    logger.log("CDVOTE", "%s - Public Results Access (election %s)" % (request.client.host, election_id))
    return await results.get_election_results(session=session, election_id=election_id)


@api_router.get("/elections/{election_id}/participation", response_model=list[schemas.LevelParticipationOut], status_code=200)
async def get_participation(
    election_id: int,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    await get_election_or_404(session=session, election_id=election_id, simple=True)
    return await results.get_participation_by_level(session=session, election_id=election_id)


@api_router.get("/elections/{election_id}/voting-log", response_model=list[schemas.VotingLogEntryOut], status_code=200)
async def get_voting_log(
    election_id: int,
    limit: int = 10,
    current_user: models.User = Depends(AuthAdmin()),
    session: Session | AsyncSession = Depends(get_session),
):
    await get_election_or_404(session=session, election_id=election_id, simple=True)
    return await results.get_voting_log(session=session, election_id=election_id, limit=min(limit, 100))
