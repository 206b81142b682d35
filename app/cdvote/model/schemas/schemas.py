"""
Pydantic schemas (FastAPI) for CD Vote.

Let 'TestModel' be a SQLAlchemy model, the API can:
    - Create/modify an instance of TestModel.
    - Out an instance of TestModel.

For that each model gets a TestModelBase holding the shared
fields, a TestModelIn with the data needed to create it and a
TestModelOut with the data the API returns.
"""

from datetime import datetime

from pydantic import BaseModel, Field, field_validator, model_validator

from app.cdvote import utils
from app.cdvote.model.enums import (
    ActivityTypeEnum,
    ElectionStatusEnum,
    MatchTypeEnum,
    VoteErrorEnum,
    WinnerStatusEnum,
)


class CDVoteSchema(BaseModel):
    """
    Base class for a CD Vote schema.
    """

    class Config:
        from_attributes = True
        use_enum_values = True


# ------------------ model-related schemas ------------------

#  Student-related schemas


class StudentBase(CDVoteSchema):
    """
    Basic student schema.
    """

    id: str
    prefix: str | None = None
    name: str
    surname: str
    student_no: str | None = None
    class_room: str | None = None

    @field_validator("id")
    @classmethod
    def check_student_id(cls, value):
        if not utils.is_valid_student_id(value):
            raise ValueError("student id must be 4 digits")
        return value

    @field_validator("name", "surname", "prefix", "class_room", "student_no")
    @classmethod
    def clean_text(cls, value):
        return utils.sanitize_input(value) if value is not None else value


class StudentIn(StudentBase):
    """
    Schema for creating a student, the national id is only
    accepted, never returned.
    """

    national_id: str

    @field_validator("national_id")
    @classmethod
    def check_national_id(cls, value):
        value = value.replace("-", "").replace(" ", "")
        if not utils.is_valid_national_id(value):
            raise ValueError("national id must be 13 digits")
        return value


class StudentOut(StudentBase):
    voting_approved: bool
    voting_approved_at: datetime | None = None
    last_active: datetime | None = None


#  Election-related schemas


class ElectionBase(CDVoteSchema):
    title: str
    description: str | None = None
    type: str = "student-committee"
    start_date: datetime
    end_date: datetime

    @model_validator(mode="after")
    def check_window(self):
        if self.end_date <= self.start_date:
            raise ValueError("end_date must be after start_date")
        return self


class ElectionIn(ElectionBase):
    """
    Schema for creating an election.
    """

    with_default_positions: bool = True


class ElectionStatusIn(CDVoteSchema):
    status: ElectionStatusEnum

    @field_validator("status")
    @classmethod
    def check_manual_status(cls, value):
        if value == ElectionStatusEnum.pending:
            raise ValueError("an election can only be opened or closed manually")
        return value


class PositionIn(CDVoteSchema):
    title: str = Field(min_length=1, max_length=100)
    icon: str = "star"


class PositionOut(CDVoteSchema):
    id: str
    election_id: int
    title: str
    icon: str | None = None
    enabled: bool
    is_custom: bool
    sort_order: int


class CandidateIn(CDVoteSchema):
    position_id: str
    name: str = Field(min_length=1, max_length=200)
    slogan: str | None = None
    image_url: str | None = None
    rank: int | None = None


class CandidateOut(CDVoteSchema):
    id: int
    election_id: int
    position_id: str
    rank: int
    name: str
    slogan: str | None = None
    image_url: str | None = None


class ElectionOut(ElectionBase):
    id: int
    status: ElectionStatusEnum
    is_archived: bool
    total_votes: int
    created_at: datetime | None = None
    positions: list[PositionOut] = []


class SimpleElection(CDVoteSchema):
    id: int
    title: str
    status: ElectionStatusEnum
    start_date: datetime
    end_date: datetime
    total_votes: int


#  Vote-related schemas


class VoteChoiceIn(CDVoteSchema):
    """
    candidate_id None is an explicit abstention for the position.
    """

    position_id: str
    candidate_id: int | None = None


class CastVoteIn(CDVoteSchema):
    choices: list[VoteChoiceIn]


class VoteResult(CDVoteSchema):
    success: bool
    message: str
    token: str | None = None
    error: VoteErrorEnum | None = None


class VerifyTokenIn(CDVoteSchema):
    token: str


#  OCR-related schemas


class OcrTextIn(CDVoteSchema):
    text: str


class ParseResultOut(CDVoteSchema):
    id: str | None = None
    name: str | None = None
    surname: str | None = None
    classroom: str | None = None
    no: int | None = None
    national_id: str | None = None
    confidence: dict[str, int]


class ValidationOut(CDVoteSchema):
    is_valid: bool
    match_type: MatchTypeEnum
    matched_student: StudentOut | None = None


class ScanOut(CDVoteSchema):
    detected: bool
    detection_confidence: int
    text: str
    parsed: ParseResultOut
    timings: dict[str, float] = {}


#  Results-related schemas


class CandidateResultOut(CDVoteSchema):
    candidate_id: int
    candidate_name: str
    rank: int
    votes: int
    percentage: int


class PositionResultOut(CDVoteSchema):
    position_id: str
    position_title: str
    total_votes: int
    candidates: list[CandidateResultOut]
    abstain_count: int
    abstain_percentage: int


class WinnerOut(CDVoteSchema):
    status: WinnerStatusEnum
    candidate: CandidateResultOut | None = None
    tied: list[CandidateResultOut] = []
    abstain_count: int | None = None


class TurnoutOut(CDVoteSchema):
    total_eligible: int
    total_voted: int
    not_voted: int
    percentage: int


class PositionSummaryOut(CDVoteSchema):
    result: PositionResultOut
    winner: WinnerOut


class ElectionResultsOut(CDVoteSchema):
    election_id: int
    title: str
    status: ElectionStatusEnum
    turnout: TurnoutOut
    positions: list[PositionSummaryOut]


class LevelParticipationOut(CDVoteSchema):
    level: int
    total_students: int
    voted: int
    percentage: int


class VotingLogEntryOut(CDVoteSchema):
    id: int
    voted_at: datetime


class StudentVoteOut(CDVoteSchema):
    election_id: int
    voted_at: datetime


class StudentApprovalIn(CDVoteSchema):
    approved: bool = True


class UploadStudentsOut(CDVoteSchema):
    imported: int
    skipped: int
    errors: list[str] = []


#  Activity-related schemas


class ActivityOut(CDVoteSchema):
    id: int
    type: ActivityTypeEnum
    log_level: str
    title: str
    description: str | None = None
    event_params: dict | None = None
    created_at: datetime

    @field_validator("event_params", mode="before")
    @classmethod
    def load_event_params(cls, value):
        return utils.from_json(value)
