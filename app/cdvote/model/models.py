"""
SQLAlchemy Models for CD Vote.

Ballot and VoteToken rows carry no reference to a student and no
timestamp, and their keys are random: a ballot can't be joined back
to the VoteHistory row written in the same transaction. On SQLite
they are WITHOUT ROWID tables so no hidden rowid keeps insert order.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.types import Boolean, Integer, String, Text, Enum, DateTime

from app.cdvote import utils
from app.cdvote.model.enums import ElectionStatusEnum, ActivityTypeEnum
from app.database import Base
from app.cdvote_auth.model.models import User


def random_id():
    return uuid.uuid4().hex


class Student(Base):
    __tablename__ = "cdvote_student"

    id = Column(String(10), primary_key=True)
    national_id = Column(String(13), nullable=False, unique=True)
    prefix = Column(String(20))
    name = Column(String(100), nullable=False)
    surname = Column(String(100), nullable=False)
    student_no = Column(String(10))
    class_room = Column(String(10))

    voting_approved = Column(Boolean, default=False, nullable=False)
    voting_approved_at = Column(DateTime, nullable=True)
    voting_approved_by = Column(Integer, ForeignKey("auth_user.id", ondelete="SET NULL"), nullable=True)

    last_active = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utils.local_now)

    @property
    def full_name(self):
        return " ".join(part for part in (self.prefix, self.name, self.surname) if part)

    @property
    def level(self):
        return utils.class_level(self.class_room)

    def __repr__(self):
        return "<Student %r>" % self.id


class Election(Base):
    __tablename__ = "cdvote_election"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    type = Column(String(50), default="student-committee")

    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    status = Column(Enum(ElectionStatusEnum), default=ElectionStatusEnum.pending, nullable=False)
    is_archived = Column(Boolean, default=False, nullable=False)

    # Incremented by the vote transaction, one per VoteHistory row
    total_votes = Column(Integer, default=0, nullable=False)

    created_at = Column(DateTime, default=utils.local_now)

    positions = relationship(
        "Position", cascade="all, delete", back_populates="election", order_by="Position.sort_order"
    )
    candidates = relationship("Candidate", cascade="all, delete", backref="election")

    def current_status(self, now=None) -> ElectionStatusEnum:
        """
        The voting window is authoritative; the stored status is a
        cache kept in sync whenever the window is edited.
        """
        return utils.calculate_status(self.start_date, self.end_date, now=now)

    def is_open(self, now=None) -> bool:
        return not self.is_archived and self.current_status(now) == ElectionStatusEnum.open

    def is_locked(self, now=None) -> bool:
        return self.current_status(now) != ElectionStatusEnum.pending


class Position(Base):
    __tablename__ = "cdvote_position"

    id = Column(String(50), primary_key=True)
    election_id = Column(Integer, ForeignKey("cdvote_election.id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)

    title = Column(String(100), nullable=False)
    icon = Column(String(50))
    enabled = Column(Boolean, default=True, nullable=False)
    is_custom = Column(Boolean, default=False, nullable=False)
    sort_order = Column(Integer, default=0, nullable=False)

    election = relationship("Election", back_populates="positions")
    candidates = relationship(
        "Candidate", cascade="all, delete", back_populates="position", order_by="Candidate.rank"
    )


class Candidate(Base):
    __tablename__ = "cdvote_candidate"

    id = Column(Integer, primary_key=True, index=True)
    election_id = Column(Integer, ForeignKey("cdvote_election.id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)
    position_id = Column(String(50), ForeignKey("cdvote_position.id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)

    rank = Column(Integer, nullable=False)
    name = Column(String(200), nullable=False)
    slogan = Column(Text)
    image_url = Column(String(500))

    position = relationship("Position", back_populates="candidates")


class VoteHistory(Base):
    """
    Records *that* a student voted in an election, never *how*.
    """

    __tablename__ = "cdvote_vote_history"
    __table_args__ = (
        UniqueConstraint("student_id", "election_id", name="unique_student_election"),
    )

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(String(10), ForeignKey("cdvote_student.id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)
    election_id = Column(Integer, ForeignKey("cdvote_election.id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)

    voted_at = Column(DateTime, default=utils.local_now, nullable=False)
    ip_address = Column(String(45))
    user_agent = Column(String(500))


class Ballot(Base):
    """
    One row per (position, choice) of a cast vote.
    """

    __tablename__ = "cdvote_ballot"
    __table_args__ = {"sqlite_with_rowid": False}

    id = Column(String(32), primary_key=True, default=random_id)
    election_id = Column(Integer, ForeignKey("cdvote_election.id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False, index=True)
    position_id = Column(String(50), ForeignKey("cdvote_position.id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False)
    candidate_id = Column(Integer, ForeignKey("cdvote_candidate.id", onupdate="CASCADE", ondelete="CASCADE"), nullable=True)
    is_no_vote = Column(Boolean, default=False, nullable=False)


class VoteToken(Base):
    __tablename__ = "cdvote_vote_token"
    __table_args__ = {"sqlite_with_rowid": False}

    id = Column(String(32), primary_key=True, default=random_id)
    election_id = Column(Integer, ForeignKey("cdvote_election.id", onupdate="CASCADE", ondelete="CASCADE"), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True)


class Activity(Base):
    __tablename__ = "cdvote_activity"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(Enum(ActivityTypeEnum), nullable=False)
    log_level = Column(String(200), nullable=False, default="INFO")
    title = Column(String(255), nullable=False)
    description = Column(Text)
    event_params = Column(Text)
    created_at = Column(DateTime, default=utils.local_now)
