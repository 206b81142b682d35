"""Shared fixtures: a throwaway SQLite database and seeded elections."""

import datetime
import json
import os
import tempfile

from types import SimpleNamespace

from cryptography.fernet import Fernet

# The app reads its configuration at import time
TEST_DIR = tempfile.mkdtemp(prefix="cdvote-tests-")
LOGGER_CONFIG = os.path.join(TEST_DIR, "logger_config.json")
with open(LOGGER_CONFIG, "w") as config_file:
    json.dump({
        "logger": {
            "path": os.path.join(TEST_DIR, "cdvote.log"),
            "level": "debug",
            "rotation": "1 day",
            "retention": "1 day",
            "format": "<level>{level: <8}</level> {time:HH:mm:ss.SSS} - {name}:{function} - {message}",
        }
    }, config_file)

os.environ["DATABASE_URL"] = "sqlite:///%s" % os.path.join(TEST_DIR, "cdvote.db")
os.environ["USE_ASYNC_ENGINE"] = "0"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "1"
os.environ["LOGGER_CONFIG_PATH"] = LOGGER_CONFIG
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())

import pytest  # noqa: E402

from app.cdvote import utils  # noqa: E402
from app.cdvote.model import models  # noqa: E402
from app.cdvote.model.schemas import schemas  # noqa: E402
from app.database import Base, SessionLocal, engine  # noqa: E402


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def database():
    """Fresh tables for every test."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    engine.dispose()


def add_students(*students):
    with SessionLocal() as session:
        session.add_all(students)
        session.commit()


def make_student(student_id, national_id, class_room="3/1", approved=True, name="สมชาย", surname="ใจดี"):
    return models.Student(
        id=student_id,
        national_id=national_id,
        prefix="นาย",
        name=name,
        surname=surname,
        student_no="1",
        class_room=class_room,
        voting_approved=approved,
    )


def seed_election(start_offset, end_offset, title="Student Committee"):
    """
    Election with a president position (two candidates) and a
    secretary position (one candidate), window relative to now.
    """
    now = utils.local_now()
    with SessionLocal() as session:
        election = models.Election(
            title=title,
            start_date=now + start_offset,
            end_date=now + end_offset,
        )
        session.add(election)
        session.flush()

        president = models.Position(id="%s-president" % election.id, election_id=election.id, title="ประธาน", sort_order=0)
        secretary = models.Position(id="%s-secretary" % election.id, election_id=election.id, title="เลขานุการ", sort_order=1)
        session.add_all([president, secretary])
        session.flush()

        alice = models.Candidate(election_id=election.id, position_id=president.id, rank=1, name="Alice")
        bob = models.Candidate(election_id=election.id, position_id=president.id, rank=2, name="Bob")
        carol = models.Candidate(election_id=election.id, position_id=secretary.id, rank=1, name="Carol")
        session.add_all([alice, bob, carol])
        session.commit()

        return SimpleNamespace(
            id=election.id,
            president=president.id,
            secretary=secretary.id,
            alice=alice.id,
            bob=bob.id,
            carol=carol.id,
        )


def ballot(election, president=None, secretary=None):
    return [
        schemas.VoteChoiceIn(position_id=election.president, candidate_id=president),
        schemas.VoteChoiceIn(position_id=election.secretary, candidate_id=secretary),
    ]


@pytest.fixture
def students():
    add_students(
        make_student("1001", "1101700203450", class_room="3/1"),
        make_student("1002", "1101700203451", class_room="3/2", name="สมหญิง", surname="รักเรียน"),
        make_student("1003", "1101700203452", class_room="5/1", name="John", surname="Smith"),
        make_student("1004", "1101700203453", class_room="5/1", approved=False),
    )
    return ["1001", "1002", "1003", "1004"]


@pytest.fixture
def open_election():
    return seed_election(-datetime.timedelta(hours=1), datetime.timedelta(hours=1))


@pytest.fixture
def pending_election():
    return seed_election(datetime.timedelta(hours=1), datetime.timedelta(hours=2), title="Next Year")


@pytest.fixture
def closed_election():
    return seed_election(-datetime.timedelta(hours=2), -datetime.timedelta(hours=1), title="Last Year")
