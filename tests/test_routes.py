"""Tests for the HTTP routes that need neither Redis nor a worker."""

import datetime
import uuid

import jwt
import pytest

from fastapi.testclient import TestClient

from app.cdvote_auth.model.models import User
from app.config import SECRET_KEY
from app.database import SessionLocal
from app.main import app

from conftest import ballot
from test_voting import cast


@pytest.fixture
def client():
    with TestClient(app) as client:
        yield client


@pytest.fixture
def admin_client(client):
    """Client holding the access_token cookie of an admin."""
    public_id = str(uuid.uuid4())
    with SessionLocal() as session:
        session.add(User(public_id=public_id, username="admin", password="unused"))
        session.commit()

    expires_at = datetime.datetime.now(datetime.timezone.utc) + datetime.timedelta(minutes=5)
    token = jwt.encode({"public_id": public_id, "exp": expires_at}, SECRET_KEY, algorithm="HS256")
    client.cookies.set("access_token", token)
    return client


class TestVoterRoutes:
    """Tests for the voter facing routes."""

    def test_cast_vote_requires_login(self, client, students, open_election):
        choices = [c.model_dump() for c in ballot(open_election, open_election.alice, open_election.carol)]

        response = client.post("/elections/%s/cast-vote" % open_election.id, json={"choices": choices})

        assert response.status_code == 401
        assert response.json()["error"] == "not_authenticated"

    def test_verify_token(self, client, students, open_election):
        result = cast("1001", open_election.id, ballot(open_election, open_election.alice, open_election.carol))

        valid = client.post("/elections/%s/verify-token" % open_election.id, json={"token": result.token})
        forged = client.post("/elections/%s/verify-token" % open_election.id, json={"token": "VOTE-AAAA"})

        assert valid.json() == {"valid": True}
        assert forged.json() == {"valid": False}

    def test_verify_token_unknown_election(self, client):
        response = client.post("/elections/404/verify-token", json={"token": "VOTE-AAAA"})

        assert response.status_code == 404

    def test_has_voted_requires_login(self, client, open_election):
        response = client.get("/elections/%s/has-voted" % open_election.id)

        assert response.status_code == 401


class TestPublicResults:
    """Results are only public once an election is closed."""

    def test_open_election_is_hidden(self, client, open_election):
        response = client.get("/public/elections/%s/results" % open_election.id)

        assert response.status_code == 403

    def test_closed_election(self, client, students, closed_election):
        response = client.get("/public/elections/%s/results" % closed_election.id)

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "CLOSED"
        assert body["turnout"]["total_eligible"] == 3
        assert len(body["positions"]) == 2


class TestAdminRoutes:
    """Tests for admin read routes."""

    def test_requires_admin(self, client, open_election):
        response = client.get("/elections/%s/results" % open_election.id)

        assert response.status_code == 403

    def test_results(self, admin_client, students, open_election):
        cast("1001", open_election.id, ballot(open_election, open_election.alice, open_election.carol))

        response = admin_client.get("/elections/%s/results" % open_election.id)

        assert response.status_code == 200
        president = response.json()["positions"][0]
        assert president["winner"]["status"] == "winner"
        assert president["winner"]["candidate"]["candidate_name"] == "Alice"

    def test_participation(self, admin_client, students, open_election):
        response = admin_client.get("/elections/%s/participation" % open_election.id)

        assert response.status_code == 200
        assert len(response.json()) == 6

    def test_voting_log(self, admin_client, students, open_election):
        cast("1001", open_election.id, ballot(open_election, open_election.alice, open_election.carol))

        response = admin_client.get("/elections/%s/voting-log" % open_election.id)

        assert response.status_code == 200
        assert set(response.json()[0]) == {"id", "voted_at"}

    def test_parse_text(self, admin_client):
        response = admin_client.post("/ocr/parse", json={"text": "รหัส 1234 ชื่อ สมชาย นามสกุล ใจดี ห้อง 3/1"})

        assert response.status_code == 200
        assert response.json()["id"] == "1234"
        assert response.json()["confidence"]["id"] == 90

    def test_parse_text_class_number(self, admin_client):
        response = admin_client.post("/ocr/parse", json={"text": "Student ID: 12345\nName: John Smith\nClass: 5/2 No. 17"})

        assert response.status_code == 200
        assert response.json()["no"] == 17

    def test_validate_card(self, admin_client, students):
        parsed = {"id": "1001", "name": "สมชาย", "surname": "ใจดี", "confidence": {"id": 90}}

        response = admin_client.post("/ocr/validate", json=parsed)

        assert response.status_code == 200
        assert response.json()["match_type"] == "exact"
        assert response.json()["matched_student"]["id"] == "1001"

    def test_get_election_status_follows_window(self, admin_client, closed_election):
        response = admin_client.get("/elections/%s" % closed_election.id)

        assert response.status_code == 200
        assert response.json()["status"] == "CLOSED"

    def test_register_student(self, admin_client, students):
        student = {
            "id": "2001",
            "national_id": "1-1017-00203-46-9",
            "prefix": "นาย",
            "name": "ก้อง",
            "surname": "ดีมาก",
            "class_room": "1/1",
        }

        created = admin_client.post("/students", json=student)
        duplicate = admin_client.post("/students", json=dict(student, id="2002"))

        assert created.status_code == 201
        assert created.json()["voting_approved"] is False
        assert "national_id" not in created.json()
        assert duplicate.status_code == 409

    def test_activities(self, admin_client, students):
        admin_client.post("/students/1004/approve", json={"approved": True})

        response = admin_client.get("/activities", params={"type": "admin_action"})

        assert response.status_code == 200
        assert response.json()[0]["event_params"] == {"student_id": "1004", "admin": "admin"}
