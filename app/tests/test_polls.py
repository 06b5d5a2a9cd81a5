import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from datetime import timedelta
from unittest.mock import patch
import uuid

from app.crud.poll import poll_crud
from app.models.option import PollOption
from app.models.poll import Poll
from app.models.poll_interest import PollInterest
from app.models.profile import Profile
from app.models.vote import Vote
from app.services.settings_service import settings_service
from app.utils.timeutils import utcnow

from conftest import create_test_poll, create_test_vote, get_options


class TestPollRoutes:
    """Test cases for poll routes."""

    def _poll_data(self, **overrides):
        data = {
            "title": "Favourite language?",
            "description": "Pick one",
            "options": ["Python", "Go", "Rust"],
            "allow_multiple_choices": False
        }
        data.update(overrides)
        return data

    def test_create_poll(self, client: TestClient, db_session: Session, test_user: Profile, auth_headers: dict):
        response = client.post("/api/polls/", json=self._poll_data(), headers=auth_headers)
        assert response.status_code == 201

        data = response.json()
        assert data["success"] is True
        assert data["message"] == "Poll created successfully"
        assert data["data"]["title"] == "Favourite language?"
        assert data["data"]["is_active"] is True
        assert data["data"]["creator_id"] == str(test_user.id)
        assert [o["text"] for o in data["data"]["options"]] == ["Python", "Go", "Rust"]

        poll_id = uuid.UUID(data["data"]["id"])
        options = db_session.query(PollOption).filter(PollOption.poll_id == poll_id).order_by(PollOption.order_index).all()
        assert [o.order_index for o in options] == [0, 1, 2]

    def test_create_poll_tracks_creator_interest(self, client: TestClient, db_session: Session,
                                                 test_user: Profile, auth_headers: dict):
        response = client.post("/api/polls/", json=self._poll_data(), headers=auth_headers)
        poll_id = uuid.UUID(response.json()["data"]["id"])

        interest = db_session.query(PollInterest).filter(PollInterest.poll_id == poll_id).first()
        assert interest is not None
        assert interest.user_id == test_user.id
        assert interest.interest_type == "creator"

    def test_create_poll_requires_login(self, client: TestClient):
        response = client.post("/api/polls/", json=self._poll_data())
        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_create_poll_requires_title(self, client: TestClient, auth_headers: dict):
        response = client.post("/api/polls/", json=self._poll_data(title="   "), headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Title is required"

    def test_create_poll_title_too_long(self, client: TestClient, auth_headers: dict):
        response = client.post("/api/polls/", json=self._poll_data(title="x" * 201), headers=auth_headers)
        assert response.status_code == 400

    def test_create_poll_description_too_long(self, client: TestClient, auth_headers: dict):
        response = client.post("/api/polls/", json=self._poll_data(description="x" * 1001), headers=auth_headers)
        assert response.status_code == 400

    def test_create_poll_needs_two_options(self, client: TestClient, auth_headers: dict):
        response = client.post("/api/polls/", json=self._poll_data(options=["Only"]), headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "At least 2 options are required"

    def test_create_poll_at_most_ten_options(self, client: TestClient, auth_headers: dict):
        options = [f"Option {i}" for i in range(11)]
        response = client.post("/api/polls/", json=self._poll_data(options=options), headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "A poll can have at most 10 options"

    def test_create_poll_blank_option(self, client: TestClient, auth_headers: dict):
        response = client.post("/api/polls/", json=self._poll_data(options=["Yes", " "]), headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "All options must have text"

    def test_create_poll_expiry_in_past(self, client: TestClient, auth_headers: dict):
        past = (utcnow() - timedelta(hours=1)).isoformat()
        response = client.post("/api/polls/", json=self._poll_data(expires_at=past), headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["message"] == "Expiration date must be in the future"

    def test_create_poll_sanitizes_text(self, client: TestClient, auth_headers: dict):
        response = client.post(
            "/api/polls/",
            json=self._poll_data(title="<b>Bold</b> question", options=["<i>A</i>", "B"]),
            headers=auth_headers
        )
        assert response.status_code == 201
        data = response.json()["data"]
        assert "<" not in data["title"]
        assert data["options"][0]["text"] == "iA/i"

    def test_create_poll_limit_reached(self, client: TestClient, db_session: Session,
                                       test_user: Profile, auth_headers: dict):
        settings_service.update_section(db_session, "general", {"max_polls_per_user": 1})
        create_test_poll(db_session, test_user.id)

        response = client.post("/api/polls/", json=self._poll_data(), headers=auth_headers)
        assert response.status_code == 400
        assert response.json()["error"] == "poll_limit_reached"

    def test_create_poll_option_failure_removes_poll(self, client: TestClient, db_session: Session,
                                                     auth_headers: dict):
        with patch.object(poll_crud, "add_options", side_effect=RuntimeError("insert failed")):
            response = client.post("/api/polls/", json=self._poll_data(), headers=auth_headers)

        assert response.status_code == 500
        assert response.json()["error"] == "poll_options_failed"
        assert db_session.query(Poll).count() == 0

    def test_get_polls(self, client: TestClient, test_poll: Poll, inactive_poll: Poll):
        response = client.get("/api/polls/")
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert [p["id"] for p in data["data"]] == [str(test_poll.id)]
        assert data["pagination"]["total"] == 1
        assert data["data"][0]["creator"]["username"] == "testuser"
        assert data["data"][0]["total_votes"] == 0

    def test_get_polls_newest_first(self, client: TestClient, db_session: Session, test_user: Profile):
        older = create_test_poll(db_session, test_user.id, title="Older")
        older.created_at = utcnow() - timedelta(days=2)
        db_session.commit()
        newer = create_test_poll(db_session, test_user.id, title="Newer")

        response = client.get("/api/polls/")
        assert [p["id"] for p in response.json()["data"]] == [str(newer.id), str(older.id)]

    def test_get_poll_with_counts(self, client: TestClient, db_session: Session, test_poll: Poll, other_user: Profile):
        options = get_options(db_session, test_poll)
        create_test_vote(db_session, test_poll.id, options[0].id, user_id=other_user.id)
        create_test_vote(db_session, test_poll.id, options[0].id, ip_address="10.0.0.5")
        create_test_vote(db_session, test_poll.id, options[1].id, ip_address="10.0.0.6")

        response = client.get(f"/api/polls/{test_poll.id}")
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["total_votes"] == 3
        assert [o["vote_count"] for o in data["options"]] == [2, 1]
        assert data["user_votes"] == []

    def test_get_poll_includes_user_votes(self, client: TestClient, db_session: Session,
                                          test_poll: Poll, test_user: Profile, auth_headers: dict):
        options = get_options(db_session, test_poll)
        create_test_vote(db_session, test_poll.id, options[1].id, user_id=test_user.id)

        response = client.get(f"/api/polls/{test_poll.id}", headers=auth_headers)
        assert response.json()["data"]["user_votes"] == [str(options[1].id)]

    def test_get_poll_not_found(self, client: TestClient):
        response = client.get(f"/api/polls/{uuid.uuid4()}")
        assert response.status_code == 404
        assert response.json()["error"] == "poll_not_found"

    def test_get_poll_invalid_id(self, client: TestClient):
        response = client.get("/api/polls/not-a-uuid")
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_poll_id"

    def test_get_inactive_poll_forbidden(self, client: TestClient, inactive_poll: Poll, other_headers: dict):
        response = client.get(f"/api/polls/{inactive_poll.id}", headers=other_headers)
        assert response.status_code == 403
        assert response.json()["message"] == "Poll is not accessible"

    def test_get_inactive_poll_as_creator(self, client: TestClient, inactive_poll: Poll, auth_headers: dict):
        response = client.get(f"/api/polls/{inactive_poll.id}", headers=auth_headers)
        assert response.status_code == 200

    def test_get_inactive_poll_as_admin(self, client: TestClient, inactive_poll: Poll, admin_headers: dict):
        response = client.get(f"/api/polls/{inactive_poll.id}", headers=admin_headers)
        assert response.status_code == 200

    def test_update_poll(self, client: TestClient, test_poll: Poll, auth_headers: dict):
        response = client.put(
            f"/api/polls/{test_poll.id}",
            json={"title": "Updated title", "is_active": False},
            headers=auth_headers
        )
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["title"] == "Updated title"
        assert data["is_active"] is False
        assert data["description"] == "Description for Test Poll"

    def test_update_poll_not_creator(self, client: TestClient, test_poll: Poll, other_headers: dict):
        response = client.put(f"/api/polls/{test_poll.id}", json={"title": "Hijacked"}, headers=other_headers)
        assert response.status_code == 403

    def test_update_poll_empty_title(self, client: TestClient, test_poll: Poll, auth_headers: dict):
        response = client.put(f"/api/polls/{test_poll.id}", json={"title": ""}, headers=auth_headers)
        assert response.status_code == 400

    def test_update_poll_past_expiry(self, client: TestClient, test_poll: Poll, auth_headers: dict):
        past = (utcnow() - timedelta(days=1)).isoformat()
        response = client.put(f"/api/polls/{test_poll.id}", json={"expires_at": past}, headers=auth_headers)
        assert response.status_code == 400

    @pytest.mark.parametrize("field", ["is_active", "allow_anonymous"])
    def test_update_poll_null_flag(self, client: TestClient, db_session: Session, test_poll: Poll,
                                   auth_headers: dict, field: str):
        response = client.put(f"/api/polls/{test_poll.id}", json={field: None}, headers=auth_headers)
        assert response.status_code == 400

        data = response.json()
        assert data["error"] == "validation_error"
        assert data["message"] == f"{field} must be true or false"

        db_session.refresh(test_poll)
        assert test_poll.is_active is True
        assert test_poll.allow_anonymous is True

    def test_delete_poll_cascades(self, client: TestClient, db_session: Session,
                                  test_poll: Poll, other_user: Profile, auth_headers: dict):
        options = get_options(db_session, test_poll)
        create_test_vote(db_session, test_poll.id, options[0].id, user_id=other_user.id)
        poll_id = test_poll.id

        response = client.delete(f"/api/polls/{poll_id}", headers=auth_headers)
        assert response.status_code == 200

        data = response.json()["data"]
        assert data["deleted_poll_id"] == str(poll_id)
        assert data["had_votes"] is True

        db_session.expire_all()
        assert db_session.query(Poll).filter(Poll.id == poll_id).count() == 0
        assert db_session.query(PollOption).filter(PollOption.poll_id == poll_id).count() == 0
        assert db_session.query(Vote).filter(Vote.poll_id == poll_id).count() == 0

    def test_delete_poll_not_creator(self, client: TestClient, test_poll: Poll, other_headers: dict):
        response = client.delete(f"/api/polls/{test_poll.id}", headers=other_headers)
        assert response.status_code == 403

    def test_delete_poll_requires_login(self, client: TestClient, test_poll: Poll):
        response = client.delete(f"/api/polls/{test_poll.id}")
        assert response.status_code == 401
