import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
import uuid

from app.models.poll import Poll
from app.models.poll_interest import PollInterest
from app.models.profile import Profile
from app.models.vote import Vote
from app.services.settings_service import settings_service

from conftest import create_test_vote, get_options


def vote_url(poll):
    return f"/api/polls/{poll.id}/vote"


class TestVoteRoutes:
    """Test cases for vote routes."""

    def test_cast_vote_authenticated(self, client: TestClient, db_session: Session, test_poll: Poll,
                                     test_user: Profile, auth_headers: dict):
        option = get_options(db_session, test_poll)[0]

        response = client.post(vote_url(test_poll), json={"option_ids": [str(option.id)]}, headers=auth_headers)
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["data"]["poll_id"] == str(test_poll.id)
        assert data["data"]["voted_options"] == [str(option.id)]
        assert data["data"]["user_votes"] == [str(option.id)]
        assert data["data"]["total_votes"] == 1
        assert set(data["data"]) == {"poll_id", "voted_options", "user_votes", "total_votes"}

        vote = db_session.query(Vote).filter(Vote.poll_id == test_poll.id).one()
        assert vote.user_id == test_user.id
        assert vote.ip_address is None

    def test_cast_vote_anonymous(self, client: TestClient, db_session: Session, test_poll: Poll):
        option = get_options(db_session, test_poll)[0]

        response = client.post(
            vote_url(test_poll),
            json={"option_ids": [str(option.id)]},
            headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1", "User-Agent": "pytest <agent>"}
        )
        assert response.status_code == 200

        vote = db_session.query(Vote).filter(Vote.poll_id == test_poll.id).one()
        assert vote.user_id is None
        assert vote.ip_address == "203.0.113.7"
        assert vote.user_agent == "pytest agent"

    def test_invalid_forwarded_ip_falls_back(self, client: TestClient, db_session: Session, test_poll: Poll):
        option = get_options(db_session, test_poll)[0]

        client.post(vote_url(test_poll), json={"option_ids": [str(option.id)]},
                    headers={"X-Forwarded-For": "not-an-ip"})

        vote = db_session.query(Vote).filter(Vote.poll_id == test_poll.id).one()
        assert vote.ip_address == "127.0.0.1"

    def test_cast_vote_records_voter_interest(self, client: TestClient, db_session: Session, test_poll: Poll,
                                              other_user: Profile, other_headers: dict):
        option = get_options(db_session, test_poll)[0]

        client.post(vote_url(test_poll), json={"option_ids": [str(option.id)]}, headers=other_headers)

        interest = db_session.query(PollInterest).filter(
            PollInterest.poll_id == test_poll.id,
            PollInterest.user_id == other_user.id
        ).one()
        assert interest.interest_type == "voter"

    def test_cast_multiple_votes(self, client: TestClient, db_session: Session, multiple_choice_poll: Poll,
                                 auth_headers: dict):
        options = get_options(db_session, multiple_choice_poll)
        option_ids = [str(option.id) for option in options[:2]]

        response = client.post(vote_url(multiple_choice_poll), json={"option_ids": option_ids}, headers=auth_headers)
        assert response.status_code == 200
        assert sorted(response.json()["data"]["user_votes"]) == sorted(option_ids)
        assert response.json()["data"]["total_votes"] == 2

    def test_multiple_choice_adds_new_options(self, client: TestClient, db_session: Session,
                                              multiple_choice_poll: Poll, auth_headers: dict):
        options = get_options(db_session, multiple_choice_poll)
        client.post(vote_url(multiple_choice_poll), json={"option_ids": [str(options[0].id)]}, headers=auth_headers)

        response = client.post(vote_url(multiple_choice_poll), json={"option_ids": [str(options[2].id)]},
                               headers=auth_headers)
        assert response.status_code == 200
        assert len(response.json()["data"]["user_votes"]) == 2

    def test_multiple_choice_rejects_repeat_option(self, client: TestClient, db_session: Session,
                                                   multiple_choice_poll: Poll, auth_headers: dict):
        options = get_options(db_session, multiple_choice_poll)
        client.post(vote_url(multiple_choice_poll), json={"option_ids": [str(options[0].id)]}, headers=auth_headers)

        response = client.post(
            vote_url(multiple_choice_poll),
            json={"option_ids": [str(options[0].id), str(options[1].id)]},
            headers=auth_headers
        )
        assert response.status_code == 400
        assert response.json()["error"] == "already_voted"
        assert db_session.query(Vote).count() == 1

    def test_single_choice_replaces_vote(self, client: TestClient, db_session: Session, test_poll: Poll,
                                         auth_headers: dict):
        options = get_options(db_session, test_poll)
        client.post(vote_url(test_poll), json={"option_ids": [str(options[0].id)]}, headers=auth_headers)

        response = client.post(vote_url(test_poll), json={"option_ids": [str(options[1].id)]}, headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["user_votes"] == [str(options[1].id)]

        votes = db_session.query(Vote).filter(Vote.poll_id == test_poll.id).all()
        assert len(votes) == 1
        assert votes[0].option_id == options[1].id

    def test_anonymous_single_choice_replaces_vote(self, client: TestClient, db_session: Session, test_poll: Poll):
        options = get_options(db_session, test_poll)
        client.post(vote_url(test_poll), json={"option_ids": [str(options[0].id)]})
        client.post(vote_url(test_poll), json={"option_ids": [str(options[1].id)]})

        assert db_session.query(Vote).filter(Vote.poll_id == test_poll.id).count() == 1

    def test_duplicate_option_ids_collapse(self, client: TestClient, db_session: Session,
                                           multiple_choice_poll: Poll, auth_headers: dict):
        option = get_options(db_session, multiple_choice_poll)[0]

        response = client.post(
            vote_url(multiple_choice_poll),
            json={"option_ids": [str(option.id), str(option.id)]},
            headers=auth_headers
        )
        assert response.status_code == 200
        assert response.json()["data"]["total_votes"] == 1

    def test_cast_vote_on_expired_poll(self, client: TestClient, db_session: Session, expired_poll: Poll):
        option = get_options(db_session, expired_poll)[0]

        response = client.post(vote_url(expired_poll), json={"option_ids": [str(option.id)]})
        assert response.status_code == 400

        data = response.json()
        assert data["success"] is False
        assert data["error"] == "poll_expired"
        assert "expired" in data["message"].lower()

    def test_cast_vote_on_inactive_poll(self, client: TestClient, db_session: Session, inactive_poll: Poll):
        option = get_options(db_session, inactive_poll)[0]

        response = client.post(vote_url(inactive_poll), json={"option_ids": [str(option.id)]})
        assert response.status_code == 400
        assert response.json()["error"] == "poll_inactive"

    def test_cast_multiple_votes_on_single_choice_poll(self, client: TestClient, db_session: Session,
                                                       test_poll: Poll):
        options = get_options(db_session, test_poll)

        response = client.post(vote_url(test_poll), json={"option_ids": [str(o.id) for o in options]})
        assert response.status_code == 400
        assert response.json()["error"] == "single_choice_only"

    def test_vote_with_foreign_option(self, client: TestClient, db_session: Session, test_poll: Poll,
                                      multiple_choice_poll: Poll):
        foreign = get_options(db_session, multiple_choice_poll)[0]

        response = client.post(vote_url(test_poll), json={"option_ids": [str(foreign.id)]})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_options"

    def test_vote_without_options(self, client: TestClient, test_poll: Poll):
        response = client.post(vote_url(test_poll), json={"option_ids": []})
        assert response.status_code == 400
        assert response.json()["error"] == "no_options_selected"

    def test_vote_too_many_options(self, client: TestClient, test_poll: Poll):
        option_ids = [str(uuid.uuid4()) for _ in range(11)]
        response = client.post(vote_url(test_poll), json={"option_ids": option_ids})
        assert response.status_code == 400
        assert response.json()["error"] == "too_many_options"

    def test_vote_malformed_option_id(self, client: TestClient, test_poll: Poll):
        response = client.post(vote_url(test_poll), json={"option_ids": ["abc"]})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_option_id"

    def test_vote_malformed_poll_id(self, client: TestClient):
        response = client.post("/api/polls/abc/vote", json={"option_ids": ["abc"]})
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_poll_id"

    def test_vote_unknown_poll(self, client: TestClient):
        response = client.post(f"/api/polls/{uuid.uuid4()}/vote", json={"option_ids": [str(uuid.uuid4())]})
        assert response.status_code == 404
        assert response.json()["error"] == "poll_not_found"

    def test_anonymous_vote_blocked_by_poll(self, client: TestClient, db_session: Session, members_only_poll: Poll):
        option = get_options(db_session, members_only_poll)[0]

        response = client.post(vote_url(members_only_poll), json={"option_ids": [str(option.id)]})
        assert response.status_code == 401
        assert response.json()["message"] == "Login required to vote on this poll"

    def test_members_only_poll_accepts_logged_in_vote(self, client: TestClient, db_session: Session,
                                                      members_only_poll: Poll, auth_headers: dict):
        option = get_options(db_session, members_only_poll)[0]

        response = client.post(vote_url(members_only_poll), json={"option_ids": [str(option.id)]},
                               headers=auth_headers)
        assert response.status_code == 200

    def test_anonymous_vote_blocked_by_setting(self, client: TestClient, db_session: Session, test_poll: Poll):
        settings_service.update_section(db_session, "general", {"allow_anonymous_voting": False})
        option = get_options(db_session, test_poll)[0]

        response = client.post(vote_url(test_poll), json={"option_ids": [str(option.id)]})
        assert response.status_code == 401

    def test_logged_in_and_anonymous_votes_are_separate(self, client: TestClient, db_session: Session,
                                                        multiple_choice_poll: Poll, auth_headers: dict):
        option = get_options(db_session, multiple_choice_poll)[0]

        assert client.post(vote_url(multiple_choice_poll), json={"option_ids": [str(option.id)]}).status_code == 200
        response = client.post(vote_url(multiple_choice_poll), json={"option_ids": [str(option.id)]},
                               headers=auth_headers)
        assert response.status_code == 200
        assert db_session.query(Vote).count() == 2


class TestVoteManagement:
    """Removing votes and checking eligibility."""

    def test_remove_vote(self, client: TestClient, db_session: Session, multiple_choice_poll: Poll,
                         test_user: Profile, auth_headers: dict):
        options = get_options(db_session, multiple_choice_poll)
        create_test_vote(db_session, multiple_choice_poll.id, options[0].id, user_id=test_user.id)
        create_test_vote(db_session, multiple_choice_poll.id, options[1].id, user_id=test_user.id)

        response = client.delete(f"/api/polls/{multiple_choice_poll.id}/vote/{options[0].id}", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["user_votes"] == [str(options[1].id)]
        assert response.json()["data"]["total_votes"] == 1

    def test_remove_missing_vote(self, client: TestClient, db_session: Session, test_poll: Poll, auth_headers: dict):
        option = get_options(db_session, test_poll)[0]

        response = client.delete(f"/api/polls/{test_poll.id}/vote/{option.id}", headers=auth_headers)
        assert response.status_code == 404
        assert response.json()["error"] == "vote_not_found"

    def test_remove_vote_only_touches_own(self, client: TestClient, db_session: Session, test_poll: Poll,
                                          other_user: Profile, auth_headers: dict):
        option = get_options(db_session, test_poll)[0]
        create_test_vote(db_session, test_poll.id, option.id, user_id=other_user.id)

        response = client.delete(f"/api/polls/{test_poll.id}/vote/{option.id}", headers=auth_headers)
        assert response.status_code == 404
        assert db_session.query(Vote).count() == 1

    def test_my_votes(self, client: TestClient, db_session: Session, test_poll: Poll,
                      test_user: Profile, auth_headers: dict):
        option = get_options(db_session, test_poll)[1]
        create_test_vote(db_session, test_poll.id, option.id, user_id=test_user.id)

        response = client.get(f"/api/polls/{test_poll.id}/my-votes", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"]["user_votes"] == [str(option.id)]

    def test_my_votes_anonymous(self, client: TestClient, db_session: Session, test_poll: Poll):
        option = get_options(db_session, test_poll)[0]
        create_test_vote(db_session, test_poll.id, option.id, ip_address="127.0.0.1")

        response = client.get(f"/api/polls/{test_poll.id}/my-votes")
        assert response.json()["data"]["user_votes"] == [str(option.id)]

    def test_can_vote_fresh(self, client: TestClient, test_poll: Poll, auth_headers: dict):
        response = client.get(f"/api/polls/{test_poll.id}/can-vote", headers=auth_headers)
        assert response.status_code == 200
        assert response.json()["data"] == {"can_vote": True, "reason": None, "has_voted": False}

    def test_can_vote_change_single_choice(self, client: TestClient, db_session: Session, test_poll: Poll,
                                           test_user: Profile, auth_headers: dict):
        option = get_options(db_session, test_poll)[0]
        create_test_vote(db_session, test_poll.id, option.id, user_id=test_user.id)

        data = client.get(f"/api/polls/{test_poll.id}/can-vote", headers=auth_headers).json()["data"]
        assert data["can_vote"] is True
        assert data["reason"] == "Can change vote"
        assert data["has_voted"] is True

    def test_can_vote_all_options_used(self, client: TestClient, db_session: Session,
                                       multiple_choice_poll: Poll, test_user: Profile, auth_headers: dict):
        for option in get_options(db_session, multiple_choice_poll):
            create_test_vote(db_session, multiple_choice_poll.id, option.id, user_id=test_user.id)

        data = client.get(f"/api/polls/{multiple_choice_poll.id}/can-vote", headers=auth_headers).json()["data"]
        assert data["can_vote"] is False
        assert data["reason"] == "Already voted"

    def test_can_vote_expired(self, client: TestClient, expired_poll: Poll):
        data = client.get(f"/api/polls/{expired_poll.id}/can-vote").json()["data"]
        assert data["can_vote"] is False
        assert data["reason"] == "Poll has expired"

    def test_can_vote_unknown_poll(self, client: TestClient):
        data = client.get(f"/api/polls/{uuid.uuid4()}/can-vote").json()["data"]
        assert data == {"can_vote": False, "reason": "Poll not found", "has_voted": False}
