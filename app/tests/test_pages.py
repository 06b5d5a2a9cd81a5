import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
import uuid

from app.models.poll import Poll
from app.models.profile import Profile


class TestPublicPages:
    """Server-rendered pages that need no session."""

    @pytest.mark.parametrize("path", ["/", "/polls"])
    def test_poll_list(self, client: TestClient, test_poll: Poll, path: str):
        response = client.get(path)
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "Test Poll" in response.text

    def test_poll_detail(self, client: TestClient, test_poll: Poll):
        response = client.get(f"/polls/{test_poll.id}")
        assert response.status_code == 200
        assert "Option 1" in response.text

    def test_poll_detail_not_found(self, client: TestClient):
        assert client.get(f"/polls/{uuid.uuid4()}").status_code == 404
        assert client.get("/polls/not-a-uuid").status_code == 404

    def test_inactive_poll_hidden(self, client: TestClient, inactive_poll: Poll, other_headers: dict):
        response = client.get(f"/polls/{inactive_poll.id}", headers=other_headers)
        assert response.status_code == 403

    def test_inactive_poll_visible_to_creator(self, client: TestClient, inactive_poll: Poll, auth_headers: dict):
        assert client.get(f"/polls/{inactive_poll.id}", headers=auth_headers).status_code == 200

    def test_login_and_register_pages(self, client: TestClient):
        assert client.get("/auth/login").status_code == 200
        assert client.get("/auth/register").status_code == 200

    def test_signed_in_user_skips_login(self, client: TestClient, auth_headers: dict, admin_headers: dict):
        response = client.get("/auth/login", headers=auth_headers, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/dashboard"

        response = client.get("/auth/login", headers=admin_headers, follow_redirects=False)
        assert response.headers["location"] == "/admin/dashboard"


class TestProtectedPages:
    """Session and role checks on dashboard pages."""

    def test_dashboard_redirects_to_login(self, client: TestClient):
        response = client.get("/dashboard", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/auth/login"

    def test_dashboard_for_user(self, client: TestClient, test_poll: Poll, auth_headers: dict):
        response = client.get("/dashboard", headers=auth_headers)
        assert response.status_code == 200
        assert "Test Poll" in response.text

    def test_dashboard_with_cookie_session(self, client: TestClient, test_user: Profile):
        login = client.post("/api/auth/login", json={"email": "test@pollapp.io", "password": "Secret123"})
        assert login.status_code == 200

        response = client.get("/dashboard", follow_redirects=False)
        assert response.status_code == 200

    def test_admin_page_rejects_user(self, client: TestClient, auth_headers: dict):
        response = client.get("/admin/dashboard", headers=auth_headers, follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/unauthorized"

    def test_admin_page_requires_login(self, client: TestClient):
        response = client.get("/admin/users", follow_redirects=False)
        assert response.status_code == 303
        assert response.headers["location"] == "/auth/login"

    @pytest.mark.parametrize("path", [
        "/admin/dashboard",
        "/admin/users",
        "/admin/polls",
        "/admin/settings",
        "/admin/analytics",
    ])
    def test_admin_pages(self, client: TestClient, test_poll: Poll, admin_headers: dict, path: str):
        response = client.get(path, headers=admin_headers)
        assert response.status_code == 200

    def test_unauthorized_page(self, client: TestClient):
        assert client.get("/unauthorized").status_code == 403


class TestHealth:

    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["services"]["redis"] == {"status": "disabled"}
