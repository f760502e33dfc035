"""
Authentication routes.

Verifies:
- Login accepts plain and base64 credentials and returns a bearer token
- Invalid input is 422, bad credentials 401
- Logout, profile and change-password behave with the session lifecycle
"""

import base64

import pytest

from conftest import PASSWORD, auth_headers, login, make_user

from backoffice.services import audit_service


def _b64(value):
    return base64.b64encode(value.encode("utf-8")).decode("ascii")


@pytest.fixture
def user(db_session):
    return make_user(db_session, name="Ann", email="ann@example.com")


class TestLogin:

    def test_plain_credentials(self, client, user):
        response = client.post("/api/login", json={"email": "ann@example.com", "password": PASSWORD})

        assert response.status_code == 200
        body = response.get_json()
        assert body["success"] is True
        assert body["data"]["token_type"] == "Bearer"
        assert len(body["data"]["token"]) == 64
        assert body["data"]["user"] == {"id": user.id, "name": "Ann", "email": "ann@example.com"}

    def test_base64_credentials(self, client, user):
        response = client.post("/api/login", json={"email": _b64("ann@example.com"), "password": _b64(PASSWORD)})
        assert response.status_code == 200

    def test_wrong_password(self, client, user):
        response = client.post("/api/login", json={"email": "ann@example.com", "password": "wrong-password"})
        assert response.status_code == 401
        assert response.get_json()["success"] is False

    def test_unknown_email(self, client, user):
        response = client.post("/api/login", json={"email": "nobody@example.com", "password": PASSWORD})
        assert response.status_code == 401

    def test_missing_fields(self, client, db_session):
        response = client.post("/api/login", json={"email": "ann@example.com"})
        assert response.status_code == 422

    def test_invalid_email(self, client, db_session):
        response = client.post("/api/login", json={"email": "not-an-email", "password": PASSWORD})
        assert response.status_code == 422
        assert "email" in response.get_json()["data"]

    def test_trashed_user_cannot_login(self, client, user, db_session):
        audit_service.soft_delete(user)
        db_session.commit()
        response = client.post("/api/login", json={"email": "ann@example.com", "password": PASSWORD})
        assert response.status_code == 401

    def test_inactive_user_cannot_login(self, client, user, db_session):
        user.is_active = False
        db_session.commit()
        response = client.post("/api/login", json={"email": "ann@example.com", "password": PASSWORD})
        assert response.status_code == 401

    def test_remember_extends_expiry(self, client, user):
        short = client.post("/api/login", json={"email": "ann@example.com", "password": PASSWORD})
        long = client.post("/api/login", json={"email": "ann@example.com", "password": PASSWORD, "remember": True})
        assert long.get_json()["data"]["remember"] is True
        assert long.get_json()["data"]["expires_at"] > short.get_json()["data"]["expires_at"]

    @pytest.mark.parametrize("value, expected", [("false", False), ("0", False), ("true", True), ("1", True)])
    def test_remember_string_values(self, client, user, value, expected):
        response = client.post("/api/login", json={"email": "ann@example.com", "password": PASSWORD, "remember": value})
        assert response.status_code == 200
        assert response.get_json()["data"]["remember"] is expected


class TestSession:

    def test_profile_requires_token(self, client, db_session):
        assert client.get("/api/profile").status_code == 401
        assert client.get("/api/profile", headers=auth_headers("bogus")).status_code == 401

    def test_profile(self, client, user):
        headers = auth_headers(login(client, user.email))
        response = client.get("/api/profile", headers=headers)
        assert response.status_code == 200
        profile = response.get_json()["data"]["user"]
        assert profile["email"] == "ann@example.com"
        assert "password_hash" not in profile

    def test_logout_revokes_token(self, client, user):
        headers = auth_headers(login(client, user.email))
        assert client.post("/api/logout", headers=headers).status_code == 200
        assert client.get("/api/profile", headers=headers).status_code == 401

    def test_deleted_user_token_stops_working(self, client, user, db_session):
        headers = auth_headers(login(client, user.email))
        audit_service.soft_delete(user)
        db_session.commit()
        assert client.get("/api/profile", headers=headers).status_code == 401

    def test_update_profile(self, client, user):
        headers = auth_headers(login(client, user.email))
        response = client.put("/api/profile", headers=headers, json={"name": "Ann B.", "role_id": "ignored"})
        assert response.status_code == 200
        data = response.get_json()["data"]["user"]
        assert data["name"] == "Ann B."
        assert data["role_id"] is None


class TestChangePassword:

    def test_other_sessions_revoked(self, client, user):
        current = auth_headers(login(client, user.email))
        other = auth_headers(login(client, user.email))

        response = client.post("/api/auth/change-password", headers=current, json={
            "current_password": PASSWORD,
            "new_password": "NewPassword456!",
        })

        assert response.status_code == 200
        assert response.get_json()["data"]["revoked_sessions"] == 1
        assert client.get("/api/profile", headers=current).status_code == 200
        assert client.get("/api/profile", headers=other).status_code == 401
        login(client, user.email, "NewPassword456!")

    def test_wrong_current_password(self, client, user):
        headers = auth_headers(login(client, user.email))
        response = client.post("/api/auth/change-password", headers=headers, json={
            "currentPassword": "nope-nope",
            "newPassword": "NewPassword456!",
        })
        assert response.status_code == 422

    def test_weak_new_password(self, client, user):
        headers = auth_headers(login(client, user.email))
        response = client.post("/api/auth/change-password", headers=headers, json={
            "current_password": PASSWORD,
            "new_password": "short",
        })
        assert response.status_code == 422
