"""Tests for the /api/auth endpoints."""

from unittest.mock import MagicMock

import pytest

from shared.exceptions import ConnectionFailedError
from api.dependencies import get_auth_service

PASSWORD = "Str0ng!Pass123"


def register(client, email="a@x.com", password=PASSWORD, **extra):
    return client.post("/api/auth/register", json={"email": email, "password": password, **extra})


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def tokens(client):
    return register(client).json()["tokens"]


class TestRegister:
    def test_register_creates_account(self, client):
        response = register(client, full_name="Ada Lovelace")

        assert response.status_code == 201
        body = response.json()
        assert body["account"]["email"] == "a@x.com"
        assert body["profile"]["full_name"] == "Ada Lovelace"
        assert body["tokens"]["token_type"] == "bearer"
        assert "password_hash" not in body["account"]

    def test_duplicate_is_conflict(self, client):
        register(client)

        response = register(client)

        assert response.status_code == 409
        assert response.json()["detail"] == "An account with this email already exists"

    def test_weak_password_is_bad_request(self, client):
        assert register(client, password="123456").status_code == 400

    def test_invalid_email_is_bad_request(self, client):
        assert register(client, email="not-an-email").status_code == 400

    def test_missing_fields_are_rejected(self, client):
        assert client.post("/api/auth/register", json={"email": "a@x.com"}).status_code == 422


class TestLogin:
    def test_login(self, client):
        register(client)

        response = client.post("/api/auth/login", json={"email": "a@x.com", "password": PASSWORD})

        assert response.status_code == 200
        assert response.json()["account"]["email"] == "a@x.com"

    def test_failures_are_indistinguishable(self, client):
        register(client)

        unknown = client.post("/api/auth/login", json={"email": "b@x.com", "password": PASSWORD})
        wrong = client.post("/api/auth/login", json={"email": "a@x.com", "password": "Wr0ng!Pass999"})

        assert unknown.status_code == wrong.status_code == 401
        assert unknown.json() == wrong.json()


class TestTokens:
    def test_me(self, client, tokens):
        response = client.get("/api/auth/me", headers=bearer(tokens["access_token"]))

        assert response.status_code == 200
        body = response.json()
        assert body["email"] == "a@x.com"
        assert body["is_admin"] is False
        assert body["session_id"]

    def test_me_without_token(self, client):
        response = client.get("/api/auth/me")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_me_with_expired_token(self, client, tokens, clock):
        clock.advance(minutes=16)

        response = client.get("/api/auth/me", headers=bearer(tokens["access_token"]))

        assert response.status_code == 401
        assert response.json()["detail"] == "Session is invalid, please sign in again"

    def test_refresh_token_is_not_accepted_as_bearer(self, client, tokens):
        response = client.get("/api/auth/me", headers=bearer(tokens["refresh_token"]))
        assert response.status_code == 401

    def test_refresh(self, client, tokens, clock):
        clock.advance(minutes=20)

        response = client.post("/api/auth/refresh", json={"refresh_token": tokens["refresh_token"]})

        assert response.status_code == 200
        new_access = response.json()["tokens"]["access_token"]
        assert new_access != tokens["access_token"]
        assert client.get("/api/auth/me", headers=bearer(new_access)).status_code == 200

    def test_refresh_with_access_token(self, client, tokens):
        response = client.post("/api/auth/refresh", json={"refresh_token": tokens["access_token"]})
        assert response.status_code == 401


class TestPasswords:
    def test_change_password(self, client, tokens):
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "N3w!Secure#Key"},
            headers=bearer(tokens["access_token"]),
        )

        assert response.status_code == 200
        login = client.post(
            "/api/auth/login", json={"email": "a@x.com", "password": "N3w!Secure#Key"}
        )
        assert login.status_code == 200

    def test_change_password_requires_auth(self, client):
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": PASSWORD, "new_password": "N3w!Secure#Key"},
        )
        assert response.status_code == 401

    def test_change_password_wrong_current(self, client, tokens):
        response = client.post(
            "/api/auth/change-password",
            json={"current_password": "Wr0ng!Pass999", "new_password": "N3w!Secure#Key"},
            headers=bearer(tokens["access_token"]),
        )
        assert response.status_code == 401

    def test_reset_request_does_not_reveal_registration(self, client):
        register(client)

        known = client.post("/api/auth/password-reset", json={"email": "a@x.com"})
        unknown = client.post("/api/auth/password-reset", json={"email": "b@x.com"})

        assert known.status_code == unknown.status_code == 202
        assert known.json() == unknown.json()

    def test_reset_confirm(self, client, auth_service):
        register(client)
        token = auth_service.request_password_reset("a@x.com")

        response = client.post(
            "/api/auth/password-reset/confirm",
            json={"token": token, "new_password": "N3w!Secure#Key"},
        )

        assert response.status_code == 200

    def test_reset_confirm_with_bad_token(self, client):
        response = client.post(
            "/api/auth/password-reset/confirm",
            json={"token": "garbage", "new_password": "N3w!Secure#Key"},
        )
        assert response.status_code == 400


class TestErrorHandling:
    def test_unavailable_database_is_503(self, client, accounts):
        accounts.find_by_email = MagicMock(side_effect=ConnectionFailedError())

        response = register(client)

        assert response.status_code == 503

    def test_domain_errors_use_error_response(self, app, client):
        service = MagicMock()
        service.register.side_effect = ConnectionFailedError()
        app.dependency_overrides[get_auth_service] = lambda: service

        response = register(client)

        assert response.status_code == 503
        assert response.json() == {
            "error": "ConnectionFailedError",
            "detail": "Database connection failed",
            "code": "CONNECTION_FAILED",
        }
