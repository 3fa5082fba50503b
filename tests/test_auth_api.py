from __future__ import annotations

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from inquaire import events
from tests.conftest import STRONG_PASSWORD, create_tenant


def _signup(client: TestClient, email: str = "new@example.com", password: str = STRONG_PASSWORD):
    return client.post("/auth/signup", json={"email": email, "password": password, "name": "New User"})


def test_signup_issues_tokens_and_publishes_event(client: TestClient) -> None:
    response = _signup(client)
    assert response.status_code == 201
    body = response.json()
    assert body["user"]["email"] == "new@example.com"
    assert body["user"]["role"] == "USER"
    assert body["token_type"] == "Bearer"
    assert body["access_token"]
    assert body["refresh_token"]
    assert "password_hash" not in body["user"]

    registered = [item for item in events.published_events if item.get("event_type") == "user.registered"]
    assert registered and registered[-1]["email"] == "new@example.com"


def test_signup_rejects_duplicate_email_and_weak_password(client: TestClient) -> None:
    assert _signup(client).status_code == 201

    duplicate = _signup(client)
    assert duplicate.status_code == 409
    assert duplicate.json()["errorCode"] == "AUTH_EMAIL_ALREADY_EXISTS"

    weak = _signup(client, email="weak@example.com", password="password")
    assert weak.status_code == 400
    assert weak.json()["errorCode"] == "VALIDATION_WEAK_PASSWORD"


def test_login_returns_organizations(client: TestClient, db_session: Session) -> None:
    tenant = create_tenant(db_session, "login@example.com")

    response = client.post("/auth/login", json={"email": "login@example.com", "password": STRONG_PASSWORD})
    assert response.status_code == 200
    organizations = response.json()["organizations"]
    assert len(organizations) == 1
    assert organizations[0]["organization"]["id"] == str(tenant.organization.id)
    assert organizations[0]["role"] == "OWNER"
    assert "organization:delete" in organizations[0]["permissions"]


def test_login_with_wrong_password_is_rejected(client: TestClient) -> None:
    _signup(client)
    response = client.post("/auth/login", json={"email": "new@example.com", "password": "Wr0ng!Pass"})
    assert response.status_code == 401
    assert response.json()["errorCode"] == "AUTH_INVALID_CREDENTIALS"


def test_refresh_rotates_token(client: TestClient) -> None:
    refresh_token = _signup(client).json()["refresh_token"]

    rotated = client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert rotated.status_code == 200
    assert rotated.json()["refresh_token"] != refresh_token

    reused = client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert reused.status_code == 401
    assert reused.json()["errorCode"] == "AUTH_INVALID_REFRESH_TOKEN"


def test_logout_invalidates_refresh_token(client: TestClient) -> None:
    refresh_token = _signup(client).json()["refresh_token"]

    logout = client.post("/auth/logout", json={"refresh_token": refresh_token})
    assert logout.status_code == 200
    assert logout.json()["message"] == "Logged out successfully"

    again = client.post("/auth/refresh", json={"refresh_token": refresh_token})
    assert again.status_code == 401


def test_profile_requires_authentication(client: TestClient) -> None:
    response = client.get("/auth/profile")
    assert response.status_code == 401
    assert response.json()["errorCode"] == "AUTH_REQUIRED"

    invalid = client.get("/auth/profile", headers={"Authorization": "Bearer not-a-token"})
    assert invalid.status_code == 401
    assert invalid.json()["errorCode"] == "AUTH_INVALID_TOKEN"


def test_profile_update_and_change_password(client: TestClient) -> None:
    token = _signup(client).json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    updated = client.patch("/auth/profile", json={"name": "Renamed"}, headers=headers)
    assert updated.status_code == 200
    assert updated.json()["name"] == "Renamed"

    wrong = client.post(
        "/auth/change-password",
        json={"current_password": "Wr0ng!Pass", "new_password": "N3w!Password"},
        headers=headers,
    )
    assert wrong.status_code == 401

    changed = client.post(
        "/auth/change-password",
        json={"current_password": STRONG_PASSWORD, "new_password": "N3w!Password"},
        headers=headers,
    )
    assert changed.status_code == 200

    login = client.post("/auth/login", json={"email": "new@example.com", "password": "N3w!Password"})
    assert login.status_code == 200
