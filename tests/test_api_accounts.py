from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from applydesk.db import PasswordResetToken, User
from applydesk.services import accounts

pytestmark = pytest.mark.integration


def test_health(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_create_account_starts_trial(client: TestClient, db: Session) -> None:
    response = client.post(
        "/api/users", json={"email": "Ada@Example.com", "name": "Ada", "password": "long-enough"}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Account created"
    assert body["data"]["email"] == "ada@example.com"
    assert body["data"]["subscription_plan"] == "free_trial"
    assert body["data"]["trial_ends_at"] is not None

    user = db.query(User).one()
    assert accounts.verify_password("long-enough", user.password_hash)

    duplicate = client.post("/api/users", json={"email": "ada@example.com"})
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "CONFLICT"


def test_validation_errors_use_the_envelope(client: TestClient) -> None:
    response = client.post("/api/users", json={"email": "not-an-email", "password": "short"})

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert body["code"] == "VALIDATION_ERROR"
    assert {tuple(error["loc"]) for error in body["details"]} == {("body", "email"), ("body", "password")}


def test_me_requires_a_known_user(client: TestClient, make_user) -> None:
    user = make_user(name="Grace")

    assert client.get("/api/users/me").json()["code"] == "UNAUTHORIZED"
    assert client.get("/api/users/me", headers={"X-User-ID": "nobody"}).status_code == 401

    response = client.get("/api/users/me", headers={"X-User-ID": user.id})
    assert response.status_code == 200
    assert response.json()["data"]["name"] == "Grace"


def test_password_reset_flow(client: TestClient, db: Session, make_user) -> None:
    user = make_user(email="reset@example.com")

    response = client.post("/api/auth/forgot-password", json={"email": "RESET@example.com"})
    assert response.status_code == 200
    assert "token" not in response.text

    token = db.query(PasswordResetToken).one().token
    reset = client.post("/api/auth/reset-password", json={"token": token, "password": "brand-new-pass"})
    assert reset.status_code == 200

    db.expire_all()
    assert accounts.verify_password("brand-new-pass", db.get(User, user.id).password_hash)

    again = client.post("/api/auth/reset-password", json={"token": token, "password": "another-pass"})
    assert again.status_code == 400
    assert again.json()["code"] == "INVALID_TOKEN"


def test_forgot_password_errors(client: TestClient, make_user) -> None:
    make_user(email="oauth@example.com", password=None)

    unknown = client.post("/api/auth/forgot-password", json={"email": "ghost@example.com"})
    assert unknown.status_code == 404

    oauth = client.post("/api/auth/forgot-password", json={"email": "oauth@example.com"})
    assert oauth.status_code == 400
    assert oauth.json()["code"] == "OAUTH_ACCOUNT"


def test_plans_and_usage(client: TestClient, make_user) -> None:
    user = make_user(auto_applications_used=2)
    headers = {"X-User-ID": user.id}

    listed = client.get("/api/plans").json()["data"]
    assert [plan["id"] for plan in listed] == ["free_trial", "starter", "pro", "power", "interview_addon"]

    usage = client.get("/api/plans/usage", headers=headers).json()["data"]
    assert usage["plan"] == "free_trial"
    assert usage["is_trial_active"] is True
    assert usage["auto_applications"] == {"used": 2, "limit": 5, "remaining": 3, "percentage": 40}


def test_users_cannot_change_their_own_plan(client: TestClient, db: Session, make_user) -> None:
    user = make_user(auto_applications_used=5)
    headers = {"X-User-ID": user.id}

    response = client.post("/api/plans/change", json={"plan": "power", "status": "active"}, headers=headers)
    assert response.status_code == 404
    cron_path = client.post(f"/api/cron/users/{user.id}/plan", json={"plan": "power"}, headers=headers)
    assert cron_path.status_code == 401

    db.expire_all()
    assert (user.subscription_plan, user.auto_applications_used) == ("free_trial", 5)
    assert client.get("/api/plans/usage", headers=headers).json()["data"]["auto_applications"]["remaining"] == 0


def test_unknown_route_uses_the_envelope(client: TestClient) -> None:
    response = client.get("/api/nope")
    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Not Found", "code": "HTTP_ERROR"}


def test_unhandled_errors_become_500(client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
    def broken():
        raise RuntimeError("boom")

    monkeypatch.setattr("applydesk.services.plans.list_plans", broken)

    response = client.get("/api/plans")

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error", "code": "INTERNAL_ERROR"}
