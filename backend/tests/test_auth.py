"""
Tests for authentication endpoints and the bearer token guard.

Tests cover:
- Registration (201, 409, 400)
- Login (200, identical 401 for unknown email and wrong password)
- Protected routes rejecting missing, malformed, expired and orphaned tokens
"""

import logging
from datetime import timedelta

from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy.orm import Session

import models
from conftest import TEST_PASSWORD

logger = logging.getLogger(__name__)


# ============== Registration ==============


def test_register_returns_token_and_user(client: TestClient, test_db: Session):
    """Registering creates the user and returns a usable token."""
    logger.debug("Testing registration")

    response = client.post(
        "/auth/register",
        json={"name": "Ada", "email": "ada@test.com", "password": "hunter22"}
    )

    assert response.status_code == 201, f"Expected 201, got {response.status_code}: {response.json()}"
    data = response.json()
    assert data["token"]
    assert data["user"]["email"] == "ada@test.com"
    assert data["user"]["name"] == "Ada"
    assert "passwordHash" not in data["user"]

    stored = test_db.query(models.User).filter(models.User.email == "ada@test.com").first()
    assert stored is not None
    assert stored.password_hash != "hunter22"

    me = client.get("/auth/me", headers={"Authorization": f"Bearer {data['token']}"})
    assert me.status_code == 200, me.json()
    assert me.json()["id"] == data["user"]["id"]
    logger.info("✓ Registration returns a working token")


def test_register_duplicate_email_conflict(client: TestClient, user: models.User):
    """Registering an email twice yields 409."""
    response = client.post(
        "/auth/register",
        json={"name": "Alice Again", "email": user.email, "password": "hunter22"}
    )

    assert response.status_code == 409, f"Expected 409, got {response.status_code}: {response.json()}"
    assert response.json()["detail"] == "Email already in use"
    logger.info("✓ Duplicate registration rejected with 409")


def test_register_duplicate_email_is_case_insensitive(client: TestClient, user: models.User):
    response = client.post(
        "/auth/register",
        json={"name": "Alice Again", "email": user.email.upper(), "password": "hunter22"}
    )

    assert response.status_code == 409, response.json()


def test_register_invalid_payload(client: TestClient):
    """Short name, bad email and short password are all reported as field issues."""
    response = client.post(
        "/auth/register",
        json={"name": "A", "email": "not-an-email", "password": "123"}
    )

    assert response.status_code == 400, f"Expected 400, got {response.status_code}: {response.json()}"
    body = response.json()
    assert body["detail"] == "Invalid payload"
    fields = {issue["field"] for issue in body["issues"]}
    assert {"name", "email", "password"} <= fields
    logger.info("✓ Invalid registration payload rejected with field issues")


# ============== Login ==============


def test_login_success(client: TestClient, user: models.User):
    response = client.post("/auth/login", json={"email": user.email, "password": TEST_PASSWORD})

    assert response.status_code == 200, response.json()
    data = response.json()
    assert data["user"]["id"] == user.id
    assert data["token"]


def test_login_failures_are_indistinguishable(client: TestClient, user: models.User):
    """Unknown email and wrong password return the same 401 body."""
    logger.debug("Testing login failure responses")

    wrong_password = client.post("/auth/login", json={"email": user.email, "password": "wrong-password"})
    unknown_email = client.post("/auth/login", json={"email": "nobody@test.com", "password": TEST_PASSWORD})

    assert wrong_password.status_code == 401
    assert unknown_email.status_code == 401
    assert wrong_password.json() == unknown_email.json() == {"detail": "Invalid credentials"}
    logger.info("✓ Login failures do not reveal which part was wrong")


def test_login_invalid_payload(client: TestClient):
    response = client.post("/auth/login", json={"email": "alice@test.com"})

    assert response.status_code == 400, response.json()
    assert any(issue["field"] == "password" for issue in response.json()["issues"])


# ============== Guard ==============


def test_protected_route_without_token(client: TestClient):
    response = client.get("/projects")

    assert response.status_code == 401, response.json()
    assert response.headers.get("www-authenticate") == "Bearer"


def test_protected_route_with_garbage_token(client: TestClient):
    response = client.get("/projects", headers={"Authorization": "Bearer not-a-jwt"})

    assert response.status_code == 401, response.json()


def test_protected_route_with_expired_token(client: TestClient, user: models.User, token_for):
    token = token_for(user, expires_delta=timedelta(minutes=-5))

    response = client.get("/projects", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401, response.json()


def test_protected_route_with_token_signed_by_other_key(client: TestClient, user: models.User):
    token = jwt.encode({"sub": str(user.id), "email": user.email, "type": "access"}, "other-key", algorithm="HS256")

    response = client.get("/projects", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401, response.json()


def test_protected_route_with_non_access_token(client: TestClient, user: models.User, settings):
    token = jwt.encode(
        {"sub": str(user.id), "email": user.email, "type": "refresh"},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )

    response = client.get("/projects", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401, response.json()


def test_protected_route_with_unknown_user(client: TestClient, settings):
    token = jwt.encode(
        {"sub": "99999", "email": "ghost@test.com", "type": "access"},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )

    response = client.get("/projects", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401, response.json()


def test_protected_route_with_non_numeric_subject(client: TestClient, settings):
    token = jwt.encode(
        {"sub": "abc", "email": "ghost@test.com", "type": "access"},
        settings.secret_key,
        algorithm=settings.jwt_algorithm,
    )

    response = client.get("/dashboard/summary", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401, response.json()


def test_health_is_public(client: TestClient):
    response = client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
