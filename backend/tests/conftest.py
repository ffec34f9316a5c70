"""
Test configuration and fixtures for the tracker API tests.

Provides:
- Test database with SQLite in-memory for speed
- FastAPI test client with database dependency override
- Authentication helpers (JWT token generation)
- Common fixtures for users, projects, and tasks
"""

import os
import sys
import logging
from datetime import timedelta
from typing import Callable, Dict, Generator, Optional

# Add backend directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
os.environ.setdefault("TRACKER_JWT_SECRET_KEY", "test-secret-key")

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session, sessionmaker

from config import Settings
from database import Base, create_db_engine, get_db
from main import create_app
import models
from auth.security import hash_password, create_access_token

# Configure logging for tests
logging.basicConfig(level=logging.WARNING)
logger = logging.getLogger(__name__)

# SQLite in-memory database for fast testing
SQLALCHEMY_TEST_DATABASE_URL = "sqlite:///:memory:"

TEST_PASSWORD = "secret123"


@pytest.fixture(scope="session")
def settings() -> Settings:
    return Settings(
        database_url=SQLALCHEMY_TEST_DATABASE_URL,
        jwt_secret_key="test-secret-key",
        create_tables=False,
        log_level="WARNING",
    )


@pytest.fixture(scope="function")
def app(settings: Settings) -> FastAPI:
    return create_app(settings)


@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """
    Create a fresh in-memory SQLite database for each test.

    This ensures test isolation and fast execution.
    """
    logger.debug("Creating test database")
    engine = create_db_engine(SQLALCHEMY_TEST_DATABASE_URL)
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()

    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()
        logger.debug("Test database cleaned up")


@pytest.fixture(scope="function")
def client(app: FastAPI, test_db: Session) -> Generator[TestClient, None, None]:
    """
    Create FastAPI test client with database dependency override.
    """
    def override_get_db():
        try:
            yield test_db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def create_user(db: Session, name: str, email: str, password: str = TEST_PASSWORD) -> models.User:
    user = models.User(name=name, email=email, password_hash=hash_password(password))
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info(f"Created user {email} with ID: {user.id}")
    return user


@pytest.fixture(scope="function")
def user(test_db: Session) -> models.User:
    """Primary user that owns the fixture projects."""
    return create_user(test_db, "Alice Owner", "alice@test.com")


@pytest.fixture(scope="function")
def other_user(test_db: Session) -> models.User:
    """Second user for isolation scenarios."""
    return create_user(test_db, "Bob Outsider", "bob@test.com")


@pytest.fixture(scope="function")
def token_for(settings: Settings) -> Callable[..., str]:
    """
    Factory creating a JWT access token for a user.
    """
    def _token_for(user: models.User, expires_delta: Optional[timedelta] = None) -> str:
        return create_access_token({"sub": str(user.id), "email": user.email}, settings, expires_delta)

    return _token_for


@pytest.fixture(scope="function")
def headers_for(token_for) -> Callable[[models.User], Dict[str, str]]:
    """
    Factory creating authorization headers for a user.
    """
    def _headers_for(user: models.User) -> Dict[str, str]:
        return {"Authorization": f"Bearer {token_for(user)}"}

    return _headers_for


@pytest.fixture(scope="function")
def auth_headers(user: models.User, headers_for) -> Dict[str, str]:
    return headers_for(user)


@pytest.fixture(scope="function")
def other_auth_headers(other_user: models.User, headers_for) -> Dict[str, str]:
    return headers_for(other_user)


def make_project(db: Session, owner: models.User, name: str, **kwargs) -> models.Project:
    project = models.Project(owner_id=owner.id, name=name, **kwargs)
    db.add(project)
    db.commit()
    db.refresh(project)
    return project


def make_task(db: Session, project: models.Project, title: str, **kwargs) -> models.Task:
    task = models.Task(project_id=project.id, title=title, **kwargs)
    db.add(task)
    db.commit()
    db.refresh(task)
    return task


@pytest.fixture(scope="function")
def project(test_db: Session, user: models.User) -> models.Project:
    """
    Create an active project owned by the primary user.
    """
    logger.debug("Creating test project")
    return make_project(test_db, user, "Test Project", description="A project for testing")
