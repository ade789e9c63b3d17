"""Shared pytest fixtures for test suite"""
import os
import sys
import tempfile
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import fakeredis
import httpx
import pytest
from cryptography.fernet import Fernet

# Settings are read at import time
os.environ.setdefault("ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("PUBLIC_DIR", tempfile.mkdtemp(prefix="shortform-test-"))
os.environ["ENABLE_SCHEDULERS"] = "false"

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.container import Container, get_container
from app.db import redis as redis_module
from app.db.helpers import create_video
from app.db.session import get_db
from app.models import Base
from app.models.user import User
from app.services.auth_service import create_user


# SQLite in-memory database for testing
TEST_DATABASE_URL = "sqlite:///:memory:"

# Create test engine with StaticPool for in-memory database
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

# Create test session factory
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

TEST_PASSWORD = "TestPassword123!"


def unreachable_handler(request: httpx.Request) -> httpx.Response:
    """Default transport: every outbound call fails like an unreachable upstream"""
    return httpx.Response(503, json={"error": f"no route for {request.url}"})


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()

    # Helpers called without a session open their own
    with patch("app.db.helpers.SessionLocal", TestSessionLocal), \
            patch("app.services.auth_service.SessionLocal", TestSessionLocal):
        try:
            yield session
        finally:
            session.close()
            Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def session_factory(db_session: Session):
    """Session factory for background tasks, bound to the test database"""
    return TestSessionLocal


@pytest.fixture(scope="function")
def mock_redis():
    """Mock Redis client using fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    with patch.object(redis_module, "_client", fake_redis):
        yield fake_redis


@pytest.fixture(scope="function")
def container(db_session: Session, mock_redis) -> Container:
    """Real services wired to a transport that refuses every call"""
    built = Container.build(transport=httpx.MockTransport(unreachable_handler))
    built.poller.session_factory = TestSessionLocal
    built.auto_post.session_factory = TestSessionLocal
    return built


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis, container: Container) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database, mocked Redis and the test container"""

    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close session here, handled by fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_container] = lambda: container

    try:
        # No lifespan: the container is injected and schedulers stay off
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def test_user(db_session: Session) -> User:
    return create_user(email="creator@example.com", password=TEST_PASSWORD, name="Creator", db=db_session)


@pytest.fixture(scope="function")
def test_user_2(db_session: Session) -> User:
    """Second user for ownership tests"""
    return create_user(email="other@example.com", password=TEST_PASSWORD, db=db_session)


@pytest.fixture(scope="function")
def authenticated_client(client: TestClient, test_user: User) -> TestClient:
    """Client holding a session cookie for test_user"""
    response = client.post("/api/auth/login", json={"email": test_user.email, "password": TEST_PASSWORD})
    assert response.status_code == 200
    return client


@pytest.fixture(scope="function")
def make_video(db_session: Session, test_user: User):
    """Factory for video rows owned by test_user unless told otherwise"""

    def _make(user_id: int = None, metadata: dict = None, **fields):
        fields.setdefault("title", "Test Video")
        fields.setdefault("caption", "A test caption")
        fields.setdefault("status", "completed")
        return create_video(user_id or test_user.id, metadata=metadata, db=db_session, **fields)

    return _make
