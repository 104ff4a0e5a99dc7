"""Shared pytest fixtures for test suite"""
import os
import sys
import uuid
from pathlib import Path
from typing import Generator
from unittest.mock import AsyncMock, Mock, patch

import fakeredis
import pytest

# Settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["DELIVERY_WORKER_ENABLED"] = "false"
os.environ.setdefault("EMAIL_API_TOKEN", "test-token")
os.environ.setdefault("OTEL_EXPORTER_OTLP_ENDPOINT", "")

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
if str(backend_dir) not in sys.path:
    sys.path.insert(0, str(backend_dir))

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from mailroom.main import app
from mailroom.db import redis as redis_module
from mailroom.db.session import get_db
from mailroom.models import Base
from mailroom.models.subscription import STATUS_CONFIRMED, STATUS_PENDING_CONFIRMATION, Subscription
from mailroom.models.user import User
from mailroom.services.auth_service import create_user
from mailroom.services.email_service import get_email_client


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


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh SQLite in-memory database session for each test"""
    # Create all tables
    Base.metadata.create_all(bind=test_engine)

    # Create session
    session = TestSessionLocal()

    try:
        yield session
    finally:
        session.close()
        # Drop all tables after test
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def mock_redis():
    """Replace the Redis client with fakeredis"""
    fake_redis = fakeredis.FakeStrictRedis(decode_responses=True)
    with patch.object(redis_module, "_client", fake_redis):
        yield fake_redis


@pytest.fixture(scope="function")
def mock_email_client():
    """Email client whose sends succeed without touching the network"""
    email_client = Mock()
    email_client.send_email = AsyncMock(return_value=None)
    email_client.aclose = AsyncMock(return_value=None)
    return email_client


@pytest.fixture(scope="function")
def client(db_session: Session, mock_redis, mock_email_client) -> Generator[TestClient, None, None]:
    """FastAPI test client with test database, mocked Redis and email client"""

    # Override get_db dependency to use test database
    def override_get_db():
        try:
            yield db_session
        finally:
            pass  # Don't close session here, handled by fixture

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_email_client] = lambda: mock_email_client

    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        # Cleanup - always clear overrides
        app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def test_user(db_session: Session) -> User:
    """Administrator account"""
    return create_user(username="admin", password=TEST_PASSWORD, db=db_session)


@pytest.fixture(scope="function")
def test_user_2(db_session: Session) -> User:
    """Second administrator for key scoping tests"""
    return create_user(username="editor", password=TEST_PASSWORD, db=db_session)


@pytest.fixture(scope="function")
def authenticated_client(client: TestClient, test_user: User) -> TestClient:
    """Client logged in as test_user"""
    login_response = client.post(
        "/login",
        json={"username": test_user.username, "password": TEST_PASSWORD}
    )
    assert login_response.status_code == 200
    assert client.cookies.get("session_id")
    return client


@pytest.fixture(scope="function")
def make_subscriber(db_session: Session):
    """Factory inserting a subscriber directly"""
    def _make(email: str, status: str = STATUS_CONFIRMED, name: str = "Subscriber") -> Subscription:
        subscriber = Subscription(id=str(uuid.uuid4()), email=email, name=name, status=status)
        db_session.add(subscriber)
        db_session.commit()
        return subscriber
    return _make


@pytest.fixture(scope="function")
def confirmed_subscribers(make_subscriber):
    """Two confirmed subscribers and one still pending"""
    confirmed = [
        make_subscriber("ursula_le_guin@gmail.com"),
        make_subscriber("octavia.butler@example.com"),
    ]
    make_subscriber("pending@example.com", status=STATUS_PENDING_CONFIRMATION)
    return confirmed


@pytest.fixture(scope="function")
def session_factory(db_session: Session) -> sessionmaker:
    """Session factory bound to the test database, for code that opens its own sessions"""
    return TestSessionLocal
