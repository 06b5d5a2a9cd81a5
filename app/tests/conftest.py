import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from datetime import timedelta
import uuid

from app.core.config import settings

settings.redis_enabled = False

from app.main import app
from app.core.db import Base, get_db
from app.core.security import get_password_hash, create_access_token
from app.models.poll import Poll
from app.models.profile import Profile, ROLE_ADMIN, ROLE_USER
from app.models.option import PollOption
from app.models.vote import Vote
from app.utils.timeutils import utcnow

TEST_PASSWORD = "Secret123"

# In-memory SQLite shared by every connection of the test engine
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Fresh schema and session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """Create test client with database session."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def test_user(db_session):
    """Create a regular user."""
    return create_test_user(db_session, username="testuser", email="test@pollapp.io")


@pytest.fixture
def other_user(db_session):
    return create_test_user(db_session, username="otheruser", email="other@pollapp.io")


@pytest.fixture
def admin_user(db_session):
    """Create an admin."""
    return create_test_user(db_session, username="admin", email="admin@pollapp.io", role=ROLE_ADMIN)


@pytest.fixture
def auth_headers(test_user):
    return auth_headers_for(test_user)


@pytest.fixture
def other_headers(other_user):
    return auth_headers_for(other_user)


@pytest.fixture
def admin_headers(admin_user):
    return auth_headers_for(admin_user)


@pytest.fixture
def test_poll(db_session, test_user):
    """Single-choice poll with two options."""
    return create_test_poll(db_session, test_user.id, title="Test Poll")


@pytest.fixture
def multiple_choice_poll(db_session, test_user):
    """Multi-choice poll with three options."""
    return create_test_poll(
        db_session, test_user.id, title="Multiple Choice Poll",
        allow_multiple_choices=True, options=["Multiple Option 1", "Multiple Option 2", "Multiple Option 3"]
    )


@pytest.fixture
def expired_poll(db_session, test_user):
    return create_test_poll(
        db_session, test_user.id, title="Expired Poll",
        expires_at=utcnow() - timedelta(days=1)
    )


@pytest.fixture
def inactive_poll(db_session, test_user):
    return create_test_poll(db_session, test_user.id, title="Inactive Poll", is_active=False)


@pytest.fixture
def members_only_poll(db_session, test_user):
    """Poll that refuses anonymous votes."""
    return create_test_poll(db_session, test_user.id, title="Members Only Poll", allow_anonymous=False)


# Helper functions for tests
def create_test_user(db_session, username="testuser", email="test@pollapp.io", role=ROLE_USER):
    """Helper function to create a profile."""
    user = Profile(
        id=uuid.uuid4(),
        username=username,
        email=email,
        hashed_password=get_password_hash(TEST_PASSWORD),
        role=role
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


def auth_headers_for(user):
    token = create_access_token({"sub": str(user.id), "role": user.role})
    return {"Authorization": f"Bearer {token}"}


def create_test_poll(db_session, creator_id, title="Test Poll", options=None, allow_multiple_choices=False,
                     allow_anonymous=True, is_active=True, expires_at=None):
    """Helper function to create a poll with its options."""
    poll = Poll(
        id=uuid.uuid4(),
        title=title,
        description=f"Description for {title}",
        creator_id=creator_id,
        is_active=is_active,
        allow_multiple_choices=allow_multiple_choices,
        allow_anonymous=allow_anonymous,
        expires_at=expires_at if expires_at is not None else utcnow() + timedelta(days=7)
    )
    db_session.add(poll)
    db_session.commit()

    for index, text in enumerate(options or ["Option 1", "Option 2"]):
        db_session.add(PollOption(id=uuid.uuid4(), poll_id=poll.id, text=text, order_index=index))
    db_session.commit()
    db_session.refresh(poll)
    return poll


def get_options(db_session, poll):
    return db_session.query(PollOption).filter(
        PollOption.poll_id == poll.id
    ).order_by(PollOption.order_index).all()


def create_test_vote(db_session, poll_id, option_id, user_id=None, ip_address=None):
    """Helper function to record a vote directly."""
    vote = Vote(
        id=uuid.uuid4(),
        poll_id=poll_id,
        option_id=option_id,
        user_id=user_id,
        ip_address=None if user_id else (ip_address or "127.0.0.1")
    )
    db_session.add(vote)
    db_session.commit()
    db_session.refresh(vote)
    return vote
