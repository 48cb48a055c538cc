"""
Pytest configuration and fixtures for EduVox backend tests.

Provides:
- Test database setup/teardown
- FastAPI test client
- Firebase token override for authenticated requests
- User, university and pathway template fixtures
- Gemini mock for AI tests
"""

import pytest
import os
from typing import Generator, Callable
from datetime import datetime
from unittest.mock import patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session

# Set test environment before importing app
os.environ["DATABASE_URL"] = "sqlite:///./test_eduvox.db"
os.environ["GEMINI_API_KEY"] = "test-key-not-real"
os.environ["FIREBASE_PROJECT_ID"] = "eduvox-test"
os.environ["ENABLE_DB_INIT"] = "false"
os.environ["PATHWAY_SCRAPE_DELAY_SECONDS"] = "0"
os.environ["UNIVERSITY_SCRAPE_DELAY_SECONDS"] = "0"

from eduvox.main import app
from eduvox.database import Base, get_db
from eduvox.dependencies.auth import get_token_claims
from eduvox.models.models import UserProfile, AcademicProfile, University
from eduvox.schemas.pathway import PathwayProfile
from eduvox.services.pathway_generator import PathwayGenerator
from eduvox.services.pathway_resolver import save_template
from eduvox.services.static_pathway import build_static_pathway
from tests.mocks import FakeTextGenerator
from tests.factories import make_university


# Test database setup
TEST_DATABASE_URL = "sqlite:///./test_eduvox.db"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False}
)


# pysqlite needs explicit BEGIN for SAVEPOINT to behave
@event.listens_for(test_engine, "connect")
def _sqlite_connect(dbapi_connection, connection_record):
    dbapi_connection.isolation_level = None


@event.listens_for(test_engine, "begin")
def _sqlite_begin(conn):
    conn.exec_driver_sql("BEGIN")


TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=test_engine,
    join_transaction_mode="create_savepoint",
)


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create test database tables once per test session"""
    Base.metadata.create_all(bind=test_engine)
    yield
    # Cleanup after all tests
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()
    if os.path.exists("./test_eduvox.db"):
        os.remove("./test_eduvox.db")


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Provide a database session for each test, with rollback after.

    Service code commits and rolls back freely; those act on savepoints
    inside the outer transaction.
    """
    connection = test_engine.connect()
    transaction = connection.begin()
    session = TestingSessionLocal(bind=connection)

    yield session

    session.close()
    transaction.rollback()
    connection.close()


@pytest.fixture(scope="function")
def client(db: Session) -> Generator[TestClient, None, None]:
    """Provide FastAPI test client with database override"""
    def override_get_db():
        try:
            yield db
        finally:
            pass  # Don't close - let the fixture handle it

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def login_as(client: TestClient) -> Callable[[str, str], None]:
    """
    Authenticate subsequent requests as the given Firebase uid.

    Replaces token verification, so no Authorization header is needed.
    """
    def _login(uid: str, email: str = "student@eduvox.test"):
        app.dependency_overrides[get_token_claims] = lambda: {
            "user_id": uid,
            "sub": uid,
            "email": email,
            "email_verified": True,
        }
    return _login


# =========================================================================
# User Fixtures
# =========================================================================

@pytest.fixture
def test_user(db: Session) -> UserProfile:
    """Create a registered student with an academic profile"""
    user = UserProfile(
        id="firebase-uid-student",
        email="student@eduvox.test",
        full_name="Priya Sharma",
        role="student",
        nationality="Indian",
        preferred_countries=["Canada", "UK"],
        last_login=datetime.utcnow(),
    )
    db.add(user)
    db.add(AcademicProfile(
        user_id=user.id,
        cgpa=8.5,
        ielts_score=7.0,
        toefl_score=100,
        gre_score=320,
        budget_max=45000,
        preferred_fields=["Computer Science"],
    ))
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def admin_user(db: Session) -> UserProfile:
    user = UserProfile(
        id="firebase-uid-admin",
        email="admin@eduvox.test",
        full_name="Admin User",
        role="admin",
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def authed_client(client: TestClient, login_as, test_user: UserProfile) -> TestClient:
    login_as(test_user.id, test_user.email)
    return client


@pytest.fixture
def admin_client(client: TestClient, login_as, admin_user: UserProfile) -> TestClient:
    login_as(admin_user.id, admin_user.email)
    return client


# =========================================================================
# University Fixtures
# =========================================================================

@pytest.fixture
def universities_batch(db: Session) -> list[University]:
    """A small catalogue across four countries"""
    return [
        make_university(db),
        make_university(
            db, name="University of Oxford", country="UK", city="Oxford", state_province="England",
            ranking_overall=3, tuition_min=30000, tuition_max=45000, currency="GBP",
            cgpa_requirement=9.5, ielts_requirement=7.0, toefl_requirement=100,
            programs_offered=["Medicine", "Law", "Computer Science"],
        ),
        make_university(
            db, name="Harvard University", country="US", city="Cambridge", state_province="Massachusetts",
            type="private", ranking_overall=1, tuition_min=54000, tuition_max=54000, currency="USD",
            cgpa_requirement=9.75, ielts_requirement=7.0, toefl_requirement=100, gre_requirement=325,
            programs_offered=["Law", "Business", "Computer Science"],
        ),
        make_university(
            db, name="University of Melbourne", country="Australia", city="Melbourne", state_province="Victoria",
            ranking_overall=None, tuition_min=30000, tuition_max=40000, currency="AUD",
            cgpa_requirement=8.5, ielts_requirement=6.5, toefl_requirement=79,
            programs_offered=["Medicine", "Arts"],
        ),
    ]


# =========================================================================
# Pathway Fixtures
# =========================================================================

@pytest.fixture
def canada_profile() -> PathwayProfile:
    return PathwayProfile(
        country="Canada",
        course="Computer Science",
        academic_level="Master",
        budget_range="Medium",
        nationality="Indian",
    )


@pytest.fixture
def stored_template(db: Session, canada_profile: PathwayProfile):
    """A static pathway stored under the Canada CS Master key"""
    return save_template(db, build_static_pathway(canada_profile))


# =========================================================================
# Mock Fixtures
# =========================================================================

@pytest.fixture
def fake_text_generator() -> FakeTextGenerator:
    return FakeTextGenerator()


@pytest.fixture
def fake_generator(fake_text_generator: FakeTextGenerator) -> PathwayGenerator:
    """PathwayGenerator backed by the deterministic mock pathway"""
    return PathwayGenerator(text_generator=fake_text_generator, model_name="gemini-test")


@pytest.fixture
def mock_gemini():
    """Mock the Gemini client for tests that go through gemini_client directly"""
    import eduvox.utils.gemini_client as gemini_module
    from tests.mocks import mock_chat_completion, mock_ai_pathway_text

    gemini_module.reset_client()

    with patch.object(gemini_module, "get_gemini_client") as mock_get:
        mock_get.return_value.chat.completions.create.return_value = mock_chat_completion(mock_ai_pathway_text())
        yield mock_get.return_value

    gemini_module.reset_client()
