"""
Pytest configuration and fixtures.
"""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from apihub.core.database import Base, get_db, get_session_factory
from apihub.core.security import create_access_token, get_password_hash
from apihub.main import app

# Import all models to ensure they register with Base.metadata
from apihub.models import APIKey, AdminBootstrap, Dataset, Endpoint, RequestLog, User  # noqa: F401
from apihub.models.user import AuthProvider
from apihub.schemas.api_key import APIKeyCreateRequest
from apihub.schemas.endpoint import EndpointCreateRequest
from apihub.services.api_key_service import APIKeyService
from apihub.services.dataset_service import DatasetService
from apihub.services.endpoint_service import EndpointService

# Use file-based SQLite for testing (more reliable than in-memory)
TEST_DATABASE_URL = "sqlite:///./test_apihub.db"

test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    pool_pre_ping=False,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

TEST_PASSWORD = "secret123"

SAMPLE_ROWS = [
    {"id": 1, "name": "a"},
    {"id": 2, "name": "b"},
    {"id": 3, "name": "c"},
]


@pytest.fixture(scope="session", autouse=True)
def setup_test_database():
    """Create all tables once per test session and drop them afterwards."""
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function", autouse=True)
def clean_tables():
    """Empty every table after each test; first-admin promotion depends on a fresh database."""
    yield
    with test_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


@pytest.fixture(scope="function")
def client():
    """
    Create a test client with database overrides.

    Request handlers get sessions from TestingSessionLocal, and so do the
    background tasks that record gateway usage.
    """
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: TestingSessionLocal

    yield TestClient(app)

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def db_session():
    """Provide a database session for tests that need direct DB access."""
    db = TestingSessionLocal()
    try:
        yield db
        db.rollback()
    finally:
        db.close()


def make_user(db, email: str, role: str = "user", name: str = "Test User") -> User:
    user = User(
        name=name,
        email=email,
        hashed_password=get_password_hash(TEST_PASSWORD),
        auth_provider=AuthProvider.LOCAL,
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def bearer(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def admin_user(db_session):
    return make_user(db_session, "admin@example.com", role="admin", name="Admin")


@pytest.fixture
def developer_user(db_session):
    return make_user(db_session, "dev@example.com", role="user", name="Developer")


@pytest.fixture
def admin_headers(admin_user):
    return bearer(admin_user)


@pytest.fixture
def developer_headers(developer_user):
    return bearer(developer_user)


@pytest.fixture
def sample_dataset(db_session):
    """Three-row dataset {id, name} with names a, b, c."""
    return DatasetService(db_session).create(name="letters", records=[dict(r) for r in SAMPLE_ROWS])


@pytest.fixture
def make_endpoint(db_session):
    """Factory: create an endpoint for a dataset."""
    def _make(dataset, path="/letters", method="GET", **kwargs):
        request = EndpointCreateRequest(
            name=kwargs.pop("name", f"{method} {path}"),
            path=path,
            method=method,
            dataset_id=dataset.id,
            **kwargs,
        )
        return EndpointService(db_session).create(request)
    return _make


@pytest.fixture
def make_api_key(db_session):
    """Factory: generate a key and return (APIKey, secret)."""
    def _make(name="test key", access_level="all", endpoint_ids=None, **kwargs):
        request = APIKeyCreateRequest(
            name=name,
            access_level=access_level,
            endpoint_ids=endpoint_ids or [],
            **kwargs,
        )
        return APIKeyService(db_session).generate(request)
    return _make
