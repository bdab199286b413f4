import os

# Must be set before the application settings are imported
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("VECTOR_DB_PROVIDER", "memory")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from evaluator.main import app
from evaluator.api.deps import get_document_store, get_job_dispatcher
from evaluator.db.session import get_db
from evaluator.models import Base
from evaluator.models.document import DocumentKind
from evaluator.services.storage.document_store import LocalDocumentStore
from tests.factories import DocumentFactory, EvaluationFactory, PDF_BYTES

# Test database URL
TEST_DATABASE_URL = "sqlite://"

# Create test engine
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database session for each test."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def document_store(tmp_path):
    """Local document store rooted in a temporary directory."""
    return LocalDocumentStore(str(tmp_path / "documents"))


@pytest.fixture
def dispatched_jobs():
    """Jobs handed to the queue by the API during a test."""
    return []


@pytest.fixture(scope="function")
def override_dependencies(db_session, document_store, dispatched_jobs):
    """Override database, storage and queue dependencies."""
    def _override_get_db():
        yield db_session

    async def _override_get_document_store():
        yield document_store

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_document_store] = _override_get_document_store
    app.dependency_overrides[get_job_dispatcher] = lambda: dispatched_jobs.append
    yield
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def async_client(override_dependencies):
    """Create an async HTTP client for testing."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_cv(db_session):
    """A stored CV document record."""
    document = DocumentFactory.create(kind=DocumentKind.CV.value)
    db_session.add(document)
    db_session.commit()
    db_session.refresh(document)
    return document


@pytest.fixture
def sample_project_report(db_session):
    """A stored project report document record."""
    document = DocumentFactory.create(kind=DocumentKind.PROJECT_REPORT.value)
    db_session.add(document)
    db_session.commit()
    db_session.refresh(document)
    return document


@pytest.fixture
def sample_evaluation(db_session, sample_cv, sample_project_report):
    """A queued evaluation of the sample documents."""
    evaluation = EvaluationFactory.create(cv_id=sample_cv.id, project_report_id=sample_project_report.id)
    db_session.add(evaluation)
    db_session.commit()
    db_session.refresh(evaluation)
    return evaluation


@pytest.fixture
def pdf_bytes():
    return PDF_BYTES


class SleepRecorder:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, delay):
        self.delays.append(delay)


@pytest.fixture
def sleep_recorder():
    return SleepRecorder()
