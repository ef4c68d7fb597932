import os
import tempfile

# Settings are read at import time; configure the test environment first
_TEST_DIR = tempfile.mkdtemp(prefix="dossier-tests-")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key-for-operator-tokens-0123456789")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TEST_DIR}/app.db")
os.environ.setdefault("LOG_DIR", os.path.join(_TEST_DIR, "logs"))
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
from typing import AsyncGenerator, Generator
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from dossier.database import Base, get_db
import dossier.models  # noqa: F401
from dossier.core.security import create_access_token
from dossier.services.operator_service import OperatorService
from dossier.services.subject_service import SubjectService

# Test database URL
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{_TEST_DIR}/test_dossier.db"

# Create test engine
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    poolclass=NullPool,
    connect_args={"check_same_thread": False},
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)

MASTER_EMAIL = "chief@dossier.io"
ANALYST_EMAIL = "analyst@dossier.io"
PASSWORD = "correct horse battery staple"


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    # Create tables
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    # Create session
    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    # Drop tables
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture(scope="function")
def client() -> Generator:
    """Create a sync test client (doesn't require db_session)."""
    from fastapi.testclient import TestClient
    from dossier.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
async def async_client(db_session: AsyncSession) -> AsyncGenerator:
    """Create an async test client with database session override."""
    from httpx import AsyncClient, ASGITransport
    from dossier.main import app

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def master(db_session: AsyncSession):
    """A master operator."""
    return await OperatorService.create_operator(
        db=db_session,
        email=MASTER_EMAIL,
        password=PASSWORD,
        name="Chief",
        is_master=True
    )


@pytest.fixture
async def analyst(db_session: AsyncSession):
    """A non-master operator with the default section policy."""
    return await OperatorService.create_operator(
        db=db_session,
        email=ANALYST_EMAIL,
        password=PASSWORD,
        name="Analyst"
    )


@pytest.fixture
async def subject(db_session: AsyncSession, master):
    """A profile owned by the master operator."""
    return await SubjectService.create_subject(
        db_session,
        master.id,
        full_name="Viktor Petrov",
        alias="The Ghost",
        occupation="Courier",
        threat_level="High",
        avatar_path="/avatars/viktor.png",
        dob="1980-02-11",
        age=46,
        blood_type="O-",
        identifying_marks="Scar on left hand"
    )


@pytest.fixture
def auth_headers():
    """Build a bearer header for an operator at its current token version."""
    def build(operator) -> dict:
        token = create_access_token(operator.id, operator.email, operator.token_version)
        return {"Authorization": f"Bearer {token}"}

    return build
