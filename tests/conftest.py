import os

# Settings are read at import time; point them at throwaway values first.
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["AI_PROVIDER"] = "openai"
os.environ["OPENAI_API_KEY"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["GENERATION_PACING_DELAY_SECONDS"] = "0"

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from main import app
from app.core.database import get_database
from app.core.dependencies import get_ai_service
from app.models.database import Base
from app.models.schemas import GenerationSettings
from app.repositories.implementations.sql_chunk_repository import SQLChunkRepository
from app.repositories.implementations.sql_generation_run_repository import SQLGenerationRunRepository
from app.repositories.implementations.sql_test_case_repository import SQLTestCaseRepository
from app.services.chunk_generator import ChunkGenerator
from app.services.generate_more_service import GenerateMoreService
from app.services.reconcile_service import ReconcileService
from tests.fakes import FakeAIService


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db_session(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def fake_ai():
    return FakeAIService()


@pytest.fixture
def settings_s():
    return GenerationSettings(model="gpt-4o-mini", temperature=0.2, max_cases=4)


@pytest.fixture
def test_case_repository(db_session):
    return SQLTestCaseRepository(db_session)


@pytest.fixture
def chunk_repository(db_session):
    return SQLChunkRepository(db_session)


@pytest.fixture
def run_repository(db_session):
    return SQLGenerationRunRepository(db_session)


@pytest.fixture
def reconcile_service(test_case_repository):
    return ReconcileService(test_case_repository)


@pytest.fixture
def chunk_generator(test_case_repository, run_repository, fake_ai):
    return ChunkGenerator(test_case_repository, run_repository, fake_ai)


@pytest.fixture
def generate_more_service(chunk_repository, run_repository, chunk_generator, reconcile_service):
    return GenerateMoreService(
        chunk_repository=chunk_repository,
        run_repository=run_repository,
        chunk_generator=chunk_generator,
        reconcile_service=reconcile_service,
        pacing_delay_seconds=0,
    )


@pytest.fixture
def api_overrides(engine, fake_ai):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_database] = override_get_db
    app.dependency_overrides[get_ai_service] = lambda: fake_ai
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def test_client(api_overrides):
    """Synchronous test client for simple tests"""
    return TestClient(app)


@pytest_asyncio.fixture
async def client(api_overrides):
    """Async client driving the app in-process"""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
