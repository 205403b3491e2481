"""Pytest fixtures for testing"""

import pytest
from typing import Generator
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from smarthome_gateway.api.main import create_app
from smarthome_gateway.domain.workflow import CompletionWorkflow
from smarthome_gateway.infrastructure.database.models import Base
from smarthome_gateway.infrastructure.database.session import get_db
from smarthome_gateway.infrastructure.database.store import SqlLedgerStore
from smarthome_gateway.infrastructure.ledger.base import LedgerStore
from smarthome_gateway.infrastructure.ledger.memory import InMemoryLedgerStore


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db: Session) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    return TestClient(app)


@pytest.fixture(params=["memory", "sql"])
def store(request, db: Session) -> LedgerStore:
    """Every ledger store backend"""
    if request.param == "memory":
        return InMemoryLedgerStore()
    return SqlLedgerStore(db)


def _make_workflow(store: LedgerStore, **overrides) -> CompletionWorkflow:
    """Workflow with explicit policy so tests do not depend on the environment"""
    options = dict(
        bank="bank1",
        missing_endorsement_policy="approve",
        enforce_monotonic_floors=True,
        page_size=3,  # smaller than the seeded home count, so scans span several pages
        max_conflict_retries=2,
    )
    options.update(overrides)
    return CompletionWorkflow(store, **options)


@pytest.fixture
def workflow_factory(store: LedgerStore):
    """Build workflows over the parametrized store with policy overrides"""
    return lambda **overrides: _make_workflow(store, **overrides)


@pytest.fixture
def workflow(store: LedgerStore) -> CompletionWorkflow:
    return _make_workflow(store)


@pytest.fixture
def seeded_workflow(workflow: CompletionWorkflow) -> CompletionWorkflow:
    """Towers A, B, C at NS; homes 101-104 in A and 201-204 in B"""
    workflow.init_ledger()
    return workflow
