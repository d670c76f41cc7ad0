"""Test fixtures for the Taskboard backend."""

import os
from collections.abc import Generator
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID, uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "")
os.environ.setdefault("RUN_MIGRATIONS_ON_STARTUP", "false")

from taskboard.config import settings
from taskboard.database import get_db, get_session_factory
from taskboard.main import app
from taskboard.models import Base, TaskStatus
from taskboard.models import Task as TaskModel
from taskboard.schemas import TaskCreate
from taskboard.services import task_service
from taskboard.services.storage import FileStorage, get_storage

# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture(scope="function")
def engine():
    """Create a SQLite in-memory engine for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign key support for SQLite so ON DELETE CASCADE applies
    @event.listens_for(engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(engine)

    yield engine

    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)


@pytest.fixture(scope="function")
def session(session_factory) -> Generator[Session, None, None]:
    """Create a database session for testing."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def storage(tmp_path) -> FileStorage:
    return FileStorage(tmp_path / "files")


@pytest.fixture(scope="function")
def client(
    session: Session, session_factory: sessionmaker[Session], storage: FileStorage
) -> Generator[TestClient, None, None]:
    """Create a test client with overridden session and storage dependencies."""

    def override_get_db():
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


# ============================================================================
# Domain Fixtures
# ============================================================================


def make_task(
    session: Session,
    session_key: str = "s1",
    task_number: int = 1,
    **fields,
) -> TaskModel:
    fields.setdefault("subject", f"Task {task_number}")
    task = task_service.create_task(
        session, session_key, TaskCreate(task_number=task_number, **fields)
    )
    session.commit()
    return task


@pytest.fixture
def task(session: Session) -> TaskModel:
    """A pending task in session "s1"."""
    return make_task(session, subject="Write spec", priority=5)


@pytest.fixture
def completed_task(session: Session) -> TaskModel:
    return make_task(session, task_number=2, subject="Ship it", status=TaskStatus.COMPLETED)


# ============================================================================
# Queue Fixtures
# ============================================================================


@pytest.fixture
def mock_redis_pool():
    """Enable the queue and replace the ARQ pool with a mock."""
    job = MagicMock()
    job.job_id = "test_job_123"

    pool = MagicMock()
    pool.enqueue_job = AsyncMock(return_value=job)
    pool.ping = AsyncMock(return_value=True)
    pool.close = AsyncMock()

    with (
        patch.object(settings, "redis_url", "redis://localhost:6379"),
        patch("taskboard.services.task_queue._redis_pool", pool),
    ):
        yield pool


# ============================================================================
# Client Fixtures
# ============================================================================


def task_json(
    task_number: int = 1,
    status: str = "pending",
    priority: int = 0,
    task_id: UUID | None = None,
    session_id: UUID | None = None,
    **fields,
) -> dict:
    """A task as the API serializes it."""
    now = datetime.now(timezone.utc).isoformat()
    return {
        "id": str(task_id or uuid4()),
        "session_id": str(session_id or uuid4()),
        "task_number": task_number,
        "subject": f"Task {task_number}",
        "description": None,
        "active_form": None,
        "status": status,
        "priority": priority,
        "blocks": [],
        "blocked_by": [],
        "metadata": {},
        "created_at": now,
        "updated_at": now,
        "completed_at": None,
        **fields,
    }


def session_json(session_key: str) -> dict:
    now = datetime.now(timezone.utc).isoformat()
    return {
        "id": str(uuid4()),
        "session_key": session_key,
        "name": f"Session {session_key}",
        "project_path": None,
        "created_at": now,
        "updated_at": now,
        "last_activity_at": now,
    }
