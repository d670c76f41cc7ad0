from fastapi import APIRouter, Depends, Path, status
from sqlalchemy.orm import Session

from taskboard.config import settings
from taskboard.database import get_db
from taskboard.schemas import (
    Session as SessionSchema,
    SessionEnvelope,
    SessionList,
    SessionUpdate,
    StandardError,
    Task,
    TaskCreate,
    TaskEnvelope,
    TaskList,
    ValidationError,
)
from taskboard.services import task_service

router = APIRouter()

SESSION_KEY_MAX_LENGTH = 255


@router.get(
    "/sessions",
    response_model=SessionList,
    summary="List sessions",
    description="Retrieve all sessions, most recently active first.",
)
async def list_sessions(db: Session = Depends(get_db)):
    sessions = task_service.list_sessions(db)
    return SessionList(sessions=[SessionSchema.model_validate(s) for s in sessions])


@router.patch(
    "/sessions/{session_key}",
    response_model=SessionEnvelope,
    summary="Update session",
    description="Set a session's display name or project path.",
    responses={
        400: {"model": ValidationError, "description": "Validation error"},
        404: {"model": StandardError, "description": "Session not found"},
    },
)
async def update_session(
    changes: SessionUpdate,
    session_key: str = Path(max_length=SESSION_KEY_MAX_LENGTH, description="Session key"),
    db: Session = Depends(get_db),
):
    session_model = task_service.update_session(db, session_key, changes)
    return SessionEnvelope(session=SessionSchema.model_validate(session_model))


@router.get(
    "/sessions/{session_key}/tasks",
    response_model=TaskList,
    summary="List session tasks",
    description="Retrieve a session's tasks ordered by task_number. An unknown session "
    "yields an empty list unless strict session lookup is enabled.",
    responses={404: {"model": StandardError, "description": "Session not found (strict mode)"}},
)
async def list_session_tasks(
    session_key: str = Path(max_length=SESSION_KEY_MAX_LENGTH, description="Session key"),
    db: Session = Depends(get_db),
):
    tasks = task_service.list_tasks(db, session_key, strict=settings.strict_session_lookup)
    return TaskList(session_key=session_key, tasks=[Task.model_validate(t) for t in tasks])


@router.post(
    "/sessions/{session_key}/tasks",
    response_model=TaskEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create a task",
    description="Create a task in a session. The session is created on first use.",
    responses={
        400: {"model": ValidationError, "description": "Missing or invalid fields"},
        409: {"model": StandardError, "description": "Duplicate task_number in session"},
    },
)
async def create_task(
    task: TaskCreate,
    session_key: str = Path(max_length=SESSION_KEY_MAX_LENGTH, description="Session key"),
    db: Session = Depends(get_db),
):
    new_task = task_service.create_task(db, session_key, task)
    return TaskEnvelope(task=Task.model_validate(new_task))
