"""Session, task and attachment operations.

Every lifecycle rule lives here and is reported through the TaskServiceError
hierarchy; routers only translate HTTP input and output. All functions work on
the request's SQLAlchemy session and leave committing to the caller.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from taskboard.models.enums import TaskStatus
from taskboard.models.session import Session as SessionModel
from taskboard.models.task import Task as TaskModel
from taskboard.models.task_file import TaskFile as TaskFileModel
from taskboard.schemas.session import SessionUpdate
from taskboard.schemas.task import TaskCreate, TaskUpdate
from taskboard.services.storage import FileStorage, InvalidFilenameError, sanitize_filename

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"


class TaskServiceError(Exception):
    """Base class for domain errors. Subclasses carry their HTTP mapping."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFoundError(TaskServiceError):
    """Raised when a session, task, file row or stored object does not exist."""

    status_code = 404
    code = "not_found"


class ConflictError(TaskServiceError):
    """Raised when a uniqueness constraint would be violated."""

    status_code = 409
    code = "conflict"


class InvalidStateError(TaskServiceError):
    """Raised when an operation is not allowed in the task's current status."""

    status_code = 400
    code = "invalid_state"


class ValidationFailedError(TaskServiceError):
    """Raised when input passes schema validation but is still unusable."""

    status_code = 400
    code = "validation_error"


@dataclass(frozen=True)
class DeletedTask:
    """What is left to clean up in storage after a task row is deleted."""

    task_id: UUID
    session_key: str
    task_number: int
    file_paths: list[str] = field(default_factory=list)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _touch(session_model: SessionModel) -> None:
    session_model.last_activity_at = _now()


def _apply_status(task: TaskModel, status: TaskStatus) -> None:
    """Set the status and keep completed_at in step with entering/leaving completed."""
    if status == task.status:
        return
    if status == TaskStatus.COMPLETED:
        task.completed_at = _now()
    elif task.status == TaskStatus.COMPLETED:
        task.completed_at = None
    task.status = status


# =============================================================================
# Sessions
# =============================================================================


def list_sessions(db: Session) -> list[SessionModel]:
    query = select(SessionModel).order_by(
        SessionModel.last_activity_at.desc(), SessionModel.created_at.desc()
    )
    return list(db.scalars(query).all())


def find_session(db: Session, session_key: str) -> SessionModel | None:
    return db.scalar(select(SessionModel).where(SessionModel.session_key == session_key))


def get_session(db: Session, session_key: str) -> SessionModel:
    session_model = find_session(db, session_key)
    if session_model is None:
        raise NotFoundError("Session not found")
    return session_model


def get_or_create_session(db: Session, session_key: str) -> SessionModel:
    """Return the session for a key, creating it on first use."""
    existing = find_session(db, session_key)
    if existing is not None:
        return existing

    new_session = SessionModel(
        session_key=session_key,
        name=f"Session {session_key}",
        last_activity_at=_now(),
    )
    db.add(new_session)
    try:
        db.flush()
    except IntegrityError as e:
        # Another request registered the same key between our lookup and insert
        raise ConflictError(f"Session {session_key!r} was created concurrently, retry") from e

    logger.info(f"Created session {session_key!r} (id={new_session.id})")
    return new_session


def update_session(db: Session, session_key: str, changes: SessionUpdate) -> SessionModel:
    session_model = get_session(db, session_key)
    for key, value in changes.model_dump(exclude_unset=True).items():
        setattr(session_model, key, value)
    db.flush()
    return session_model


# =============================================================================
# Tasks
# =============================================================================


def get_task(db: Session, task_id: UUID) -> TaskModel:
    task = db.get(TaskModel, task_id)
    if task is None:
        raise NotFoundError("Task not found")
    return task


def list_tasks(db: Session, session_key: str, strict: bool = False) -> list[TaskModel]:
    """List a session's tasks by ascending task_number.

    An unknown session yields an empty list, or NotFoundError when ``strict``.
    """
    session_model = find_session(db, session_key)
    if session_model is None:
        if strict:
            raise NotFoundError("Session not found")
        return []

    query = (
        select(TaskModel)
        .where(TaskModel.session_id == session_model.id)
        .order_by(TaskModel.task_number.asc())
    )
    return list(db.scalars(query).all())


def create_task(db: Session, session_key: str, payload: TaskCreate) -> TaskModel:
    session_model = get_or_create_session(db, session_key)

    duplicate = db.scalar(
        select(TaskModel.id).where(
            TaskModel.session_id == session_model.id,
            TaskModel.task_number == payload.task_number,
        )
    )
    if duplicate is not None:
        raise ConflictError("Task with this task_number already exists for this session")

    task = TaskModel(
        session=session_model,
        task_number=payload.task_number,
        subject=payload.subject,
        description=payload.description,
        active_form=payload.active_form,
        status=payload.status,
        priority=payload.priority,
        blocks=payload.blocks,
        blocked_by=payload.blocked_by,
        metadata_=payload.metadata,
        completed_at=_now() if payload.status == TaskStatus.COMPLETED else None,
    )
    db.add(task)
    try:
        db.flush()
    except IntegrityError as e:
        raise ConflictError("Task with this task_number already exists for this session") from e

    _touch(session_model)
    db.flush()
    logger.info(f"Created task #{task.task_number} in session {session_key!r} (id={task.id})")
    return task


def update_task(db: Session, task_id: UUID, changes: TaskUpdate) -> TaskModel:
    task = get_task(db, task_id)

    update_data = changes.model_dump(exclude_unset=True)
    if "status" in update_data:
        _apply_status(task, update_data.pop("status"))
    if "metadata" in update_data:
        update_data["metadata_"] = update_data.pop("metadata")
    for key, value in update_data.items():
        setattr(task, key, value)

    _touch(task.session)
    db.flush()
    return task


def delete_task(db: Session, task_id: UUID) -> DeletedTask | None:
    """Delete a task and its file rows. Returns None when the task does not exist."""
    task = db.get(TaskModel, task_id)
    if task is None:
        return None

    deleted = DeletedTask(
        task_id=task.id,
        session_key=task.session.session_key,
        task_number=task.task_number,
        file_paths=list(
            db.scalars(select(TaskFileModel.file_path).where(TaskFileModel.task_id == task.id))
        ),
    )
    _touch(task.session)
    db.delete(task)
    db.flush()

    logger.info(
        f"Deleted task #{deleted.task_number} in session {deleted.session_key!r} "
        f"with {len(deleted.file_paths)} attachment(s)"
    )
    return deleted


def referenced_file_paths(db: Session, paths: list[str]) -> set[str]:
    """Return the subset of ``paths`` that attachment rows still point at."""
    if not paths:
        return set()
    query = select(TaskFileModel.file_path).where(TaskFileModel.file_path.in_(paths))
    return set(db.scalars(query))


def task_number_in_use(db: Session, session_key: str, task_number: int) -> bool:
    task_id = db.scalar(
        select(TaskModel.id)
        .join(SessionModel, TaskModel.session_id == SessionModel.id)
        .where(SessionModel.session_key == session_key, TaskModel.task_number == task_number)
    )
    return task_id is not None


# =============================================================================
# Attachments
# =============================================================================


def _find_file(db: Session, task_id: UUID, file_id: UUID) -> TaskFileModel:
    task_file = db.scalar(
        select(TaskFileModel).where(TaskFileModel.id == file_id, TaskFileModel.task_id == task_id)
    )
    if task_file is None:
        raise NotFoundError("File not found")
    return task_file


def list_files(db: Session, task_id: UUID) -> list[TaskFileModel]:
    task = get_task(db, task_id)
    query = (
        select(TaskFileModel)
        .where(TaskFileModel.task_id == task.id)
        .order_by(TaskFileModel.created_at.asc(), TaskFileModel.filename.asc())
    )
    return list(db.scalars(query).all())


def get_file(db: Session, storage: FileStorage, task_id: UUID, file_id: UUID) -> TaskFileModel:
    """Return a file row whose stored object is present."""
    task_file = _find_file(db, task_id, file_id)
    if not storage.exists(task_file.file_path):
        logger.warning(f"File row {file_id} points at missing object {task_file.file_path}")
        raise NotFoundError("File not found in storage")
    return task_file


def add_file(
    db: Session,
    storage: FileStorage,
    task_id: UUID,
    filename: str,
    content_type: str | None,
    content: bytes,
) -> TaskFileModel:
    task = get_task(db, task_id)
    if task.status != TaskStatus.PENDING:
        raise InvalidStateError("Can only add files to pending tasks")

    try:
        name = sanitize_filename(filename)
        existing = db.scalar(
            select(TaskFileModel.id).where(
                TaskFileModel.task_id == task.id, TaskFileModel.filename == name
            )
        )
        if existing is not None:
            raise ConflictError(f"Task already has a file named {name!r}")
        staged = storage.stage(task.session.session_key, task.task_number, name, content)
    except InvalidFilenameError as e:
        raise ValidationFailedError(str(e)) from e

    task_file = TaskFileModel(
        task_id=task.id,
        filename=name,
        content_type=content_type or DEFAULT_CONTENT_TYPE,
        size_bytes=len(content),
        file_path=str(staged.target),
    )
    db.add(task_file)
    try:
        db.flush()
    except IntegrityError as e:
        # A concurrent upload won the insert; its object must not be replaced
        storage.discard(staged)
        raise ConflictError(f"Task already has a file named {name!r}") from e
    except SQLAlchemyError:
        storage.discard(staged)
        raise
    storage.publish(staged)

    _touch(task.session)
    logger.info(f"Attached {name!r} ({len(content)} bytes) to task {task.id}")
    return task_file


def remove_file(db: Session, storage: FileStorage, task_id: UUID, file_id: UUID) -> None:
    task = get_task(db, task_id)
    if task.status != TaskStatus.PENDING:
        raise InvalidStateError("Can only remove files from pending tasks")

    task_file = _find_file(db, task.id, file_id)
    file_path = task_file.file_path
    db.delete(task_file)
    db.flush()

    # The row is gone either way; a missing object is not an error
    storage.remove(file_path)
    _touch(task.session)
    logger.info(f"Removed file {file_id} from task {task.id}")
