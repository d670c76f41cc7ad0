from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, Response, status
from sqlalchemy.orm import Session, sessionmaker

from taskboard.database import get_db, get_session_factory
from taskboard.schemas import StandardError, Task, TaskEnvelope, TaskUpdate, ValidationError
from taskboard.services import task_service
from taskboard.services.storage import FileStorage, get_storage
from taskboard.services.task_queue import cleanup_deleted_task

router = APIRouter()


@router.patch(
    "/tasks/{task_id}",
    response_model=TaskEnvelope,
    summary="Update task",
    description="Apply a partial update, e.g. a status transition. Entering 'completed' "
    "sets completed_at; leaving it clears completed_at.",
    responses={
        400: {"model": ValidationError, "description": "Validation error"},
        404: {"model": StandardError, "description": "Task not found"},
    },
)
@router.patch(
    "/sessions/tasks/{task_id}",
    response_model=TaskEnvelope,
    deprecated=True,
    include_in_schema=False,
)
async def update_task(
    task_id: UUID,
    task: TaskUpdate,
    db: Session = Depends(get_db),
):
    db_task = task_service.update_task(db, task_id, task)
    return TaskEnvelope(task=Task.model_validate(db_task))


@router.delete(
    "/tasks/{task_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Delete task",
    description="Delete a task and its attachments. Deleting an unknown task also "
    "answers 204.",
)
async def delete_task(
    task_id: UUID,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
    session_factory: sessionmaker[Session] = Depends(get_session_factory),
):
    deleted = task_service.delete_task(db, task_id)
    if deleted is not None:
        # Cleanup checks which objects are still referenced on its own session
        db.commit()
        background_tasks.add_task(cleanup_deleted_task, deleted, storage, session_factory)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
