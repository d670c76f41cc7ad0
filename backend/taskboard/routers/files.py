from uuid import UUID

from fastapi import APIRouter, Depends, Header, HTTPException, Request, Response, status
from fastapi.responses import FileResponse
from sqlalchemy.orm import Session

from taskboard.config import settings
from taskboard.database import get_db
from taskboard.schemas import StandardError, TaskFile, TaskFileEnvelope, TaskFileList
from taskboard.services import task_service
from taskboard.services.storage import FileStorage, get_storage

router = APIRouter()


async def _read_limited_body(request: Request, limit: int) -> bytes:
    """Read the raw request body, refusing anything larger than ``limit`` bytes."""
    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > limit:
        raise HTTPException(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            detail=f"File too large. Maximum size: {limit} bytes",
        )

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            raise HTTPException(
                status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                detail=f"File too large. Maximum size: {limit} bytes",
            )
    return bytes(body)


@router.get(
    "/tasks/{task_id}/files",
    response_model=TaskFileList,
    summary="List task files",
    description="Get all files attached to a task, oldest first.",
    responses={404: {"model": StandardError, "description": "Task not found"}},
)
async def list_task_files(task_id: UUID, db: Session = Depends(get_db)):
    files = [TaskFile.model_validate(f) for f in task_service.list_files(db, task_id)]
    return TaskFileList(task_id=task_id, files=files, count=len(files))


@router.get(
    "/tasks/{task_id}/files/{file_id}",
    response_class=FileResponse,
    summary="Download task file",
    description="Download an attachment. Answers 404 when either the file record or the "
    "stored object is missing.",
    responses={
        200: {"description": "File content", "content": {"application/octet-stream": {}}},
        404: {"model": StandardError, "description": "File not found"},
    },
)
async def get_task_file(
    task_id: UUID,
    file_id: UUID,
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    task_file = task_service.get_file(db, storage, task_id, file_id)
    return FileResponse(
        path=task_file.file_path,
        media_type=task_file.content_type or task_service.DEFAULT_CONTENT_TYPE,
        filename=task_file.filename,
    )


@router.post(
    "/tasks/{task_id}/files",
    response_model=TaskFileEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Attach file to task",
    description="Upload the raw request body as an attachment of a pending task. "
    "The filename comes from the X-Filename header.",
    responses={
        400: {"model": StandardError, "description": "Task not pending or invalid filename"},
        404: {"model": StandardError, "description": "Task not found"},
        409: {"model": StandardError, "description": "Task already has a file with this name"},
        413: {"model": StandardError, "description": "File too large"},
    },
)
async def upload_task_file(
    task_id: UUID,
    request: Request,
    x_filename: str = Header(default="attachment"),
    content_type: str | None = Header(default=None, max_length=255),
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    content = await _read_limited_body(request, settings.max_attachment_size_bytes)
    task_file = task_service.add_file(db, storage, task_id, x_filename, content_type, content)
    return TaskFileEnvelope(file=TaskFile.model_validate(task_file))


@router.delete(
    "/tasks/{task_id}/files/{file_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    summary="Remove task file",
    description="Remove an attachment from a pending task.",
    responses={
        400: {"model": StandardError, "description": "Task not pending"},
        404: {"model": StandardError, "description": "Task or file not found"},
    },
)
async def delete_task_file(
    task_id: UUID,
    file_id: UUID,
    db: Session = Depends(get_db),
    storage: FileStorage = Depends(get_storage),
):
    task_service.remove_file(db, storage, task_id, file_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
