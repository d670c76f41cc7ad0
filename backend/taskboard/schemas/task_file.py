from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class TaskFile(BaseModel):
    """Response schema for a task attachment."""

    id: UUID = Field(description="Unique identifier")
    task_id: UUID = Field(description="Owning task ID")
    filename: str = Field(description="Stored filename, unique within the task")
    content_type: str | None = Field(default=None, description="MIME type of the attachment")
    size_bytes: int = Field(description="File size in bytes")
    file_path: str = Field(description="Location of the object in attachment storage")
    created_at: datetime = Field(description="Upload timestamp")

    model_config = {"from_attributes": True}


class TaskFileEnvelope(BaseModel):
    file: TaskFile


class TaskFileList(BaseModel):
    task_id: UUID = Field(alias="taskId", description="Owning task ID")
    files: list[TaskFile] = Field(description="Attachments ordered by upload time")
    count: int = Field(description="Number of attachments")

    model_config = {"populate_by_name": True}
