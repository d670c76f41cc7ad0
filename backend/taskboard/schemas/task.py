from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from taskboard.models.enums import TaskStatus

# Fields that may be omitted from a PATCH body but never set to null
NON_NULLABLE_UPDATE_FIELDS = ("subject", "status", "priority", "blocks", "blocked_by", "metadata")

# Bounds of the 32-bit integer columns
INT32_MIN = -(2**31)
INT32_MAX = 2**31 - 1


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


def _require_subject(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("subject must not be empty")
    return value


class TaskBase(BaseModel):
    subject: str = Field(max_length=500, description="Short imperative title of the task")
    description: str | None = Field(default=None, description="What needs to be done and why")
    active_form: str | None = Field(
        default=None, max_length=500, description="Progress label shown while the task runs"
    )
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Current task status")
    priority: int = Field(
        default=0, ge=INT32_MIN, le=INT32_MAX, description="Display priority, lower values first"
    )
    blocks: list[str] = Field(
        default_factory=list, description="Identifiers of tasks this task blocks (advisory)"
    )
    blocked_by: list[str] = Field(
        default_factory=list, description="Identifiers of tasks blocking this task (advisory)"
    )
    metadata: dict[str, Any] = Field(default_factory=dict, description="Free-form key/value data")


class TaskCreate(TaskBase):
    task_number: int = Field(
        ge=1, le=INT32_MAX, description="Sequential identifier, unique within the session"
    )

    @field_validator("subject")
    @classmethod
    def subject_not_blank(cls, value: str) -> str:
        return _require_subject(value)

    @field_validator("blocks", "blocked_by")
    @classmethod
    def unique_links(cls, value: list[str]) -> list[str]:
        return _dedupe(value)


class TaskUpdate(BaseModel):
    subject: str | None = Field(default=None, max_length=500, description="Task subject")
    description: str | None = Field(default=None, description="What needs to be done and why")
    active_form: str | None = Field(default=None, max_length=500, description="Progress label")
    status: TaskStatus | None = Field(default=None, description="New task status")
    priority: int | None = Field(
        default=None, ge=INT32_MIN, le=INT32_MAX, description="Display priority, lower values first"
    )
    blocks: list[str] | None = Field(default=None, description="Tasks this task blocks")
    blocked_by: list[str] | None = Field(default=None, description="Tasks blocking this task")
    metadata: dict[str, Any] | None = Field(default=None, description="Free-form key/value data")

    @model_validator(mode="before")
    @classmethod
    def reject_null_for_required(cls, data: Any) -> Any:
        if isinstance(data, dict):
            nulled = [k for k in NON_NULLABLE_UPDATE_FIELDS if k in data and data[k] is None]
            if nulled:
                raise ValueError(f"Fields cannot be null: {', '.join(nulled)}")
        return data

    @field_validator("subject")
    @classmethod
    def subject_not_blank(cls, value: str | None) -> str | None:
        return value if value is None else _require_subject(value)

    @field_validator("blocks", "blocked_by")
    @classmethod
    def unique_links(cls, value: list[str] | None) -> list[str] | None:
        return value if value is None else _dedupe(value)


class Task(TaskBase):
    id: UUID = Field(description="Task unique identifier")
    session_id: UUID = Field(description="Owning session ID")
    task_number: int = Field(description="Sequential identifier within the session")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")
    completed_at: datetime | None = Field(
        default=None, description="When the task last entered the completed status"
    )

    model_config = {"from_attributes": True}

    @model_validator(mode="before")
    @classmethod
    def convert_model_fields(cls, data: Any) -> Any:
        """Convert ORM model fields to schema-compatible format."""
        if hasattr(data, "__table__"):
            return {
                "id": data.id,
                "session_id": data.session_id,
                "task_number": data.task_number,
                "subject": data.subject,
                "description": data.description,
                "active_form": data.active_form,
                "status": data.status,
                "priority": data.priority,
                "blocks": list(data.blocks or []),
                "blocked_by": list(data.blocked_by or []),
                "metadata": dict(data.metadata_ or {}),
                "created_at": data.created_at,
                "updated_at": data.updated_at,
                "completed_at": data.completed_at,
            }
        return data


class TaskEnvelope(BaseModel):
    task: Task


class TaskList(BaseModel):
    session_key: str = Field(alias="sessionKey", description="Session the tasks belong to")
    tasks: list[Task] = Field(description="Tasks ordered by ascending task_number")

    model_config = {"populate_by_name": True}
