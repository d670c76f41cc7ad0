from taskboard.schemas.base import FieldError, StandardError, ValidationError
from taskboard.schemas.session import Session, SessionEnvelope, SessionList, SessionUpdate
from taskboard.schemas.system import HealthStatus, ServicesStatus, ServiceState
from taskboard.schemas.task import Task, TaskCreate, TaskEnvelope, TaskList, TaskUpdate
from taskboard.schemas.task_file import TaskFile, TaskFileEnvelope, TaskFileList

__all__ = [
    # Base
    "FieldError",
    "StandardError",
    "ValidationError",
    # Session
    "Session",
    "SessionEnvelope",
    "SessionList",
    "SessionUpdate",
    # System
    "HealthStatus",
    "ServicesStatus",
    "ServiceState",
    # Task
    "Task",
    "TaskCreate",
    "TaskEnvelope",
    "TaskList",
    "TaskUpdate",
    # Task files
    "TaskFile",
    "TaskFileEnvelope",
    "TaskFileList",
]
